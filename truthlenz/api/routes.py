from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request

from truthlenz.processors.verifier import VerificationError, request_from_payload

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__)


def _get_verifier():
    return current_app.config["VERIFIER"]


def _get_settings():
    return current_app.config["SETTINGS"]


def _get_cache():
    return current_app.config["CACHE"]


def _get_gateway():
    return current_app.config["GATEWAY"]


def _error(message: str, status: int, details: list[str] | None = None) -> tuple:
    body: dict = {"error": message}
    if details:
        body["details"] = details
    return jsonify(body), status


def _payload_too_large() -> tuple:
    limit_mb = _get_settings().max_payload_bytes // (1024 * 1024)
    return _error(
        f"Payload too large. Please upload an image/video under {limit_mb}MB.", 413
    )


@api.app_errorhandler(413)
def request_entity_too_large(_exc) -> tuple:
    return _payload_too_large()


@api.route("/verify-content", methods=["POST", "OPTIONS"])
@api.route("/verify", methods=["POST", "OPTIONS"])
def verify_content() -> tuple:
    if request.method == "OPTIONS":
        return "", 204

    settings = _get_settings()
    if request.content_length and request.content_length > settings.max_payload_bytes:
        logger.warning("Rejected %d byte payload", request.content_length)
        return _payload_too_large()

    data = request.get_json(silent=True)
    if data is None:
        return _error("Request body must be JSON", 400)

    try:
        verification_request = request_from_payload(data)
        result = _get_verifier().verify(verification_request)
        return jsonify(result), 200
    except VerificationError as exc:
        if exc.status >= 500:
            logger.error("Verification failed: %s", exc.message)
        else:
            logger.info("Verification rejected (%d): %s", exc.status, exc.message)
        return _error(exc.message, exc.status, exc.details)
    except Exception as exc:
        logger.exception("Verification error: %s", exc)
        return _error(str(exc) or "Internal Server Error", 500)


@api.route("/health", methods=["GET"])
def health() -> tuple:
    return jsonify({
        "ok": True,
        "cache": _get_cache().enabled,
        "providers": _get_gateway().provider_names,
    }), 200
