from __future__ import annotations

import logging
import signal
import sys
from wsgiref.simple_server import make_server

from flask import Flask
from flask_cors import CORS

from truthlenz.api.routes import api
from truthlenz.config.logging import setup_logging
from truthlenz.config.settings import Settings, load_settings
from truthlenz.llm.gateway import ModelGateway, parse_candidates
from truthlenz.llm.providers import build_providers
from truthlenz.processors.corrections import CorrectionRetriever, FewShotContextBuilder
from truthlenz.processors.ensemble import AgreementPolicy, EnsembleReconciler
from truthlenz.processors.verifier import ContentVerifier
from truthlenz.storage.cache import ResultCache
from truthlenz.storage.database import Database

logger = logging.getLogger(__name__)

CORS_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def build_verifier(
    settings: Settings,
    database: Database | None,
    gateway: ModelGateway | None = None,
) -> tuple[ContentVerifier, ResultCache, ModelGateway]:
    if gateway is None:
        gateway = ModelGateway(
            build_providers(settings.api_keys(), settings.model_timeout_seconds)
        )
    cache = ResultCache(
        database,
        enabled=settings.cache_enabled,
        input_limit=settings.cache_input_limit,
    )
    few_shot = settings.few_shot
    retriever = CorrectionRetriever(
        database,
        exact_match_limit=few_shot.get("exact_match_limit", 3),
        recent_limit=few_shot.get("recent_limit", 10),
    )
    context_builder = FewShotContextBuilder(
        max_examples=few_shot.get("max_examples", 5),
        max_media_examples=few_shot.get("max_media_examples", 2),
        content_excerpt_chars=few_shot.get("content_excerpt_chars", 200),
        explanation_chars=few_shot.get("explanation_chars", 300),
    )
    reconciler = EnsembleReconciler(
        gateway,
        parse_candidates(settings.secondary_models),
        AgreementPolicy.from_config(settings.agreement),
    )
    verifier = ContentVerifier(
        settings,
        gateway,
        cache,
        retriever,
        reconciler,
        context_builder=context_builder,
    )
    return verifier, cache, gateway


def create_flask_app(
    settings: Settings,
    verifier: ContentVerifier,
    cache: ResultCache,
    gateway: ModelGateway,
) -> Flask:
    app = Flask(__name__)
    CORS(
        app,
        resources={r"/*": {"origins": "*"}},
        allow_headers=CORS_HEADERS,
        send_wildcard=True,
    )

    app.config["SETTINGS"] = settings
    app.config["VERIFIER"] = verifier
    app.config["CACHE"] = cache
    app.config["GATEWAY"] = gateway
    app.config["MAX_CONTENT_LENGTH"] = settings.max_payload_bytes

    app.register_blueprint(api)
    return app


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    logger.info("Starting TruthLenz verification service...")

    database: Database | None = None
    try:
        database = Database(settings.database_path)
    except Exception as exc:
        logger.error("Database unavailable, running without cache: %s", exc)

    verifier, cache, gateway = build_verifier(settings, database)
    app = create_flask_app(settings, verifier, cache, gateway)

    def _shutdown(sig: int, _frame: object) -> None:
        logger.info("Received signal %s, shutting down...", sig)
        cache.close()
        if database is not None:
            database.close()
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    server = make_server(settings.host, settings.port, app)
    logger.info("Server listening on http://%s:%d", settings.host, settings.port)
    server.serve_forever()


if __name__ == "__main__":
    main()
