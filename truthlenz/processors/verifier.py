from __future__ import annotations

import logging
from typing import Any

from truthlenz.config.settings import Settings
from truthlenz.llm.gateway import GatewayResult, ModelGateway, parse_candidates
from truthlenz.llm.prompts import (
    REFERENCE_MEDIA_NOTE,
    TEXT_SYSTEM_PROMPT,
    media_system_prompt,
    text_user_prompt,
)
from truthlenz.llm.providers import MediaSegment, Segment, TextSegment
from truthlenz.models.analysis import ModelAnalysis
from truthlenz.models.types import CONTENT_KINDS, VerificationRequest
from truthlenz.processors.assembler import (
    ResponseAssembler,
    primary_media_verdict,
    primary_score,
)
from truthlenz.processors.canonical import canonical_input, fingerprint, split_data_url
from truthlenz.processors.corrections import (
    CorrectionRetriever,
    FewShotContext,
    FewShotContextBuilder,
)
from truthlenz.processors.ensemble import EnsembleReconciler
from truthlenz.storage.cache import ResultCache

logger = logging.getLogger(__name__)


class VerificationError(Exception):
    status = 500

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class InvalidRequestError(VerificationError):
    status = 400


class RateLimitedError(VerificationError):
    status = 429


class UpstreamError(VerificationError):
    status = 500


def request_from_payload(payload: Any) -> VerificationRequest:
    """Build a request from the JSON body accepted by the HTTP endpoint."""
    if not isinstance(payload, dict):
        raise InvalidRequestError("Request body must be a JSON object")

    kind = str(payload.get("type") or "text").strip().lower()
    if kind == "article":
        kind = "text"
    content = payload.get("content") or ""
    if not isinstance(content, str):
        raise InvalidRequestError("content must be a string")
    media_payload = payload.get("mediaBase64") or payload.get("imageBase64") or None
    if media_payload is not None and not isinstance(media_payload, str):
        raise InvalidRequestError("mediaBase64 must be a base64 string")
    media_label = payload.get("mediaDescription") or None
    if media_label is not None and not isinstance(media_label, str):
        raise InvalidRequestError("mediaDescription must be a string")
    preferred_model = payload.get("model") or None
    if preferred_model is not None and not isinstance(preferred_model, str):
        raise InvalidRequestError("model must be a string")

    return VerificationRequest(
        content=content,
        kind=kind,
        media_payload=media_payload,
        media_label=media_label,
        preferred_model=preferred_model,
    )


def validate_request(request: VerificationRequest) -> None:
    if request.kind not in CONTENT_KINDS:
        raise InvalidRequestError(
            f"Unsupported type '{request.kind}'. Choose from text, url, image, video"
        )
    if request.is_media:
        if not request.media_payload:
            raise InvalidRequestError(
                f"mediaBase64 is required for {request.kind} verification"
            )
    elif not request.content.strip():
        raise InvalidRequestError("content must not be empty")


class ContentVerifier:
    """Runs a verification request from cache lookup to assembled result."""

    def __init__(
        self,
        settings: Settings,
        gateway: ModelGateway,
        cache: ResultCache,
        retriever: CorrectionRetriever,
        reconciler: EnsembleReconciler,
        context_builder: FewShotContextBuilder | None = None,
        assembler: ResponseAssembler | None = None,
    ) -> None:
        self._settings = settings
        self._gateway = gateway
        self._cache = cache
        self._retriever = retriever
        self._reconciler = reconciler
        self._context_builder = context_builder or FewShotContextBuilder()
        self._assembler = assembler or ResponseAssembler()

    def verify(self, request: VerificationRequest) -> dict[str, Any]:
        validate_request(request)

        canonical = canonical_input(request)
        content_hash = fingerprint(canonical)
        logger.info("Processing %s verification with hash: %s", request.kind, content_hash)

        cached = self._cache.get(content_hash)
        if cached is not None:
            return cached.result

        lookup_content = request.media_payload if request.is_media else request.content
        corrections = self._retriever.retrieve(lookup_content or "", request.kind)
        context = self._context_builder.build(corrections, request.kind)

        if request.is_media:
            result = self._verify_media(request, context)
        else:
            result = self._verify_text(request, context)

        body = result.to_dict()
        self._cache.put(content_hash, request.kind, canonical, body)
        return body

    def _verify_text(self, request: VerificationRequest, context: FewShotContext):
        candidates = parse_candidates(
            self._settings.models_for(request.kind), request.preferred_model
        )
        segments: list[Segment] = [
            TextSegment(text_user_prompt(request.content, context.render()))
        ]
        outcome = self._gateway.call(
            candidates, TEXT_SYSTEM_PROMPT, segments, schema=ModelAnalysis
        )
        analysis = self._analysis_or_raise(outcome)
        return self._assembler.assemble(request, analysis)

    def _verify_media(self, request: VerificationRequest, context: FewShotContext):
        mime_type, data = split_data_url(request.media_payload, request.kind)
        target = MediaSegment(mime_type, data)

        segments: list[Segment] = []
        if context.media:
            segments.append(TextSegment(REFERENCE_MEDIA_NOTE.format(count=len(context.media))))
            segments.extend(context.media)
        segments.append(target)

        prompt = media_system_prompt(
            request.kind,
            request.content or request.media_label or "None",
            context.render(),
        )
        candidates = parse_candidates(
            self._settings.models_for(request.kind), request.preferred_model
        )
        outcome = self._gateway.call(candidates, prompt, segments, schema=ModelAnalysis)
        analysis = self._analysis_or_raise(outcome)

        reconciliation = self._reconciler.reconcile(
            primary_media_verdict(analysis), primary_score(analysis), [target]
        )
        return self._assembler.assemble(request, analysis, reconciliation)

    @staticmethod
    def _analysis_or_raise(outcome: GatewayResult) -> ModelAnalysis:
        if outcome.ok:
            return outcome.parsed

        details = [str(error) for error in outcome.errors]
        last = outcome.last_error
        message = last.message if last else "All model attempts failed"
        if outcome.rate_limited:
            raise RateLimitedError(
                f"Model quota exhausted: {message}. Try another model.", details
            )
        raise UpstreamError(message, details)
