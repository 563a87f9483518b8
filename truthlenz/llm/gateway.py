from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from pydantic import BaseModel, ValidationError

from truthlenz.llm.providers import Attempt, GatewayError, ModelProvider, Segment

logger = logging.getLogger(__name__)

_OPENAI_PREFIXES = ("gpt-", "o1", "o3", "o4", "chatgpt")


@dataclass(frozen=True)
class ModelCandidate:
    provider: str
    model: str

    @classmethod
    def parse(cls, identifier: str) -> "ModelCandidate":
        """Parse ``provider:model``; bare names are routed by their prefix."""
        identifier = identifier.strip()
        if ":" in identifier:
            provider, model = identifier.split(":", 1)
            return cls(provider.strip().lower(), model.strip())
        if identifier.lower().startswith(_OPENAI_PREFIXES):
            return cls("openai", identifier)
        return cls("google", identifier)

    def __str__(self) -> str:
        return f"{self.provider}:{self.model}"


def parse_candidates(identifiers: list[str], preferred: str | None = None) -> list[ModelCandidate]:
    """Build an ordered, de-duplicated chain with *preferred* tried first."""
    ordered = ([preferred] if preferred else []) + list(identifiers)
    chain: list[ModelCandidate] = []
    for identifier in ordered:
        if not identifier or not identifier.strip():
            continue
        candidate = ModelCandidate.parse(identifier)
        if candidate not in chain:
            chain.append(candidate)
    return chain


@dataclass
class GatewayResult:
    """Tagged outcome of a whole fallback chain."""

    ok: bool
    data: dict[str, Any] | None = None
    model: str | None = None
    errors: list[GatewayError] = field(default_factory=list)
    parsed: Any = None

    @property
    def attempted(self) -> list[str]:
        tried = [error.model for error in self.errors]
        if self.ok and self.model:
            tried.append(self.model)
        return tried

    @property
    def last_error(self) -> GatewayError | None:
        return self.errors[-1] if self.errors else None

    @property
    def rate_limited(self) -> bool:
        return not self.ok and self.last_error is not None and self.last_error.rate_limited


def extract_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring of *text*.

    Braces inside JSON string literals are ignored, so prose, code fences
    and trailing commentary around the object do not matter.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start:index + 1]
        start = text.find("{", start + 1)
    return None


def parse_reply(attempt: Attempt) -> tuple[dict[str, Any] | None, GatewayError | None]:
    raw = extract_json_object(attempt.text or "")
    if raw is None:
        return None, GatewayError(attempt.model, "no_json", "reply contains no JSON object")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        return None, GatewayError(attempt.model, "invalid_json", f"unparseable JSON: {exc}")
    if not isinstance(data, dict):
        return None, GatewayError(attempt.model, "invalid_json", "reply JSON is not an object")
    return data, None


class ModelGateway:
    """Runs a prompt through an ordered chain of model candidates.

    Each candidate is attempted at most once, strictly in order, until one
    returns a reply containing a parseable JSON object.
    """

    def __init__(self, providers: dict[str, ModelProvider]) -> None:
        self._providers = providers

    @property
    def provider_names(self) -> list[str]:
        return [name for name, provider in self._providers.items() if provider.configured]

    def call(
        self,
        candidates: list[ModelCandidate],
        system_prompt: str,
        segments: list[Segment],
        schema: type[BaseModel] | None = None,
    ) -> GatewayResult:
        """Try *candidates* in order and return the first usable reply.

        When *schema* is given the parsed object must validate against it,
        otherwise the candidate counts as failed.
        """
        errors: list[GatewayError] = []

        for candidate in candidates:
            attempt = self._attempt(candidate, system_prompt, segments)
            if not attempt.ok:
                logger.warning("Model %s failed: %s", candidate, attempt.error.message)
                errors.append(attempt.error)
                continue

            data, error = parse_reply(attempt)
            if error is not None:
                logger.warning("Model %s returned unusable output: %s", candidate, error.message)
                errors.append(error)
                continue

            parsed = None
            if schema is not None:
                try:
                    parsed = schema.model_validate(data)
                except ValidationError as exc:
                    logger.warning("Model %s reply failed validation: %s", candidate, exc)
                    errors.append(GatewayError(str(candidate), "invalid_schema", str(exc)))
                    continue

            logger.info("Model %s produced a verdict", candidate)
            return GatewayResult(
                ok=True, data=data, model=str(candidate), errors=errors, parsed=parsed
            )

        if not candidates:
            errors.append(GatewayError("none", "no_candidates", "no model candidates configured"))
        logger.error("All %d model candidates failed", len(candidates))
        return GatewayResult(ok=False, errors=errors)

    def _attempt(
        self, candidate: ModelCandidate, system_prompt: str, segments: list[Segment]
    ) -> Attempt:
        provider = self._providers.get(candidate.provider)
        if provider is None:
            return Attempt.failed(
                str(candidate), "unknown_provider", f"unknown provider '{candidate.provider}'"
            )
        logger.info("Attempting analysis with model: %s", candidate)
        attempt = provider.generate(candidate.model, system_prompt, segments)
        # Providers report the bare model name; the chain reports provider:model.
        error = replace(attempt.error, model=str(candidate)) if attempt.error else None
        return Attempt(model=str(candidate), text=attempt.text, error=error)
