from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

import requests

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
OPENAI_ENDPOINT = "https://api.openai.com/v1/chat/completions"

_ERROR_BODY_LIMIT = 300


@dataclass(frozen=True)
class TextSegment:
    text: str


@dataclass(frozen=True)
class MediaSegment:
    mime_type: str
    data: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


Segment = Union[TextSegment, MediaSegment]


@dataclass(frozen=True)
class GatewayError:
    """Why a single model attempt produced no usable output."""

    model: str
    kind: str
    message: str
    status: int | None = None

    @property
    def rate_limited(self) -> bool:
        return self.kind == "rate_limited"

    def __str__(self) -> str:
        return f"{self.model}: {self.message}"


@dataclass(frozen=True)
class Attempt:
    """Outcome of one provider call: reply text or an error, never both."""

    model: str
    text: str | None = None
    error: GatewayError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None

    @classmethod
    def failed(cls, model: str, kind: str, message: str, status: int | None = None) -> "Attempt":
        return cls(model=model, error=GatewayError(model, kind, message, status))


class ModelProvider:
    """Base class for a generative-model HTTP API."""

    name = "base"

    def __init__(self, api_key: str | None, timeout: float = 60.0) -> None:
        self._api_key = api_key
        self._timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def generate(self, model: str, system_prompt: str, segments: list[Segment]) -> Attempt:
        if not self.configured:
            return Attempt.failed(
                model, "missing_credentials", f"no API key configured for {self.name}"
            )

        url, headers, body = self._build_request(model, system_prompt, segments)
        try:
            response = requests.post(url, headers=headers, json=body, timeout=self._timeout)
        except requests.Timeout:
            return Attempt.failed(model, "timeout", f"timed out after {self._timeout:.0f}s")
        except requests.RequestException as exc:
            return Attempt.failed(model, "transport", f"transport error: {exc}")

        if response.status_code == 429:
            return Attempt.failed(
                model, "rate_limited", f"rate limit exhausted: {_short(response.text)}", 429
            )
        if not response.ok:
            return Attempt.failed(
                model,
                "http",
                f"API error ({response.status_code}): {_short(response.text)}",
                response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            return Attempt.failed(model, "empty", "response body is not JSON")
        if not isinstance(payload, dict):
            return Attempt.failed(model, "empty", "response body is not a JSON object")

        text = self._extract_text(payload)
        if not text:
            return Attempt.failed(model, "empty", f"no content in {self.name} response")
        return Attempt(model=model, text=text)

    def _build_request(
        self, model: str, system_prompt: str, segments: list[Segment]
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        raise NotImplementedError

    def _extract_text(self, payload: dict[str, Any]) -> str | None:
        raise NotImplementedError


class GeminiProvider(ModelProvider):
    name = "google"

    def _build_request(self, model, system_prompt, segments):
        parts: list[dict[str, Any]] = [{"text": system_prompt}]
        for segment in segments:
            if isinstance(segment, MediaSegment):
                parts.append(
                    {"inline_data": {"mime_type": segment.mime_type, "data": segment.data}}
                )
            else:
                parts.append({"text": segment.text})

        body = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {"response_mime_type": "application/json"},
        }
        headers = {"Content-Type": "application/json", "x-goog-api-key": self._api_key}
        return GEMINI_ENDPOINT.format(model=model), headers, body

    def _extract_text(self, payload):
        candidates = payload.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        first = candidates[0]
        content = first.get("content") if isinstance(first, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            return None
        texts = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "".join(texts).strip() or None


class OpenAIProvider(ModelProvider):
    name = "openai"

    def _build_request(self, model, system_prompt, segments):
        content: list[dict[str, Any]] = []
        for segment in segments:
            if isinstance(segment, MediaSegment):
                content.append({"type": "image_url", "image_url": {"url": segment.data_url}})
            else:
                content.append({"type": "text", "text": segment.text})

        body = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }
        return OPENAI_ENDPOINT, headers, body

    def _extract_text(self, payload):
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return None
        first = choices[0]
        message = first.get("message") if isinstance(first, dict) else None
        if not isinstance(message, dict):
            return None
        text = message.get("content")
        return text.strip() if isinstance(text, str) and text.strip() else None


def build_providers(api_keys: dict[str, str | None], timeout: float) -> dict[str, ModelProvider]:
    return {
        "google": GeminiProvider(api_keys.get("google"), timeout=timeout),
        "openai": OpenAIProvider(api_keys.get("openai"), timeout=timeout),
    }


def _short(text: str) -> str:
    text = (text or "").strip().replace("\n", " ")
    if len(text) > _ERROR_BODY_LIMIT:
        return text[:_ERROR_BODY_LIMIT] + "..."
    return text
