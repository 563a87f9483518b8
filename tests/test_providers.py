"""Tests for truthlenz.llm.providers, with the HTTP layer mocked out."""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import requests

from truthlenz.llm.providers import (
    GEMINI_ENDPOINT,
    OPENAI_ENDPOINT,
    GeminiProvider,
    MediaSegment,
    OpenAIProvider,
    TextSegment,
    build_providers,
)

SEGMENTS = [TextSegment("Check this photo"), MediaSegment("image/png", "QUJD")]


def _response(status: int = 200, payload=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = text
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def _gemini_payload(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class TestGeminiProvider:
    @patch("truthlenz.llm.providers.requests.post")
    def test_request_shape(self, mock_post):
        mock_post.return_value = _response(payload=_gemini_payload('{"verdict": "real"}'))
        provider = GeminiProvider("g-key", timeout=12)

        attempt = provider.generate("gemini-2.5-flash", "system prompt", SEGMENTS)

        assert attempt.ok
        assert attempt.text == '{"verdict": "real"}'
        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        assert url == GEMINI_ENDPOINT.format(model="gemini-2.5-flash")
        assert kwargs["headers"]["x-goog-api-key"] == "g-key"
        assert kwargs["timeout"] == 12
        parts = kwargs["json"]["contents"][0]["parts"]
        assert parts[0] == {"text": "system prompt"}
        assert parts[1] == {"text": "Check this photo"}
        assert parts[2] == {"inline_data": {"mime_type": "image/png", "data": "QUJD"}}
        assert kwargs["json"]["generationConfig"]["response_mime_type"] == "application/json"

    @patch("truthlenz.llm.providers.requests.post")
    def test_rate_limit(self, mock_post):
        mock_post.return_value = _response(429, text="RESOURCE_EXHAUSTED")
        attempt = GeminiProvider("g-key").generate("m", "s", SEGMENTS)

        assert not attempt.ok
        assert attempt.error.rate_limited
        assert attempt.error.status == 429
        assert "RESOURCE_EXHAUSTED" in attempt.error.message

    @patch("truthlenz.llm.providers.requests.post")
    def test_server_error(self, mock_post):
        mock_post.return_value = _response(500, text="internal")
        attempt = GeminiProvider("g-key").generate("m", "s", SEGMENTS)

        assert attempt.error.kind == "http"
        assert attempt.error.status == 500
        assert not attempt.error.rate_limited

    @patch("truthlenz.llm.providers.requests.post")
    def test_timeout(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")
        attempt = GeminiProvider("g-key", timeout=5).generate("m", "s", SEGMENTS)
        assert attempt.error.kind == "timeout"

    @patch("truthlenz.llm.providers.requests.post")
    def test_connection_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        attempt = GeminiProvider("g-key").generate("m", "s", SEGMENTS)
        assert attempt.error.kind == "transport"

    @patch("truthlenz.llm.providers.requests.post")
    def test_blocked_reply_has_no_text(self, mock_post):
        mock_post.return_value = _response(payload={"candidates": []})
        attempt = GeminiProvider("g-key").generate("m", "s", SEGMENTS)
        assert attempt.error.kind == "empty"

    @patch("truthlenz.llm.providers.requests.post")
    def test_missing_key_never_calls_api(self, mock_post):
        attempt = GeminiProvider(None).generate("m", "s", SEGMENTS)

        assert attempt.error.kind == "missing_credentials"
        mock_post.assert_not_called()


class TestOpenAIProvider:
    @patch("truthlenz.llm.providers.requests.post")
    def test_request_shape(self, mock_post):
        mock_post.return_value = _response(
            payload={"choices": [{"message": {"content": ' {"verdict": "fake"} '}}]}
        )
        provider = OpenAIProvider("o-key")

        attempt = provider.generate("gpt-4o-mini", "system prompt", SEGMENTS)

        assert attempt.text == '{"verdict": "fake"}'
        assert mock_post.call_args.args[0] == OPENAI_ENDPOINT
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"]["Authorization"] == "Bearer o-key"
        body = kwargs["json"]
        assert body["model"] == "gpt-4o-mini"
        assert body["messages"][0] == {"role": "system", "content": "system prompt"}
        user_content = body["messages"][1]["content"]
        assert user_content[0] == {"type": "text", "text": "Check this photo"}
        assert user_content[1]["image_url"]["url"] == "data:image/png;base64,QUJD"
        assert body["response_format"] == {"type": "json_object"}

    @patch("truthlenz.llm.providers.requests.post")
    def test_non_json_body(self, mock_post):
        mock_post.return_value = _response(payload=None)
        attempt = OpenAIProvider("o-key").generate("gpt-4o", "s", SEGMENTS)
        assert attempt.error.kind == "empty"


class TestBuildProviders:
    def test_configured_flags(self):
        providers = build_providers({"google": "g-key", "openai": None}, timeout=30)
        assert providers["google"].configured
        assert not providers["openai"].configured


class TestMalformedReplies:
    @patch("truthlenz.llm.providers.requests.post")
    def test_list_body_is_an_empty_attempt(self, mock_post):
        mock_post.return_value = _response(payload=["unexpected", "list"])
        attempt = GeminiProvider("g-key").generate("m", "s", SEGMENTS)

        assert not attempt.ok
        assert attempt.error.kind == "empty"

    @patch("truthlenz.llm.providers.requests.post")
    def test_gemini_odd_candidate_shapes(self, mock_post):
        provider = GeminiProvider("g-key")
        for payload in (
            {"candidates": ["not a dict"]},
            {"candidates": {"content": {}}},
            {"candidates": [{"content": "text"}]},
            {"candidates": [{"content": {"parts": [{"text": None}, {"text": 7}]}}]},
        ):
            mock_post.return_value = _response(payload=payload)
            assert provider.generate("m", "s", SEGMENTS).error.kind == "empty"

    @patch("truthlenz.llm.providers.requests.post")
    def test_gemini_skips_non_string_parts(self, mock_post):
        mock_post.return_value = _response(payload={
            "candidates": [{"content": {"parts": [{"text": None}, {"text": '{"a": 1}'}]}}]
        })
        assert GeminiProvider("g-key").generate("m", "s", SEGMENTS).text == '{"a": 1}'

    @patch("truthlenz.llm.providers.requests.post")
    def test_openai_odd_choice_shapes(self, mock_post):
        provider = OpenAIProvider("o-key")
        for payload in (
            {"choices": ["not a dict"]},
            {"choices": [{"message": "hello"}]},
            {"choices": [{"message": {"content": None}}]},
            {"choices": None},
        ):
            mock_post.return_value = _response(payload=payload)
            assert provider.generate("gpt-4o", "s", SEGMENTS).error.kind == "empty"
