from __future__ import annotations

import json
import os

import pytest

from truthlenz.app import build_verifier
from truthlenz.config.settings import Settings
from truthlenz.llm.gateway import ModelGateway
from truthlenz.llm.providers import Attempt, GatewayError, ModelProvider
from truthlenz.storage.database import Database

SKY_REPLY = json.dumps({
    "verdict": "reliable",
    "credibilityScore": 96,
    "explanation": "Rayleigh scattering makes the daytime sky appear blue.",
    "textAnalysis": {
        "verdict": "reliable",
        "reasons": ["Well-established physical phenomenon"],
        "sensationalLanguage": [],
        "emotionalPatterns": [],
    },
    "claimExtraction": {
        "mainClaim": "The sky is blue.",
        "factCheckResult": "confirmed",
        "sources": ["https://www.nasa.gov"],
    },
})


class ScriptedProvider(ModelProvider):
    """A provider whose replies are fixed per model name.

    A string reply is returned as model output, a ``GatewayError`` is
    returned as a failed attempt, and unknown models fail with a 404.
    """

    def __init__(self, name: str, replies: dict, calls: list) -> None:
        super().__init__(api_key="test-key")
        self.name = name
        self._replies = replies
        self._calls = calls

    def generate(self, model, system_prompt, segments):
        self._calls.append({
            "model": f"{self.name}:{model}",
            "prompt": system_prompt,
            "segments": list(segments),
        })
        reply = self._replies.get(model)
        if reply is None:
            return Attempt.failed(model, "http", "API error (404): model not found", 404)
        if isinstance(reply, GatewayError):
            return Attempt(model=model, error=reply)
        return Attempt(model=model, text=reply)


def rate_limited(model: str = "m") -> GatewayError:
    return GatewayError(model, "rate_limited", "rate limit exhausted: quota", 429)


def http_failure(model: str = "m", status: int = 500) -> GatewayError:
    return GatewayError(model, "http", f"API error ({status}): upstream broke", status)


@pytest.fixture
def make_gateway():
    """Factory: ``make_gateway({"google:model": reply, ...}) -> (gateway, calls)``."""

    def _make(replies: dict):
        calls: list = []
        per_provider: dict[str, dict] = {"google": {}, "openai": {}}
        for key, reply in replies.items():
            provider, model = key.split(":", 1)
            per_provider.setdefault(provider, {})[model] = reply
        providers = {
            name: ScriptedProvider(name, model_replies, calls)
            for name, model_replies in per_provider.items()
        }
        return ModelGateway(providers), calls

    return _make


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with short, predictable model chains."""
    return Settings(
        gemini_api_key="test-gemini-key",
        openai_api_key=None,
        text_models=["google:text-a", "google:text-b", "openai:text-c"],
        media_models=["google:media-a", "google:media-b"],
        secondary_models=["google:second-a"],
        database_path=str(tmp_path / "truthlenz_test.db"),
    )


@pytest.fixture
def temp_database(tmp_path):
    """A Database backed by a temporary SQLite file, cleaned up after the test."""
    db_file = str(tmp_path / "test_truthlenz.db")
    db = Database(db_path=db_file)
    yield db
    db.close()
    if os.path.exists(db_file):
        os.remove(db_file)


@pytest.fixture
def make_verifier(test_settings, temp_database, make_gateway):
    """Factory: ``make_verifier(replies) -> (verifier, cache, calls)``."""
    caches = []

    def _make(replies: dict, settings: Settings | None = None, database=temp_database):
        gateway, calls = make_gateway(replies)
        verifier, cache, _ = build_verifier(settings or test_settings, database, gateway)
        caches.append(cache)
        return verifier, cache, calls

    yield _make
    for cache in caches:
        cache.close()
