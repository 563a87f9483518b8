from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

CONFIG_FILE = Path("truthlenz_config.json")

PROVIDER_ENV_VARS = {
    "google": ("GEMINI_API_KEY", "geminiapikey"),
    "openai": ("OPENAI_API_KEY",),
}

DEFAULT_CONFIG: dict[str, Any] = {
    "text_models": [
        "google:gemini-1.5-flash",
        "google:gemini-1.5-pro",
        "google:gemini-2.0-flash",
        "openai:gpt-4o",
    ],
    "media_models": [
        "google:gemini-1.5-pro",
        "google:gemini-1.5-flash",
        "google:gemini-2.0-flash",
        "openai:gpt-4o",
    ],
    "secondary_models": [
        "google:gemini-2.0-flash",
        "openai:gpt-4o-mini",
    ],
    "max_payload_bytes": 7 * 1024 * 1024,
    "model_timeout_seconds": 60.0,
    "cache_enabled": True,
    "cache_input_limit": 1000,
    "database_path": "truthlenz.db",
    "few_shot": {
        "exact_match_limit": 3,
        "recent_limit": 10,
        "max_examples": 5,
        "max_media_examples": 2,
        "content_excerpt_chars": 200,
        "explanation_chars": 300,
    },
    "agreement": {
        "medium_penalty": 10,
        "medium_floor": 5,
        "low_penalty": 25,
        "low_floor": 10,
    },
    "host": "127.0.0.1",
    "port": 5001,
    "log_level": "INFO",
}


@dataclass
class Settings:
    """Holds all application configuration loaded from environment variables and config file."""

    gemini_api_key: str | None = None
    openai_api_key: str | None = None
    text_models: list[str] = field(
        default_factory=lambda: list(DEFAULT_CONFIG["text_models"])
    )
    media_models: list[str] = field(
        default_factory=lambda: list(DEFAULT_CONFIG["media_models"])
    )
    secondary_models: list[str] = field(
        default_factory=lambda: list(DEFAULT_CONFIG["secondary_models"])
    )
    max_payload_bytes: int = DEFAULT_CONFIG["max_payload_bytes"]
    model_timeout_seconds: float = DEFAULT_CONFIG["model_timeout_seconds"]
    cache_enabled: bool = True
    cache_input_limit: int = DEFAULT_CONFIG["cache_input_limit"]
    database_path: str = DEFAULT_CONFIG["database_path"]
    few_shot: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_CONFIG["few_shot"])
    )
    agreement: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_CONFIG["agreement"])
    )
    host: str = DEFAULT_CONFIG["host"]
    port: int = DEFAULT_CONFIG["port"]
    log_level: str = DEFAULT_CONFIG["log_level"]

    def api_keys(self) -> dict[str, str | None]:
        return {"google": self.gemini_api_key, "openai": self.openai_api_key}

    def models_for(self, kind: str) -> list[str]:
        if kind in ("image", "video"):
            return list(self.media_models)
        return list(self.text_models)


def _load_config_file() -> dict[str, Any]:
    if CONFIG_FILE.exists():
        with open(CONFIG_FILE, encoding="utf-8") as f:
            user_config = json.load(f)
        merged = {**DEFAULT_CONFIG, **user_config}
        for section in ("few_shot", "agreement"):
            merged[section] = {
                **DEFAULT_CONFIG[section],
                **user_config.get(section, {}),
            }
        return merged
    return dict(DEFAULT_CONFIG)


def _read_provider_key(provider: str) -> str | None:
    for var in PROVIDER_ENV_VARS[provider]:
        value = os.getenv(var)
        if value:
            return value
    return None


def _validate_env_vars() -> dict[str, str | None]:
    env_values = {
        provider: _read_provider_key(provider) for provider in PROVIDER_ENV_VARS
    }
    if not any(env_values.values()):
        names = [var for names in PROVIDER_ENV_VARS.values() for var in names]
        raise EnvironmentError(
            f"No model provider key configured; set one of: {', '.join(names)}. "
            "Please set it in your .env file or system environment."
        )
    return env_values


def load_settings() -> Settings:
    env_values = _validate_env_vars()
    config = _load_config_file()

    return Settings(
        gemini_api_key=env_values["google"],
        openai_api_key=env_values["openai"],
        text_models=list(config.get("text_models", DEFAULT_CONFIG["text_models"])),
        media_models=list(config.get("media_models", DEFAULT_CONFIG["media_models"])),
        secondary_models=list(
            config.get("secondary_models", DEFAULT_CONFIG["secondary_models"])
        ),
        max_payload_bytes=int(
            config.get("max_payload_bytes", DEFAULT_CONFIG["max_payload_bytes"])
        ),
        model_timeout_seconds=float(
            config.get("model_timeout_seconds", DEFAULT_CONFIG["model_timeout_seconds"])
        ),
        cache_enabled=bool(config.get("cache_enabled", DEFAULT_CONFIG["cache_enabled"])),
        cache_input_limit=int(
            config.get("cache_input_limit", DEFAULT_CONFIG["cache_input_limit"])
        ),
        database_path=os.getenv(
            "TRUTHLENZ_DB_PATH",
            config.get("database_path", DEFAULT_CONFIG["database_path"]),
        ),
        few_shot=dict(config.get("few_shot", DEFAULT_CONFIG["few_shot"])),
        agreement=dict(config.get("agreement", DEFAULT_CONFIG["agreement"])),
        host=config.get("host", DEFAULT_CONFIG["host"]),
        port=int(config.get("port", DEFAULT_CONFIG["port"])),
        log_level=os.getenv("LOG_LEVEL", config.get("log_level", DEFAULT_CONFIG["log_level"])),
    )
