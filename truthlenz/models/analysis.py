"""Loose schemas for the JSON that generative models send back.

Model output is untrusted: fields go missing, change type between
providers, or arrive as strings where numbers are expected. These models
accept all of that, coerce what can be coerced and leave ``None`` (or an
empty container) behind for everything else. Unknown fields are kept so the
assembler can look for provider-specific spellings.
"""
from __future__ import annotations

import math
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

_NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")


def coerce_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        # json.loads accepts NaN and Infinity
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        match = _NUMBER_PATTERN.search(value)
        if match:
            return float(match.group(0))
    return None


def coerce_score(value: Any) -> float | None:
    number = coerce_number(value)
    if number is None:
        return None
    return max(0.0, min(100.0, number))


def coerce_label(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    label = re.sub(r"[\s\-]+", "_", value.strip().lower())
    return label or None


def coerce_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def coerce_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            text = coerce_text(item)
            if text:
                items.append(text)
        return items
    return []


def coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1"):
            return True
        if lowered in ("false", "no", "0"):
            return False
    return None


class _LooseModel(BaseModel):
    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class LooseTextAnalysis(_LooseModel):
    verdict: str | None = None
    reasons: list[str] = []
    sensational_language: list[str] = []
    emotional_patterns: list[str] = []

    @field_validator("verdict", mode="before")
    @classmethod
    def _verdict(cls, value: Any) -> str | None:
        return coerce_label(value)

    @field_validator(
        "reasons", "sensational_language", "emotional_patterns", mode="before"
    )
    @classmethod
    def _lists(cls, value: Any) -> list[str]:
        return coerce_str_list(value)


class LooseClaimExtraction(_LooseModel):
    main_claim: str | None = None
    fact_check_result: str | None = None
    sources: list[str] = []

    @field_validator("main_claim", mode="before")
    @classmethod
    def _main_claim(cls, value: Any) -> str | None:
        return coerce_text(value)

    @field_validator("fact_check_result", mode="before")
    @classmethod
    def _fact_check(cls, value: Any) -> str | None:
        return coerce_label(value)

    @field_validator("sources", mode="before")
    @classmethod
    def _sources(cls, value: Any) -> list[str]:
        return coerce_str_list(value)


class ModelAnalysis(_LooseModel):
    """Whatever a primary model call returned, loosely typed."""

    verdict: str | None = None
    credibility_score: float | None = None
    explanation: str | None = None
    text_analysis: LooseTextAnalysis | None = None
    claim_extraction: LooseClaimExtraction | None = None
    fact_check_result: str | None = None

    media_verdict: str | None = None
    image_verdict: str | None = None
    authenticity_score: float | None = None
    description: str | None = None
    analysis_details: dict[str, Any] = {}
    flags: list[str] = []
    inspection_highlights: list[str] = []
    is_reused: bool | None = None
    reused_from: str | None = None
    manipulation_detected: bool | None = None
    matches_claim: bool | None = None

    @field_validator(
        "verdict", "fact_check_result", "media_verdict", "image_verdict", mode="before"
    )
    @classmethod
    def _labels(cls, value: Any) -> str | None:
        return coerce_label(value)

    @field_validator("credibility_score", "authenticity_score", mode="before")
    @classmethod
    def _scores(cls, value: Any) -> float | None:
        return coerce_score(value)

    @field_validator("explanation", "description", "reused_from", mode="before")
    @classmethod
    def _texts(cls, value: Any) -> str | None:
        return coerce_text(value)

    @field_validator("text_analysis", "claim_extraction", mode="before")
    @classmethod
    def _nested(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @field_validator("flags", "inspection_highlights", mode="before")
    @classmethod
    def _lists(cls, value: Any) -> list[str]:
        return coerce_str_list(value)

    @field_validator(
        "is_reused", "manipulation_detected", "matches_claim", mode="before"
    )
    @classmethod
    def _bools(cls, value: Any) -> bool | None:
        return coerce_bool(value)

    @field_validator("analysis_details", mode="before")
    @classmethod
    def _details(cls, value: Any) -> dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def score(self) -> float | None:
        if self.credibility_score is not None:
            return self.credibility_score
        return self.authenticity_score

    @property
    def resolved_media_verdict(self) -> str | None:
        return self.media_verdict or self.image_verdict


class SecondaryOpinion(_LooseModel):
    """The terse second opinion used for ensemble agreement."""

    verdict: str | None = None
    confidence: float | None = None

    @field_validator("verdict", mode="before")
    @classmethod
    def _verdict(cls, value: Any) -> str | None:
        return coerce_label(value)

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> float | None:
        number = coerce_number(value)
        if number is None:
            return None
        if number > 1:
            number = number / 100
        return max(0.0, min(1.0, number))

    @classmethod
    def from_reply(cls, data: dict[str, Any]) -> "SecondaryOpinion":
        if "verdict" not in data:
            for key in ("mediaVerdict", "imageVerdict"):
                if key in data:
                    data = {**data, "verdict": data[key]}
                    break
        return cls.model_validate(data)
