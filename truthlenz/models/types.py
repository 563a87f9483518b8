from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

TEXT_KINDS = ("text", "url", "article")
MEDIA_KINDS = ("image", "video")
CONTENT_KINDS = TEXT_KINDS + MEDIA_KINDS

VERDICTS = ("reliable", "misleading", "fake", "inconclusive")
MEDIA_VERDICTS = ("real", "edited", "ai_generated", "suspicious", "inconclusive")
FACT_CHECK_RESULTS = ("confirmed", "disputed", "false", "unverified")
AGREEMENT_LEVELS = ("high", "medium", "low")

ANALYSIS_CATEGORIES = (
    "pixelAnalysis",
    "textureAnalysis",
    "semanticAnalysis",
    "brandAuthenticity",
    "humanAnalysis",
)
VIDEO_ANALYSIS_CATEGORIES = (
    "temporalAnalysis",
    "audioAnalysis",
    "frameConsistency",
)


@dataclass
class VerificationRequest:
    """A single piece of content submitted for verification."""

    content: str
    kind: str
    media_payload: str | None = None
    media_label: str | None = None
    preferred_model: str | None = None

    @property
    def is_media(self) -> bool:
        return self.kind in MEDIA_KINDS


@dataclass
class CacheEntry:
    """A previously computed verdict stored under its fingerprint."""

    fingerprint: str
    kind: str
    stored_input: str
    result: dict[str, Any]
    hit_count: int = 0


@dataclass
class CorrectionRecord:
    """A human correction of an earlier verdict, used as few-shot guidance."""

    original_content: str
    original_verdict: str
    correct_verdict: str
    user_explanation: str
    content_kind: str
    media_payload: str | None = None


@dataclass
class TextAnalysis:
    verdict: str = "inconclusive"
    reasons: list[str] = field(default_factory=list)
    sensational_language: list[str] = field(default_factory=list)
    emotional_patterns: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "verdict": self.verdict,
            "reasons": list(self.reasons),
            "sensationalLanguage": list(self.sensational_language),
            "emotionalPatterns": list(self.emotional_patterns),
        }


@dataclass
class ClaimExtraction:
    main_claim: str = ""
    fact_check_result: str = "unverified"
    sources: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mainClaim": self.main_claim,
            "factCheckResult": self.fact_check_result,
            "sources": list(self.sources),
        }


@dataclass
class InspectionDetail:
    category: str
    finding: str
    confidence: float = 0.5
    severity: str = "low"

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "finding": self.finding,
            "confidence": self.confidence,
            "severity": self.severity,
        }


@dataclass
class ModelAgreement:
    """How far the primary and secondary media verdicts agree."""

    primary_verdict: str
    secondary_verdict: str
    agreement_level: str
    confidence_adjustment: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "primaryVerdict": self.primary_verdict,
            "secondaryVerdict": self.secondary_verdict,
            "agreementLevel": self.agreement_level,
            "confidenceAdjustment": self.confidence_adjustment,
        }


@dataclass
class MediaVerification:
    description: str = ""
    media_type: str = "image"
    media_verdict: str = "inconclusive"
    authenticity_score: int = 50
    is_reused: bool = False
    reused_from: str | None = None
    manipulation_detected: bool = False
    matches_claim: bool = True
    flags: list[str] = field(default_factory=list)
    analysis: dict[str, list[InspectionDetail]] = field(default_factory=dict)
    model_agreement: ModelAgreement | None = None
    inspection_highlights: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        details: dict[str, Any] = {
            name: [item.to_dict() for item in items]
            for name, items in self.analysis.items()
        }
        if self.model_agreement is not None:
            details["modelAgreement"] = self.model_agreement.to_dict()

        data: dict[str, Any] = {
            "description": self.description,
            "mediaType": self.media_type,
            "mediaVerdict": self.media_verdict,
            "imageVerdict": self.media_verdict,
            "authenticityScore": self.authenticity_score,
            "isReused": self.is_reused,
            "manipulationDetected": self.manipulation_detected,
            "matchesClaim": self.matches_claim,
            "flags": list(self.flags),
            "analysisDetails": details,
            "inspectionHighlights": list(self.inspection_highlights),
        }
        if self.reused_from:
            data["reusedFrom"] = self.reused_from
        return data


@dataclass
class VerificationResult:
    """The public verification contract returned to every caller."""

    id: str
    credibility_score: int
    verdict: str
    text_analysis: TextAnalysis
    claim_extraction: ClaimExtraction
    explanation: str
    timestamp: str
    media_verification: MediaVerification | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "credibilityScore": self.credibility_score,
            "verdict": self.verdict,
            "textAnalysis": self.text_analysis.to_dict(),
            "claimExtraction": self.claim_extraction.to_dict(),
            "explanation": self.explanation,
            "timestamp": self.timestamp,
        }
        if self.media_verification is not None:
            data["mediaVerification"] = self.media_verification.to_dict()
        return data
