from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from truthlenz.models.analysis import (
    LooseClaimExtraction,
    LooseTextAnalysis,
    ModelAnalysis,
    coerce_number,
    coerce_text,
)
from truthlenz.models.types import (
    ANALYSIS_CATEGORIES,
    FACT_CHECK_RESULTS,
    MEDIA_VERDICTS,
    VERDICTS,
    VIDEO_ANALYSIS_CATEGORIES,
    ClaimExtraction,
    InspectionDetail,
    MediaVerification,
    TextAnalysis,
    VerificationRequest,
    VerificationResult,
)
from truthlenz.processors.ensemble import Reconciliation


DEFAULT_SCORE = 50
DEFAULT_EXPLANATION = "Analysis complete; the model did not provide further explanation."
DEFAULT_MEDIA_EXPLANATION = "Forensic analysis complete"
MAIN_CLAIM_CHARS = 280
SEVERITIES = ("low", "medium", "high")

_CATEGORY_TITLES = {
    "pixelAnalysis": "Pixel Analysis",
    "textureAnalysis": "Texture Analysis",
    "semanticAnalysis": "Semantic Analysis",
    "brandAuthenticity": "Brand Authenticity",
    "humanAnalysis": "Human Analysis",
    "temporalAnalysis": "Temporal Analysis",
    "audioAnalysis": "Audio Analysis",
    "frameConsistency": "Frame Consistency",
}


def _allowed(label: str | None, allowed: tuple[str, ...], default: str) -> str:
    return label if label in allowed else default


def _score(value: float | None) -> int:
    if value is None:
        return DEFAULT_SCORE
    return int(round(max(0.0, min(100.0, value))))


def primary_score(analysis: ModelAnalysis) -> int:
    return _score(analysis.score)


def primary_media_verdict(analysis: ModelAnalysis) -> str:
    return _allowed(analysis.resolved_media_verdict, MEDIA_VERDICTS, "inconclusive")


class ResponseAssembler:
    """Maps loosely-typed model output onto the fixed public result."""

    def assemble(
        self,
        request: VerificationRequest,
        analysis: ModelAnalysis,
        reconciliation: Reconciliation | None = None,
    ) -> VerificationResult:
        verdict = _allowed(analysis.verdict, VERDICTS, "inconclusive")
        score = _score(analysis.score)

        media = None
        if request.is_media:
            media = self._media_verification(request, analysis, score, reconciliation)
            score = media.authenticity_score

        explanation = analysis.explanation or (
            DEFAULT_MEDIA_EXPLANATION if request.is_media else DEFAULT_EXPLANATION
        )

        return VerificationResult(
            id=str(uuid.uuid4()),
            credibility_score=score,
            verdict=verdict,
            text_analysis=self._text_analysis(analysis.text_analysis, verdict),
            claim_extraction=self._claim_extraction(request, analysis),
            explanation=explanation,
            timestamp=datetime.now(tz=timezone.utc).isoformat(),
            media_verification=media,
        )

    def _text_analysis(self, loose: LooseTextAnalysis | None, verdict: str) -> TextAnalysis:
        if loose is None:
            return TextAnalysis(verdict=verdict)
        return TextAnalysis(
            verdict=_allowed(loose.verdict, VERDICTS, verdict),
            reasons=list(loose.reasons),
            sensational_language=list(loose.sensational_language),
            emotional_patterns=list(loose.emotional_patterns),
        )

    def _claim_extraction(
        self, request: VerificationRequest, analysis: ModelAnalysis
    ) -> ClaimExtraction:
        loose = analysis.claim_extraction or LooseClaimExtraction()
        fallback_claim = (request.content or "").strip()[:MAIN_CLAIM_CHARS]
        if not fallback_claim:
            fallback_claim = request.media_label or "Media Analysis"
        return ClaimExtraction(
            main_claim=loose.main_claim or fallback_claim,
            fact_check_result=_allowed(
                loose.fact_check_result or analysis.fact_check_result,
                FACT_CHECK_RESULTS,
                "unverified",
            ),
            sources=list(loose.sources),
        )

    def _media_verification(
        self,
        request: VerificationRequest,
        analysis: ModelAnalysis,
        score: int,
        reconciliation: Reconciliation | None,
    ) -> MediaVerification:
        media_verdict = primary_media_verdict(analysis)
        flags = list(analysis.flags)
        agreement = None
        if reconciliation is not None:
            score = reconciliation.authenticity_score
            agreement = reconciliation.agreement
            flags.extend(flag for flag in reconciliation.flags if flag not in flags)

        manipulation = analysis.manipulation_detected
        if manipulation is None:
            manipulation = media_verdict in ("edited", "ai_generated")

        return MediaVerification(
            description=analysis.description or "",
            media_type=request.kind,
            media_verdict=media_verdict,
            authenticity_score=score,
            is_reused=bool(analysis.is_reused),
            reused_from=analysis.reused_from,
            manipulation_detected=manipulation,
            matches_claim=True if analysis.matches_claim is None else analysis.matches_claim,
            flags=flags,
            analysis=self._analysis_details(analysis.analysis_details, request.kind),
            model_agreement=agreement,
            inspection_highlights=list(analysis.inspection_highlights),
        )

    def _analysis_details(
        self, details: dict[str, Any], kind: str
    ) -> dict[str, list[InspectionDetail]]:
        categories = ANALYSIS_CATEGORIES
        if kind == "video":
            categories = categories + VIDEO_ANALYSIS_CATEGORIES
        return {
            name: self._inspection_items(details.get(name), _CATEGORY_TITLES[name])
            for name in categories
        }

    def _inspection_items(self, raw: Any, title: str) -> list[InspectionDetail]:
        if isinstance(raw, (dict, str)):
            raw = [raw]
        if not isinstance(raw, list):
            return []

        items: list[InspectionDetail] = []
        for entry in raw:
            if isinstance(entry, str):
                entry = {"finding": entry}
            if not isinstance(entry, dict):
                continue
            finding = coerce_text(entry.get("finding"))
            if not finding:
                continue
            confidence = coerce_number(entry.get("confidence"))
            if confidence is None:
                confidence = 0.5
            elif confidence > 1:
                confidence = confidence / 100
            severity = coerce_text(entry.get("severity"))
            items.append(
                InspectionDetail(
                    category=coerce_text(entry.get("category")) or title,
                    finding=finding,
                    confidence=round(max(0.0, min(1.0, confidence)), 2),
                    severity=_allowed(severity.lower() if severity else None, SEVERITIES, "low"),
                )
            )
        return items
