"""Tests for truthlenz.processors.assembler.ResponseAssembler."""
from __future__ import annotations

from truthlenz.models.analysis import ModelAnalysis
from truthlenz.models.types import ANALYSIS_CATEGORIES, ModelAgreement, VerificationRequest
from truthlenz.processors.assembler import (
    DEFAULT_MEDIA_EXPLANATION,
    DEFAULT_SCORE,
    ResponseAssembler,
)
from truthlenz.processors.ensemble import REVIEW_FLAG, Reconciliation

assembler = ResponseAssembler()


def _text_request(content: str = "The sky is blue.") -> VerificationRequest:
    return VerificationRequest(content=content, kind="text")


def _image_request(content: str = "") -> VerificationRequest:
    return VerificationRequest(content=content, kind="image", media_payload="QUJD")


class TestTextResults:
    def test_empty_reply_gets_defaults(self):
        result = assembler.assemble(_text_request(), ModelAnalysis())

        assert result.credibility_score == DEFAULT_SCORE
        assert result.verdict == "inconclusive"
        assert result.text_analysis.reasons == []
        assert result.claim_extraction.main_claim == "The sky is blue."
        assert result.claim_extraction.fact_check_result == "unverified"
        assert result.explanation
        assert result.media_verification is None

    def test_full_reply_is_mapped(self):
        analysis = ModelAnalysis.model_validate({
            "verdict": "Misleading",
            "credibilityScore": "35%",
            "explanation": "Cherry-picked statistics.",
            "textAnalysis": {"reasons": "Out of context", "sensationalLanguage": ["SHOCKING"]},
            "claimExtraction": {
                "mainClaim": "Crime tripled",
                "factCheckResult": "Disputed",
                "sources": ["https://example.org/stats"],
            },
        })
        result = assembler.assemble(_text_request("Crime tripled!!!"), analysis)

        assert result.verdict == "misleading"
        assert result.credibility_score == 35
        assert result.text_analysis.verdict == "misleading"
        assert result.text_analysis.reasons == ["Out of context"]
        assert result.text_analysis.sensational_language == ["SHOCKING"]
        assert result.claim_extraction.fact_check_result == "disputed"
        assert result.claim_extraction.sources == ["https://example.org/stats"]

    def test_unknown_labels_become_defaults(self):
        analysis = ModelAnalysis.model_validate({
            "verdict": "probably true",
            "claimExtraction": {"factCheckResult": "kinda"},
        })
        result = assembler.assemble(_text_request(), analysis)

        assert result.verdict == "inconclusive"
        assert result.claim_extraction.fact_check_result == "unverified"

    def test_verdict_is_never_derived_from_score(self):
        analysis = ModelAnalysis.model_validate({"verdict": "fake", "credibilityScore": 95})
        result = assembler.assemble(_text_request(), analysis)
        assert (result.verdict, result.credibility_score) == ("fake", 95)

    def test_score_is_clamped(self):
        analysis = ModelAnalysis.model_validate({"credibilityScore": 250})
        assert assembler.assemble(_text_request(), analysis).credibility_score == 100

    def test_long_content_is_cut_for_main_claim(self):
        result = assembler.assemble(_text_request("word " * 200), ModelAnalysis())
        assert len(result.claim_extraction.main_claim) <= 280

    def test_public_dict_shape(self):
        body = assembler.assemble(_text_request(), ModelAnalysis()).to_dict()
        assert set(body) == {
            "id",
            "credibilityScore",
            "verdict",
            "textAnalysis",
            "claimExtraction",
            "explanation",
            "timestamp",
        }

    def test_ids_are_unique(self):
        first = assembler.assemble(_text_request(), ModelAnalysis())
        second = assembler.assemble(_text_request(), ModelAnalysis())
        assert first.id != second.id


class TestMediaResults:
    def test_media_defaults(self):
        result = assembler.assemble(_image_request(), ModelAnalysis())
        media = result.media_verification

        assert result.explanation == DEFAULT_MEDIA_EXPLANATION
        assert result.claim_extraction.main_claim == "Media Analysis"
        assert media.media_verdict == "inconclusive"
        assert media.authenticity_score == DEFAULT_SCORE
        assert set(media.analysis) == set(ANALYSIS_CATEGORIES)
        assert all(items == [] for items in media.analysis.values())

    def test_media_label_is_main_claim_fallback(self):
        request = VerificationRequest(
            content="", kind="image", media_payload="QUJD", media_label="Protest photo"
        )
        result = assembler.assemble(request, ModelAnalysis())
        assert result.claim_extraction.main_claim == "Protest photo"

    def test_image_verdict_alias_and_manipulation(self):
        analysis = ModelAnalysis.model_validate({
            "imageVerdict": "AI-Generated",
            "authenticityScore": 12,
        })
        media = assembler.assemble(_image_request(), analysis).media_verification

        assert media.media_verdict == "ai_generated"
        assert media.manipulation_detected is True

    def test_reconciliation_applies_to_both_scores(self):
        analysis = ModelAnalysis.model_validate({
            "verdict": "reliable",
            "mediaVerdict": "real",
            "authenticityScore": 90,
            "flags": ["lighting"],
        })
        reconciliation = Reconciliation(
            agreement=ModelAgreement("real", "ai_generated", "low", "-25"),
            authenticity_score=65,
            flags=[REVIEW_FLAG],
        )
        result = assembler.assemble(_image_request(), analysis, reconciliation)
        body = result.to_dict()

        assert result.credibility_score == 65
        assert body["mediaVerification"]["authenticityScore"] == 65
        assert body["mediaVerification"]["flags"] == ["lighting", REVIEW_FLAG]
        agreement = body["mediaVerification"]["analysisDetails"]["modelAgreement"]
        assert agreement["agreementLevel"] == "low"

    def test_inspection_items_are_normalized(self):
        analysis = ModelAnalysis.model_validate({
            "mediaVerdict": "edited",
            "analysisDetails": {
                "pixelAnalysis": [
                    {"finding": "Cloned region near the sign", "confidence": 85, "severity": "HIGH"},
                    {"finding": "", "confidence": 0.2},
                ],
                "humanAnalysis": "Extra finger on left hand",
                "textureAnalysis": {"finding": "Smooth skin", "severity": "extreme"},
            },
        })
        media = assembler.assemble(_image_request(), analysis).media_verification

        pixel = media.analysis["pixelAnalysis"]
        assert len(pixel) == 1
        assert pixel[0].confidence == 0.85
        assert pixel[0].severity == "high"
        assert pixel[0].category == "Pixel Analysis"
        assert media.analysis["humanAnalysis"][0].finding == "Extra finger on left hand"
        assert media.analysis["textureAnalysis"][0].severity == "low"

    def test_video_has_temporal_categories(self):
        request = VerificationRequest(content="", kind="video", media_payload="QUJD")
        media = assembler.assemble(request, ModelAnalysis()).media_verification
        assert "temporalAnalysis" in media.analysis
        assert media.media_type == "video"
