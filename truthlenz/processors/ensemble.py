"""Second-opinion calibration for media verdicts.

A single model's self-reported confidence is not trusted. Instead a second,
lighter model looks at the same media with a terse prompt, and the
*direction* of its verdict relative to the primary one decides how much the
primary authenticity score is discounted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import ValidationError

from truthlenz.llm.gateway import ModelCandidate, ModelGateway
from truthlenz.llm.prompts import SECONDARY_SYSTEM_PROMPT
from truthlenz.llm.providers import Segment
from truthlenz.models.analysis import SecondaryOpinion
from truthlenz.models.types import ModelAgreement

logger = logging.getLogger(__name__)

AUTHENTIC_VERDICTS = frozenset({"real"})
INAUTHENTIC_VERDICTS = frozenset({"edited", "ai_generated", "suspicious"})

SECONDARY_UNAVAILABLE = "secondary unavailable"
REVIEW_FLAG = "needs_review"


def verdict_side(verdict: str | None) -> bool | None:
    """``True`` for authentic, ``False`` for not authentic, ``None`` if unknown."""
    if verdict in AUTHENTIC_VERDICTS:
        return True
    if verdict in INAUTHENTIC_VERDICTS:
        return False
    return None


@dataclass(frozen=True)
class AgreementPolicy:
    medium_penalty: int = 10
    medium_floor: int = 5
    low_penalty: int = 25
    low_floor: int = 10

    @classmethod
    def from_config(cls, config: dict[str, int]) -> "AgreementPolicy":
        return cls(
            medium_penalty=int(config.get("medium_penalty", cls.medium_penalty)),
            medium_floor=int(config.get("medium_floor", cls.medium_floor)),
            low_penalty=int(config.get("low_penalty", cls.low_penalty)),
            low_floor=int(config.get("low_floor", cls.low_floor)),
        )


@dataclass
class Reconciliation:
    agreement: ModelAgreement
    authenticity_score: int
    flags: list[str] = field(default_factory=list)
    secondary_model: str | None = None

    @property
    def needs_review(self) -> bool:
        return REVIEW_FLAG in self.flags


def _penalize(score: int, penalty: int, floor: int) -> int:
    # The floor stops the penalty, it never lifts a score that is already lower.
    return min(score, max(score - penalty, floor))


def reconcile_verdicts(
    primary_verdict: str,
    secondary_verdict: str | None,
    score: int,
    policy: AgreementPolicy,
) -> Reconciliation:
    if secondary_verdict is None:
        agreement = ModelAgreement(
            primary_verdict=primary_verdict,
            secondary_verdict="unavailable",
            agreement_level="medium",
            confidence_adjustment=(
                f"{SECONDARY_UNAVAILABLE}: primary verdict was not cross-checked"
            ),
        )
        return Reconciliation(agreement=agreement, authenticity_score=score)

    if primary_verdict == secondary_verdict:
        agreement = ModelAgreement(
            primary_verdict, secondary_verdict, "high", "none: both models agree"
        )
        return Reconciliation(agreement=agreement, authenticity_score=score)

    primary_side = verdict_side(primary_verdict)
    secondary_side = verdict_side(secondary_verdict)

    if primary_side is not None and secondary_side is not None and primary_side != secondary_side:
        adjusted = _penalize(score, policy.low_penalty, policy.low_floor)
        agreement = ModelAgreement(
            primary_verdict,
            secondary_verdict,
            "low",
            f"-{score - adjusted}: models disagree on authenticity, flagged for review",
        )
        return Reconciliation(
            agreement=agreement, authenticity_score=adjusted, flags=[REVIEW_FLAG]
        )

    adjusted = _penalize(score, policy.medium_penalty, policy.medium_floor)
    agreement = ModelAgreement(
        primary_verdict,
        secondary_verdict,
        "medium",
        f"-{score - adjusted}: models differ on the kind of finding",
    )
    return Reconciliation(agreement=agreement, authenticity_score=adjusted)


class EnsembleReconciler:
    def __init__(
        self,
        gateway: ModelGateway,
        candidates: list[ModelCandidate],
        policy: AgreementPolicy | None = None,
    ) -> None:
        self._gateway = gateway
        self._candidates = candidates
        self._policy = policy or AgreementPolicy()

    def second_opinion(self, segments: list[Segment]) -> tuple[str | None, str | None]:
        """Return ``(verdict, model)`` from the secondary chain, or ``(None, None)``."""
        result = self._gateway.call(self._candidates, SECONDARY_SYSTEM_PROMPT, segments)
        if not result.ok:
            logger.warning(
                "Secondary model unavailable: %s",
                result.last_error.message if result.last_error else "no candidates",
            )
            return None, None
        try:
            opinion = SecondaryOpinion.from_reply(result.data)
        except ValidationError as exc:
            logger.warning("Secondary reply rejected: %s", exc)
            return None, None
        if opinion.verdict is None:
            logger.warning("Secondary model %s returned no verdict", result.model)
            return None, None
        return opinion.verdict, result.model

    def reconcile(
        self,
        primary_verdict: str,
        authenticity_score: int,
        segments: list[Segment],
    ) -> Reconciliation:
        secondary_verdict, model = self.second_opinion(segments)
        reconciliation = reconcile_verdicts(
            primary_verdict, secondary_verdict, authenticity_score, self._policy
        )
        reconciliation.secondary_model = model
        logger.info(
            "Ensemble agreement %s (primary=%s, secondary=%s, score %d -> %d)",
            reconciliation.agreement.agreement_level,
            primary_verdict,
            secondary_verdict,
            authenticity_score,
            reconciliation.authenticity_score,
        )
        return reconciliation
