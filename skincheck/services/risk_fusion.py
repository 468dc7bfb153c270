"""
Weighted clinical score: fuses the AI base risk with the symptom checklist.

    raw   = base_risk * W_AI + itch * W_ITCH + bleed * W_BLEED + growth * W_GROWTH
    score = max(raw, CRITICAL_FLOOR) if bleed or growth else raw
    final = clamp(score, 0, 1)

The critical-symptom override is a floor, never a bonus: it cannot lower
a score that is already above it. Weights are fixed policy.
"""

import math

from skincheck.models.risk_models import RiskAssessment, SymptomFlags
from skincheck.services.classification_policy import (
    ClassificationPolicy,
    get_classification_policy,
)

W_AI = 0.70
W_ITCH = 0.10
W_BLEED = 0.15
W_GROWTH = 0.15

CRITICAL_FLOOR = 0.75


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


class RiskFusionEngine:
    """
    Deterministic, side-effect-free scoring.

    The same inputs always produce an equal RiskAssessment.
    """

    def __init__(self, policy: ClassificationPolicy | None = None):
        self.policy = policy or get_classification_policy()

    def raw_score(self, base_risk: float, symptoms: SymptomFlags) -> float:
        """Weighted sum of the AI risk and present symptoms."""
        return (
            base_risk * W_AI
            + (W_ITCH if symptoms.itch else 0.0)
            + (W_BLEED if symptoms.bleed else 0.0)
            + (W_GROWTH if symptoms.growth else 0.0)
        )

    def compute(self, base_risk: float, symptoms: SymptomFlags) -> RiskAssessment:
        """
        Fuse base risk and symptoms into a bounded, classified assessment.

        Args:
            base_risk: AI-derived risk, nominally in [0, 1].
            symptoms: Checklist snapshot.

        Returns:
            A new RiskAssessment.

        Raises:
            ValueError: If base_risk is NaN or infinite.
        """
        if not math.isfinite(base_risk):
            raise ValueError(f"base_risk must be a finite number, got {base_risk!r}")

        raw = self.raw_score(base_risk, symptoms)
        critical = symptoms.critical_present
        override_applied = critical and raw < CRITICAL_FLOOR
        score = max(raw, CRITICAL_FLOOR) if critical else raw
        final_score = clamp01(score)

        return RiskAssessment(
            base_risk=base_risk,
            raw_score=raw,
            override_applied=override_applied,
            final_score=final_score,
            tier=self.policy.classify(final_score),
        )


# Singleton instance for dependency injection
_risk_fusion_engine: RiskFusionEngine | None = None


def get_risk_fusion_engine() -> RiskFusionEngine:
    """
    Get the risk fusion engine singleton.

    Returns:
        The shared RiskFusionEngine instance.
    """
    global _risk_fusion_engine
    if _risk_fusion_engine is None:
        _risk_fusion_engine = RiskFusionEngine()
    return _risk_fusion_engine
