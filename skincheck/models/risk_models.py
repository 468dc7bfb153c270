"""
Pydantic models for the inference and risk fusion core.

This module defines the classifier label vocabulary with its risk table,
the ranked inference output, the symptom checklist snapshot and the
final risk assessment. All models are immutable once constructed.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# Base risk used downstream whenever the AI stage is unavailable or fails.
FALLBACK_RISK = 0.1

UNKNOWN_LABEL = "Unknown"


# ============================================================================
# Classifier Labels
# ============================================================================

class LesionClass(str, Enum):
    """Labels emitted by the lesion classifier, in training order."""
    NORMAL = "0_Normal"
    FUNGAL = "1_Fungal"
    INFLAMMATORY = "2_Inflammatory"
    BENIGN = "3_Benign"
    MALIGNANT = "4_Malignant"

    @property
    def base_risk(self) -> float:
        """Risk contribution of this class at probability 1.0."""
        return RISK_TABLE[self]

    @classmethod
    def from_label(cls, label: str) -> "LesionClass | None":
        """Resolve a raw classifier label, or None when unrecognized."""
        try:
            return cls(label)
        except ValueError:
            return None


RISK_TABLE: dict[LesionClass, float] = {
    LesionClass.NORMAL: 0.0,
    LesionClass.FUNGAL: 0.30,
    LesionClass.INFLAMMATORY: 0.40,
    LesionClass.BENIGN: 0.20,
    LesionClass.MALIGNANT: 0.80,
}


def risk_for_label(label: str) -> float:
    """
    Look up the base-risk contribution for a raw classifier label.

    Unrecognized labels contribute nothing.
    """
    lesion_class = LesionClass.from_label(label)
    if lesion_class is None:
        return 0.0
    return lesion_class.base_risk


# ============================================================================
# Inference Output
# ============================================================================

class ClassPrediction(BaseModel):
    """A single (label, probability) pair from the classifier."""
    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Classifier label")
    probability: float = Field(..., ge=0.0, le=1.0, description="Class probability")


class InferenceResult(BaseModel):
    """
    Ranked classifier output plus the derived base risk.

    Attributes:
        predictions: All predictions, highest probability first.
        top_label: Label of the first ranked prediction.
        top_probability: Probability of the first ranked prediction.
        base_risk: Probability-weighted sum of label risk contributions.
        succeeded: False when the fallback shape was produced.
        error: Why inference fell back, if it did.
    """
    model_config = ConfigDict(frozen=True)

    predictions: tuple[ClassPrediction, ...] = Field(default_factory=tuple)
    top_label: str = Field(default=UNKNOWN_LABEL)
    top_probability: float = Field(default=0.0, ge=0.0, le=1.0)
    base_risk: float = Field(..., description="AI-derived base risk before symptom fusion")
    succeeded: bool
    error: str | None = None

    @classmethod
    def fallback(cls, error: str) -> "InferenceResult":
        """Build the fixed result used when inference is unavailable."""
        return cls(
            predictions=(),
            top_label=UNKNOWN_LABEL,
            top_probability=0.0,
            base_risk=FALLBACK_RISK,
            succeeded=False,
            error=error,
        )


# ============================================================================
# Symptoms
# ============================================================================

SYMPTOM_DESCRIPTIONS: dict[str, str] = {
    "itch": "Actively Itching",
    "bleed": "Bleeding/Crusting",
    "growth": "Rapid Growth",
}


class SymptomFlags(BaseModel):
    """Checklist answers captured for one assessment."""
    model_config = ConfigDict(frozen=True)

    itch: bool = Field(default=False, description="Spot is actively itching")
    bleed: bool = Field(default=False, description="Bleeding, oozing or crusting")
    growth: bool = Field(default=False, description="Grown in recent weeks")

    @property
    def critical_present(self) -> bool:
        """Bleeding and rapid growth are safety-critical."""
        return self.bleed or self.growth

    def describe(self) -> list[str]:
        """Human-readable names of the symptoms that are present."""
        return [
            text for name, text in SYMPTOM_DESCRIPTIONS.items()
            if getattr(self, name)
        ]


# ============================================================================
# Assessment
# ============================================================================

class RiskTier(str, Enum):
    """Traffic-light tiers, ordered from least to most urgent."""
    SAFE = "SAFE"
    CAUTION = "CAUTION"
    DANGER = "DANGER"


class RiskAssessment(BaseModel):
    """
    Result of fusing the AI base risk with the symptom checklist.

    A new instance is produced for every analysis request.
    """
    model_config = ConfigDict(frozen=True)

    base_risk: float = Field(..., description="AI base risk used for fusion")
    raw_score: float = Field(..., description="Weighted sum before override and clamping")
    override_applied: bool = Field(..., description="Critical-symptom floor raised the score")
    final_score: float = Field(..., ge=0.0, le=1.0, description="Bounded risk score")
    tier: RiskTier
