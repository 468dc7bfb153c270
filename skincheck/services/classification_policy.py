"""
Traffic-light classification of bounded risk scores.

The policy is a static table: each tier carries a fixed label, a color
(hex string and numeric form), a short action and lay-language advice.
Boundaries are closed at DANGER_THRESHOLD and at SAFE_CEILING; CAUTION is
the open interval between them.
"""

from dataclasses import dataclass

from skincheck.models.risk_models import RiskTier

DANGER_THRESHOLD = 0.71
SAFE_CEILING = 0.30


@dataclass(frozen=True)
class TierInfo:
    """Display and guidance metadata for one tier."""

    tier: RiskTier
    label: str
    color: str
    action: str
    advice_title: str
    advice_message: str
    advice_action: str

    @property
    def color_value(self) -> int:
        """Color as a 0xRRGGBB integer."""
        return int(self.color.lstrip("#"), 16)

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "label": self.label,
            "color": self.color,
            "color_value": self.color_value,
            "action": self.action,
        }


TIER_TABLE: dict[RiskTier, TierInfo] = {
    RiskTier.DANGER: TierInfo(
        tier=RiskTier.DANGER,
        label="Danger - See Specialist Urgently",
        color="#D32F2F",
        action="see specialist urgently",
        advice_title="What This Means",
        advice_message=(
            "This spot has signs of danger. Please show this report to a doctor today "
            "or visit the nearest hospital. Early treatment is very important."
        ),
        advice_action="Visit a specialist or hospital soon",
    ),
    RiskTier.CAUTION: TierInfo(
        tier=RiskTier.CAUTION,
        label="Caution - Visit Local Clinic",
        color="#FBC02D",
        action="visit local clinic",
        advice_title="What This Means",
        advice_message=(
            "Your spot needs to be checked by a doctor. Visit your local clinic or "
            "health center within the next 1-2 weeks to be safe."
        ),
        advice_action="Visit a clinic within 2 weeks",
    ),
    RiskTier.SAFE: TierInfo(
        tier=RiskTier.SAFE,
        label="Safe - Normal Spot",
        color="#388E3C",
        action="normal spot, monitor",
        advice_title="What This Means",
        advice_message=(
            "This spot looks normal. Keep watching it for any changes. If it starts "
            "to grow, bleed, or itch, visit a doctor."
        ),
        advice_action="Keep watching the spot for changes",
    ),
}


class ClassificationPolicy:
    """Maps a bounded risk score to a tier."""

    def classify(self, final_score: float) -> RiskTier:
        """
        Classify a final risk score.

        Args:
            final_score: Score in [0, 1].

        Returns:
            DANGER at or above 0.71, SAFE at or below 0.30, CAUTION otherwise.
        """
        if final_score >= DANGER_THRESHOLD:
            return RiskTier.DANGER
        if final_score > SAFE_CEILING:
            return RiskTier.CAUTION
        return RiskTier.SAFE

    def describe(self, tier: RiskTier) -> TierInfo:
        """Return the fixed metadata for a tier."""
        return TIER_TABLE[tier]


# Singleton instance for dependency injection
_classification_policy: ClassificationPolicy | None = None


def get_classification_policy() -> ClassificationPolicy:
    """
    Get the classification policy singleton.

    Returns:
        The shared ClassificationPolicy instance.
    """
    global _classification_policy
    if _classification_policy is None:
        _classification_policy = ClassificationPolicy()
    return _classification_policy
