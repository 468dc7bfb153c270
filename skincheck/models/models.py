"""
Pydantic models for API request/response validation.

All models are explicit, documented, and enforce strict validation.
Invalid inputs fail closed with descriptive error messages.
"""

import random
import string
import time
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from skincheck.models.risk_models import (
    InferenceResult,
    RiskAssessment,
    RiskTier,
    SymptomFlags,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_scan_id() -> str:
    """Scan identifier: ``scan_<epoch ms>_<9 random base36 chars>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"scan_{int(time.time() * 1000)}_{suffix}"


# ============================================================================
# Assessment
# ============================================================================

class AssessmentRequest(BaseModel):
    """
    Request to assess one skin spot.

    Attributes:
        image: Photo as base64 or a ``data:image/...;base64,`` URL.
        symptoms: Checklist answers.
        image_ref: Optional caller reference stored with the scan record.
    """
    image: str = Field(..., min_length=1, description="Base64 image or data URL")
    symptoms: SymptomFlags = Field(default_factory=SymptomFlags, description="Symptom checklist")
    image_ref: str | None = Field(
        default=None,
        max_length=2048,
        description="Reference stored instead of the image itself"
    )

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        """Ensure the image is not just whitespace."""
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Image cannot be empty")
        return cleaned


class TierResponse(BaseModel):
    """Traffic-light tier with its fixed display metadata."""
    tier: RiskTier = Field(..., description="Tier")
    label: str = Field(..., description="Status label")
    color: str = Field(..., description="Hex color")
    color_value: int = Field(..., description="Color as 0xRRGGBB integer")
    action: str = Field(..., description="Recommended action")


class AdviceResponse(BaseModel):
    """Lay-language explanation of the result."""
    title: str
    message: str
    action: str


class AssessmentResponse(BaseModel):
    """
    Result of one assessment.

    Attributes:
        scan_id: ID of the stored scan record.
        inference: Classifier output (fallback shape when AI was unavailable).
        assessment: Fused risk score and tier.
        status: Tier display metadata.
        advice: What the user should do next.
        symptoms: Names of the symptoms reported as present.
        processing_time_ms: Time taken to produce the result.
    """
    scan_id: str = Field(..., description="Stored scan record ID")
    inference: InferenceResult
    assessment: RiskAssessment
    status: TierResponse
    advice: AdviceResponse
    symptoms: list[str] = Field(default_factory=list, description="Symptoms present")
    processing_time_ms: int = Field(..., ge=0, description="Processing time in milliseconds")


# ============================================================================
# Scan Records
# ============================================================================

class ScanSymptoms(BaseModel):
    """Symptom booleans as stored in a scan record."""
    itch_val: bool
    bleed_val: bool
    growth_val: bool

    @classmethod
    def from_flags(cls, flags: SymptomFlags) -> "ScanSymptoms":
        return cls(itch_val=flags.itch, bleed_val=flags.bleed, growth_val=flags.growth)


class ScanRecord(BaseModel):
    """
    A completed assessment as persisted and returned by the scans API.

    Attributes:
        id: Scan identifier.
        created_at: Creation timestamp.
        image_ref: Reference to the assessed image.
        symptoms: Symptom booleans.
        ai_prediction: Top predicted label ("Unknown" when AI fell back).
        ai_base_risk: AI base risk used for fusion.
        risk_score: Final bounded risk score.
        status: Record status.
        status_label: Tier label.
        status_color: Tier hex color.
    """
    id: str = Field(default_factory=new_scan_id, description="Scan ID")
    created_at: datetime = Field(default_factory=_utcnow, description="Creation timestamp")
    image_ref: str = Field(..., description="Image reference")
    symptoms: ScanSymptoms
    ai_prediction: str = Field(..., description="Top predicted label")
    ai_base_risk: float = Field(..., description="AI base risk")
    risk_score: float = Field(..., ge=0.0, le=1.0, description="Final risk score")
    status: str = Field(default="completed", description="Record status")
    status_label: str = Field(..., description="Tier label")
    status_color: str = Field(..., description="Tier hex color")


class ScanListResponse(BaseModel):
    """All stored scans, newest first."""
    scans: list[ScanRecord] = Field(default_factory=list)
    count: int = Field(..., ge=0)


# ============================================================================
# Health & Errors
# ============================================================================

class HealthStatus(str, Enum):
    """System health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """
    Health check response for monitoring.

    Attributes:
        status: Overall system health status.
        version: Application version.
        environment: Deployment environment.
        checks: Individual component health checks.
        classifier_state: Lifecycle state of the classifier.
        classifier_error: Last classifier load error, if any.
    """
    status: HealthStatus = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Deployment environment")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    checks: dict[str, bool] = Field(default_factory=dict, description="Component health checks")
    classifier_state: str = Field(..., description="Classifier lifecycle state")
    classifier_error: str | None = Field(default=None, description="Last load error")


class ErrorResponse(BaseModel):
    """
    Standardized error response.

    Attributes:
        error: Error type/code.
        message: Human-readable error message.
        details: Additional error details.
        request_id: Request ID for tracing.
    """
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    details: dict | None = Field(default=None, description="Additional details")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
