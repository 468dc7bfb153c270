"""
Assessment service: one photo plus checklist in, one stored scan out.

Flow:
    InferenceExecutor.run -> RiskFusionEngine.compute -> ClassificationPolicy
    -> ScanRecord -> ScanRepository

The AI stage may degrade to the fallback base risk, but an assessment is
always produced. Nothing here waits for the classifier to finish loading.
"""

import hashlib
import time
from dataclasses import dataclass

from skincheck.config.logging_config import get_logger
from skincheck.exceptions import ImageDecodeError
from skincheck.models.models import ScanRecord, ScanSymptoms
from skincheck.models.risk_models import InferenceResult, RiskAssessment, SymptomFlags
from skincheck.services.classification_policy import (
    ClassificationPolicy,
    TierInfo,
    get_classification_policy,
)
from skincheck.services.image_decoder import ImagePayload, payload_to_bytes
from skincheck.services.inference import InferenceExecutor, get_inference_executor
from skincheck.services.model_lifecycle import ModelLifecycleManager, get_model_manager
from skincheck.services.risk_fusion import (
    W_AI,
    W_BLEED,
    W_GROWTH,
    W_ITCH,
    RiskFusionEngine,
    get_risk_fusion_engine,
)
from skincheck.services.scan_repository import ScanRepository, get_scan_repository

logger = get_logger(__name__)


@dataclass(frozen=True)
class AssessmentOutcome:
    """Everything produced for one assessment request."""

    inference: InferenceResult
    assessment: RiskAssessment
    tier_info: TierInfo
    record: ScanRecord
    symptoms: tuple[str, ...]
    processing_time_ms: int


def default_image_ref(image: ImagePayload) -> str:
    """Content digest used when the caller supplies no image reference."""
    try:
        data = payload_to_bytes(image)
    except ImageDecodeError:
        data = image.encode("utf-8") if isinstance(image, str) else image
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


class AssessmentService:
    """
    Runs the full assessment pipeline.

    All collaborators default to the process-wide singletons and can be
    injected for testing.
    """

    def __init__(
        self,
        model: ModelLifecycleManager | None = None,
        executor: InferenceExecutor | None = None,
        engine: RiskFusionEngine | None = None,
        policy: ClassificationPolicy | None = None,
        repository: ScanRepository | None = None,
    ):
        self.model = model or get_model_manager()
        self.executor = executor or get_inference_executor()
        self.policy = policy or get_classification_policy()
        self.engine = engine or get_risk_fusion_engine()
        self.repository = repository if repository is not None else get_scan_repository()

    async def assess(
        self,
        image: ImagePayload,
        symptoms: SymptomFlags,
        image_ref: str | None = None,
    ) -> AssessmentOutcome:
        """
        Assess one skin spot.

        Args:
            image: Photo as bytes, base64 or data URL.
            symptoms: Checklist answers.
            image_ref: Reference stored with the record; defaults to a content digest.

        Returns:
            AssessmentOutcome with the stored ScanRecord.
        """
        start_time = time.perf_counter()

        inference = await self.executor.run(self.model, image)
        assessment = self.engine.compute(inference.base_risk, symptoms)
        tier_info = self.policy.describe(assessment.tier)

        logger.info(
            "Weighted clinical score computed",
            ai_base_risk=round(assessment.base_risk, 4),
            w_ai=W_AI,
            itch=int(symptoms.itch),
            bleed=int(symptoms.bleed),
            growth=int(symptoms.growth),
            weights=(W_ITCH, W_BLEED, W_GROWTH),
            raw_score=round(assessment.raw_score, 4),
            override_applied=assessment.override_applied,
            final_score=round(assessment.final_score, 4),
            tier=assessment.tier.value,
            ai_succeeded=inference.succeeded,
        )
        if assessment.override_applied:
            logger.warning(
                "Critical override applied",
                raw_score=round(assessment.raw_score, 4),
                final_score=assessment.final_score,
            )

        record = ScanRecord(
            image_ref=image_ref or default_image_ref(image),
            symptoms=ScanSymptoms.from_flags(symptoms),
            ai_prediction=inference.top_label,
            ai_base_risk=inference.base_risk,
            risk_score=assessment.final_score,
            status="completed",
            status_label=tier_info.label,
            status_color=tier_info.color,
        )
        self.repository.create(record)

        processing_time = int((time.perf_counter() - start_time) * 1000)
        return AssessmentOutcome(
            inference=inference,
            assessment=assessment,
            tier_info=tier_info,
            record=record,
            symptoms=tuple(symptoms.describe()),
            processing_time_ms=processing_time,
        )


# Singleton instance for dependency injection
_assessment_service: AssessmentService | None = None


def get_assessment_service() -> AssessmentService:
    """
    Get the assessment service singleton.

    Returns:
        The shared AssessmentService instance.
    """
    global _assessment_service
    if _assessment_service is None:
        _assessment_service = AssessmentService()
    return _assessment_service
