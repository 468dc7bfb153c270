"""
Inference execution against the shared classifier.

run() never raises. When the classifier is not ready, or decoding or
the forward pass fails, it returns the fallback result (base risk 0.1,
no predictions) so the symptom-based assessment can always complete.

Base risk is the probability-weighted sum of every returned class's
risk contribution, not only the top class's.
"""

import asyncio
import math
from collections.abc import Iterable

from skincheck.config.logging_config import get_logger
from skincheck.exceptions import InferenceError
from skincheck.models.risk_models import (
    ClassPrediction,
    InferenceResult,
    risk_for_label,
)
from skincheck.services.image_decoder import ImageDecoder, ImagePayload
from skincheck.services.model_lifecycle import ModelLifecycleManager

logger = get_logger(__name__)


def _normalize_probability(value: float) -> float:
    probability = float(value)
    if not math.isfinite(probability):
        return 0.0
    return min(1.0, max(0.0, probability))


def rank_predictions(pairs: Iterable[tuple[str, float]]) -> list[ClassPrediction]:
    """
    Rank raw (label, probability) pairs, highest probability first.

    The sort is stable, so ties keep the classifier's emission order.
    """
    predictions = [
        ClassPrediction(label=str(label), probability=_normalize_probability(probability))
        for label, probability in pairs
    ]
    return sorted(predictions, key=lambda p: p.probability, reverse=True)


def compute_base_risk(predictions: Iterable[ClassPrediction]) -> float:
    """Sum of risk contribution times probability; unknown labels add 0."""
    return sum(risk_for_label(p.label) * p.probability for p in predictions)


def summarize(pairs: Iterable[tuple[str, float]]) -> InferenceResult:
    """
    Build a successful InferenceResult from raw classifier output.

    Raises:
        InferenceError: If the classifier returned no predictions.
    """
    ranked = rank_predictions(pairs)
    if not ranked:
        raise InferenceError("Classifier returned no predictions")

    top = ranked[0]
    return InferenceResult(
        predictions=tuple(ranked),
        top_label=top.label,
        top_probability=top.probability,
        base_risk=compute_base_risk(ranked),
        succeeded=True,
    )


class InferenceExecutor:
    """Runs one inference call and converts every failure into the fallback."""

    def __init__(self, decoder: ImageDecoder | None = None):
        self.decoder = decoder or ImageDecoder()

    async def run(self, model: ModelLifecycleManager, image: ImagePayload) -> InferenceResult:
        """
        Classify an image with the shared classifier.

        Args:
            model: Lifecycle manager holding the classifier resource.
            image: Raw bytes, base64 string or data URL.

        Returns:
            Ranked predictions with base risk, or the fallback result.
        """
        resource = model.resource
        if resource is None:
            last_error = model.last_error()
            message = (
                f"Model not loaded: {last_error}" if last_error
                else "Model not loaded. Call load() first."
            )
            logger.warning("Model not ready, using fallback base risk", reason=message)
            return InferenceResult.fallback(message)

        try:
            pixels = await self.decoder.decode(image, resource.image_size)
            pairs = await asyncio.to_thread(resource.predict, pixels)
            result = summarize(pairs)
        except InferenceError as e:
            logger.warning("Inference failed, using fallback base risk", error=str(e))
            return InferenceResult.fallback(str(e))
        except Exception as e:
            logger.exception("Unexpected inference failure, using fallback base risk")
            return InferenceResult.fallback(f"Inference failed: {e}")

        logger.info(
            "Inference complete",
            top_label=result.top_label,
            top_probability=round(result.top_probability, 4),
            base_risk=round(result.base_risk, 4),
            predictions={p.label: round(p.probability, 4) for p in result.predictions},
        )
        return result


# Singleton instance for dependency injection
_inference_executor: InferenceExecutor | None = None


def get_inference_executor() -> InferenceExecutor:
    """
    Get the inference executor singleton.

    Returns:
        The shared InferenceExecutor instance.
    """
    global _inference_executor
    if _inference_executor is None:
        _inference_executor = InferenceExecutor()
    return _inference_executor
