"""
Classifier capability.

The lifecycle manager fetches two assets from the configured location: a
model definition and a metadata document listing the class labels. This
module turns those assets into a ClassifierResource, an opaque handle
that, given a decoded image, returns (label, probability) pairs in the
order the model emits them.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Callable, Protocol

import numpy as np
import onnxruntime as ort

from skincheck.config.logging_config import get_logger
from skincheck.exceptions import InferenceError, LoadError

logger = get_logger(__name__)

DEFAULT_IMAGE_SIZE = 224


@dataclass(frozen=True)
class ModelMetadata:
    """Metadata published next to the model definition."""

    labels: tuple[str, ...]
    image_size: int = DEFAULT_IMAGE_SIZE
    model_name: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "ModelMetadata":
        """
        Parse a metadata document.

        Accepts Teachable Machine style keys (``labels``, ``imageSize``,
        ``modelName``).

        Raises:
            LoadError: If the document has no usable label list.
        """
        if not isinstance(data, dict):
            raise LoadError("Model metadata must be a JSON object")

        labels = data.get("labels")
        if not isinstance(labels, list) or not labels:
            raise LoadError("Model metadata has no class labels").add_suggestion(
                "Re-export the model so metadata.json contains a non-empty 'labels' list"
            )
        if not all(isinstance(label, str) and label for label in labels):
            raise LoadError("Model metadata labels must be non-empty strings")

        image_size = data.get("imageSize", DEFAULT_IMAGE_SIZE)
        if not isinstance(image_size, int) or isinstance(image_size, bool) or image_size <= 0:
            raise LoadError(f"Invalid imageSize in model metadata: {image_size!r}")

        return cls(
            labels=tuple(labels),
            image_size=image_size,
            model_name=data.get("modelName"),
        )


class ClassifierResource(Protocol):
    """Loaded model handle. Read-only once built."""

    @property
    def labels(self) -> Sequence[str]: ...

    @property
    def image_size(self) -> int: ...

    def predict(self, pixels: np.ndarray) -> list[tuple[str, float]]:
        """Run one forward pass; pairs are returned in emission order."""
        ...

    def dispose(self) -> None: ...


ResourceFactory = Callable[[bytes, ModelMetadata], ClassifierResource]


def softmax(logits: np.ndarray) -> np.ndarray:
    shifted = logits - np.max(logits)
    exp = np.exp(shifted)
    return exp / exp.sum()


def _is_distribution(values: np.ndarray) -> bool:
    return bool(np.all(values >= 0.0) and np.all(values <= 1.0) and abs(values.sum() - 1.0) < 1e-3)


class OnnxClassifier:
    """ClassifierResource backed by an onnxruntime inference session."""

    def __init__(self, session: ort.InferenceSession, metadata: ModelMetadata):
        self._session: ort.InferenceSession | None = session
        self._metadata = metadata
        self._input_name = session.get_inputs()[0].name

    @classmethod
    def from_bytes(cls, model_bytes: bytes, metadata: ModelMetadata) -> "OnnxClassifier":
        """
        Build a classifier from serialized model bytes.

        Raises:
            LoadError: If onnxruntime rejects the model definition.
        """
        try:
            session = ort.InferenceSession(model_bytes, providers=["CPUExecutionProvider"])
        except Exception as e:
            raise LoadError(f"Model definition could not be loaded: {e}") from e

        outputs = session.get_outputs()
        logger.debug(
            "ONNX session created",
            inputs=[i.name for i in session.get_inputs()],
            outputs=[o.name for o in outputs],
        )
        return cls(session, metadata)

    @property
    def labels(self) -> tuple[str, ...]:
        return self._metadata.labels

    @property
    def image_size(self) -> int:
        return self._metadata.image_size

    def predict(self, pixels: np.ndarray) -> list[tuple[str, float]]:
        session = self._session
        if session is None:
            raise InferenceError("Classifier has been disposed")

        try:
            outputs = session.run(None, {self._input_name: pixels.astype(np.float32)})
        except Exception as e:
            raise InferenceError(f"Forward pass failed: {e}") from e

        scores = np.asarray(outputs[0], dtype=np.float64).reshape(-1)
        if scores.shape[0] != len(self.labels):
            raise InferenceError(
                f"Model produced {scores.shape[0]} outputs for {len(self.labels)} labels"
            )
        if not _is_distribution(scores):
            scores = softmax(scores)

        return [(label, float(p)) for label, p in zip(self.labels, scores)]

    def dispose(self) -> None:
        self._session = None


def build_onnx_classifier(model_bytes: bytes, metadata: ModelMetadata) -> ClassifierResource:
    """Default resource factory used by the lifecycle manager."""
    return OnnxClassifier.from_bytes(model_bytes, metadata)
