"""
Shared fixtures for the SkinCheck test suite.

Classifier assets are served by an httpx.MockTransport and the classifier
itself is faked, so no ONNX model or network access is needed.
"""

import asyncio
import base64
import io

import httpx
import numpy as np
import pytest
from PIL import Image

from skincheck.config.config import Settings
from skincheck.exceptions import InferenceError
from skincheck.services.classifier import ModelMetadata
from skincheck.services.model_lifecycle import ModelLifecycleManager

BASE_URL = "https://models.example.com/skin-lesion/abc123/"

LABELS = ["0_Normal", "1_Fungal", "2_Inflammatory", "3_Benign", "4_Malignant"]

DEFAULT_OUTPUT = [
    ("0_Normal", 0.10),
    ("1_Fungal", 0.05),
    ("2_Inflammatory", 0.05),
    ("3_Benign", 0.20),
    ("4_Malignant", 0.60),
]


class FakeClassifier:
    """In-memory ClassifierResource returning a fixed output."""

    def __init__(self, metadata: ModelMetadata, output=None):
        self.metadata = metadata
        self.output = list(output if output is not None else DEFAULT_OUTPUT)
        self.disposed = False
        self.predict_calls = 0

    @property
    def labels(self):
        return self.metadata.labels

    @property
    def image_size(self):
        return self.metadata.image_size

    def predict(self, pixels):
        if self.disposed:
            raise InferenceError("Classifier has been disposed")
        self.predict_calls += 1
        return list(self.output)

    def dispose(self):
        self.disposed = True


class FakeFactory:
    """Resource factory that records every classifier it builds."""

    def __init__(self, output=None):
        self.output = output
        self.built: list[FakeClassifier] = []
        self.definitions: list[bytes] = []

    def __call__(self, definition: bytes, metadata: ModelMetadata) -> FakeClassifier:
        self.definitions.append(definition)
        classifier = FakeClassifier(metadata, self.output)
        self.built.append(classifier)
        return classifier


class AssetServer:
    """Mock classifier asset host counting requests per resource."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.model_status = 200
        self.metadata_status = 200
        self.metadata: object = {"labels": LABELS, "imageSize": 224, "modelName": "lesions"}
        self.requests: list[str] = []

    @property
    def model_requests(self) -> int:
        return sum(1 for url in self.requests if url.endswith("model.onnx"))

    @property
    def metadata_requests(self) -> int:
        return sum(1 for url in self.requests if url.endswith("metadata.json"))

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        if self.delay:
            await asyncio.sleep(self.delay)
        if request.url.path.endswith("model.onnx"):
            return httpx.Response(self.model_status, content=b"onnx-model-bytes")
        if request.url.path.endswith("metadata.json"):
            if isinstance(self.metadata, (bytes, str)):
                return httpx.Response(self.metadata_status, content=self.metadata)
            return httpx.Response(self.metadata_status, json=self.metadata)
        return httpx.Response(404)


class StubModel:
    """Minimal stand-in for the lifecycle manager as seen by the executor."""

    def __init__(self, resource=None, last_error=None):
        self.resource = resource
        self._last_error = last_error

    def is_ready(self) -> bool:
        return self.resource is not None

    def last_error(self):
        return self._last_error


class FakeDecoder:
    """Image decoder returning a blank tensor, or raising a given error."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = 0

    async def decode(self, image, image_size):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return np.zeros((1, image_size, image_size, 3), dtype=np.float32)


def make_settings(**overrides) -> Settings:
    values = {"model_base_url": BASE_URL, "preload_model": False}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_png(size: int = 32, color=(180, 90, 60)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (size, size), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def asset_server() -> AssetServer:
    return AssetServer()


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def manager(settings, asset_server, factory) -> ModelLifecycleManager:
    client = httpx.AsyncClient(transport=httpx.MockTransport(asset_server))
    return ModelLifecycleManager(settings, client=client, resource_factory=factory)


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_data_url(png_bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def metadata() -> ModelMetadata:
    return ModelMetadata(labels=tuple(LABELS), image_size=224)
