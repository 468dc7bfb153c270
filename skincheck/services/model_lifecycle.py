"""
Lifecycle of the shared lesion classifier.

The manager is the sole owner and writer of the ClassifierResource. It
guarantees at most one load in flight: concurrent load() calls attach to
the running load and all observe its outcome. Failures never raise to
the caller; they are reported as a LoadResult and kept queryable through
last_error() until the next successful load or dispose().

State machine:
    UNLOADED --load--> LOADING --ok--> READY
                       LOADING --fail--> FAILED
    READY | FAILED --dispose--> UNLOADED
    READY --load--> READY (no-op)
    FAILED --load--> LOADING (retry)
"""

import asyncio
import json
from enum import Enum
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from skincheck.config.config import Settings, get_settings
from skincheck.config.logging_config import get_logger
from skincheck.exceptions import ConfigurationError, LoadError, SkinCheckError
from skincheck.services.classifier import (
    ClassifierResource,
    ModelMetadata,
    ResourceFactory,
    build_onnx_classifier,
)
from skincheck.services.single_flight import SingleFlight

logger = get_logger(__name__)

PLACEHOLDER_MARKERS = ("[...]", "PASTE_YOUR_MODEL_URL_HERE", "YOUR_MODEL_ID")

EXAMPLE_MODEL_URL = "https://models.example.com/skin-lesion/aBcD1234eFgH/"


class ModelState(str, Enum):
    """Lifecycle states of the classifier resource."""
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class LoadResult(BaseModel):
    """
    Outcome of a load() call.

    Attributes:
        success: Whether the classifier is ready.
        error: Diagnostic message when loading failed.
        error_code: Machine-readable failure category.
    """
    success: bool = Field(..., description="Classifier is ready")
    error: str | None = Field(default=None, description="Failure diagnostic")
    error_code: str | None = Field(default=None, description="Failure category")


class _LoadSuperseded(Exception):
    """Raised inside a load that dispose() has detached."""


def _cancelled() -> LoadResult:
    return LoadResult(
        success=False,
        error="Model load was cancelled by dispose()",
        error_code="LOAD_CANCELLED",
    )


class ModelLifecycleManager:
    """
    Owns the single classifier resource and its load/dispose transitions.

    Consumers read the resource through the ``resource`` accessor and
    check readiness with is_ready(); only this class mutates it.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        resource_factory: ResourceFactory | None = None,
    ):
        """
        Initialize the manager.

        Args:
            settings: Application settings. Uses default if not provided.
            client: HTTP client for asset fetches. Created lazily and owned
                by the manager when omitted.
            resource_factory: Builds a ClassifierResource from the fetched
                assets. Defaults to the onnxruntime classifier.
        """
        self.settings = settings or get_settings()
        self._client = client
        self._owns_client = client is None
        self._factory = resource_factory or build_onnx_classifier
        self._flight: SingleFlight[LoadResult] = SingleFlight()
        self._generation = 0
        self._state = ModelState.UNLOADED
        self._resource: ClassifierResource | None = None
        self._last_error: str | None = None
        self._closed = False

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def resource(self) -> ClassifierResource | None:
        """The loaded classifier, or None unless READY."""
        if self._state is not ModelState.READY:
            return None
        return self._resource

    def is_ready(self) -> bool:
        """Non-blocking readiness probe."""
        return self._state is ModelState.READY and self._resource is not None

    def last_error(self) -> str | None:
        """Diagnostic from the most recent failed load, if any."""
        return self._last_error

    async def load(self) -> LoadResult:
        """
        Load the classifier, or attach to the load already in flight.

        Returns immediately when already READY. Never raises for
        configuration or fetch problems.

        Returns:
            LoadResult shared by every caller of the same flight.
        """
        if self.is_ready():
            logger.debug("Model already loaded, skipping")
            return LoadResult(success=True)

        if self._flight.in_flight:
            logger.info("Model load already in progress, waiting for it to complete")
        generation = self._generation
        return await self._flight.run(lambda: self._load(generation))

    def dispose(self) -> None:
        """
        Release the classifier and return to UNLOADED.

        Clears the cached error and detaches any in-flight load so the
        next load() starts fresh. Safe to call in any state.
        """
        self._generation += 1
        self._flight.forget()

        resource, self._resource = self._resource, None
        if resource is not None:
            try:
                resource.dispose()
            except Exception as e:
                logger.warning("Error disposing classifier", error=str(e))

        previous = self._state
        self._state = ModelState.UNLOADED
        self._last_error = None
        if previous is not ModelState.UNLOADED:
            logger.info("Model disposed", previous_state=previous.value)

    async def aclose(self) -> None:
        """
        Dispose the classifier and close the HTTP client if owned.

        The manager cannot fetch assets afterwards; a load detached by this
        call stops at its next step instead of opening a new client.
        """
        self._closed = True
        self.dispose()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _load(self, generation: int) -> LoadResult:
        if generation != self._generation:
            return _cancelled()
        self._state = ModelState.LOADING
        logger.info("Loading classifier", base_url=self.settings.model_base_url or None)

        try:
            self._validate_location()
            resource = await self._build_resource(generation)
        except _LoadSuperseded:
            logger.info("Model load superseded by dispose, stopping")
            return _cancelled()
        except SkinCheckError as e:
            return self._fail(generation, e)
        except Exception as e:
            logger.exception("Unexpected error while loading classifier")
            return self._fail(generation, LoadError(f"Unexpected error loading model: {e}"))

        if generation != self._generation:
            # dispose() ran while this load was in flight
            resource.dispose()
            logger.warning("Model load superseded by dispose, discarding result")
            return _cancelled()

        self._resource = resource
        self._state = ModelState.READY
        self._last_error = None
        logger.info(
            "Model loaded successfully",
            labels=list(resource.labels),
            image_size=resource.image_size,
        )
        return LoadResult(success=True)

    def _fail(self, generation: int, error: SkinCheckError) -> LoadResult:
        message = str(error)
        if generation != self._generation:
            logger.info("Superseded model load failed", error=message)
            return _cancelled()

        self._state = ModelState.FAILED
        self._last_error = message
        logger.error(
            "Failed to load model",
            error=message,
            error_code=error.error_code,
            fallback="ai_base_risk=0.1",
        )
        return LoadResult(success=False, error=message, error_code=error.error_code)

    def _validate_location(self) -> None:
        """
        Fail fast on an unusable classifier location, before any network access.

        Raises:
            ConfigurationError: If MODEL_BASE_URL is unset, a placeholder or not http(s).
        """
        base_url = self.settings.model_base_url.strip()

        if not base_url:
            raise ConfigurationError(
                "Model URL not configured; the app will use fallback mode (ai_base_risk = 0.1)",
                config_field="MODEL_BASE_URL",
            ).add_suggestion(
                f"Set MODEL_BASE_URL to your exported model folder, e.g. MODEL_BASE_URL={EXAMPLE_MODEL_URL}"
            )

        if any(marker in base_url for marker in PLACEHOLDER_MARKERS):
            raise ConfigurationError(
                f"Model URL still contains a placeholder: {base_url}",
                config_field="MODEL_BASE_URL",
            ).add_suggestion(
                f"Replace the placeholder with your actual model ID, e.g. MODEL_BASE_URL={EXAMPLE_MODEL_URL}"
            )

        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                f"Model URL must be an absolute http(s) URL: {base_url}",
                config_field="MODEL_BASE_URL",
            ).add_suggestion(
                f"Use the full shareable link, e.g. MODEL_BASE_URL={EXAMPLE_MODEL_URL}"
            )

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            raise _LoadSuperseded()

    async def _build_resource(self, generation: int) -> ClassifierResource:
        definition_url = self.settings.model_definition_url
        metadata_url = self.settings.model_metadata_url
        logger.info("Fetching classifier assets", model_url=definition_url, metadata_url=metadata_url)

        self._ensure_current(generation)
        definition = await self._fetch(definition_url)
        self._ensure_current(generation)
        raw_metadata = await self._fetch(metadata_url)

        try:
            document = json.loads(raw_metadata)
        except ValueError as e:
            raise LoadError(f"Model metadata is not valid JSON: {e}", url=metadata_url) from e
        metadata = ModelMetadata.from_dict(document)

        self._ensure_current(generation)
        return await asyncio.to_thread(self._factory, definition, metadata)

    async def _fetch(self, url: str) -> bytes:
        client = self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise LoadError(
                f"Failed to fetch {url}: HTTP {e.response.status_code}",
                url=url,
            ).add_suggestion(
                "Check the model URL is correct and the model is publicly shared"
            ) from e
        except httpx.HTTPError as e:
            raise LoadError(
                f"Failed to fetch {url}: {e}",
                url=url,
            ).add_suggestion("Check your internet connection") from e
        return response.content

    def _get_client(self) -> httpx.AsyncClient:
        if self._closed:
            raise LoadError("Model manager is closed; create a new one to load again")
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.model_fetch_timeout_seconds,
                follow_redirects=True,
            )
        return self._client


# Singleton instance for dependency injection
_model_manager: ModelLifecycleManager | None = None


def get_model_manager() -> ModelLifecycleManager:
    """
    Get the model lifecycle manager singleton.

    Returns:
        The shared ModelLifecycleManager instance.
    """
    global _model_manager
    if _model_manager is None:
        _model_manager = ModelLifecycleManager()
    return _model_manager
