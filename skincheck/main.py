"""
SkinCheck API - Skin Spot Risk Triage

Estimates a traffic-light risk tier for a skin spot from a photo and a
short symptom checklist, for users without medical training.

This API provides:
- Assessment endpoint fusing classifier output with symptoms
- Classifier lifecycle control and readiness reporting
- Storage and retrieval of completed scans
- Structured request logging with request IDs
"""

import asyncio
import time
from contextlib import asynccontextmanager, suppress
from uuid import uuid4

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skincheck.config.config import Settings, get_settings
from skincheck.config.logging_config import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from skincheck.models.models import (
    AdviceResponse,
    AssessmentRequest,
    AssessmentResponse,
    ErrorResponse,
    HealthResponse,
    HealthStatus,
    ScanListResponse,
    ScanRecord,
    TierResponse,
)
from skincheck.services.assessment_service import AssessmentService
from skincheck.services.model_lifecycle import LoadResult, ModelLifecycleManager
from skincheck.services.scan_repository import ScanRepository, get_scan_repository

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Starts the classifier load in the background so requests are served
    (in fallback mode) while it runs, and releases it on shutdown.
    """
    settings: Settings = app.state.settings
    model: ModelLifecycleManager = app.state.model_manager

    logger.info(
        "Application starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        config=settings.model_dump(),
    )

    preload: asyncio.Task | None = None
    if settings.preload_model:
        preload = asyncio.create_task(model.load())

    yield

    if preload is not None and not preload.done():
        preload.cancel()
        with suppress(asyncio.CancelledError):
            await preload
    await model.aclose()
    logger.info("Application shutting down")


def get_model_manager_dep(request: Request) -> ModelLifecycleManager:
    return request.app.state.model_manager


def get_assessment_service_dep(request: Request) -> AssessmentService:
    return request.app.state.assessment_service


def get_scan_repository_dep(request: Request) -> ScanRepository:
    return request.app.state.scan_repository


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_app(
    settings: Settings | None = None,
    *,
    model_manager: ModelLifecycleManager | None = None,
    repository: ScanRepository | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Optional settings override for testing.
        model_manager: Optional classifier manager override for testing.
        repository: Optional scan store override for testing.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()
    model_manager = model_manager or ModelLifecycleManager(settings)
    repository = repository if repository is not None else get_scan_repository()

    app = FastAPI(
        title=settings.app_name,
        description=__doc__,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.settings = settings
    app.state.model_manager = model_manager
    app.state.scan_repository = repository
    app.state.assessment_service = AssessmentService(model=model_manager, repository=repository)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Tag each request with an ID and log its outcome and latency."""
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        start_time = time.perf_counter()
        bind_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            elapsed_ms = int((time.perf_counter() - start_time) * 1000)
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Processing-Time-Ms"] = str(elapsed_ms)
            logger.info("Request completed", status_code=response.status_code, processing_time_ms=elapsed_ms)
            return response
        finally:
            clear_request_context()

    # Exception handlers
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with structured response."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
                request_id=request.headers.get("X-Request-ID"),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Report malformed assessment requests as a structured 422."""
        errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        logger.warning("Request validation failed", errors=errors)
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="VALIDATION_ERROR",
                message="Request body is invalid",
                details={"errors": errors},
                request_id=request.headers.get("X-Request-ID"),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception("Unhandled exception", error=str(exc))
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                message="An unexpected error occurred",
                request_id=request.headers.get("X-Request-ID"),
            ).model_dump(mode="json"),
        )

    register_routes(app)

    return app


def register_routes(app: FastAPI) -> None:
    """Register all API routes."""

    @app.get("/", tags=["Root"])
    async def root(settings: Settings = Depends(get_app_settings)):
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "status": "operational",
            "docs": "/docs" if settings.debug else "disabled",
        }

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(
        settings: Settings = Depends(get_app_settings),
        model: ModelLifecycleManager = Depends(get_model_manager_dep),
    ) -> HealthResponse:
        """
        Health check endpoint for monitoring.

        The service stays usable without the classifier (fallback scoring),
        so a missing model reports DEGRADED rather than UNHEALTHY.
        """
        checks = {
            "api": True,
            "model_ready": model.is_ready(),
        }

        if all(checks.values()):
            status = HealthStatus.HEALTHY
        elif checks["api"]:
            status = HealthStatus.DEGRADED
        else:
            status = HealthStatus.UNHEALTHY

        return HealthResponse(
            status=status,
            version=settings.app_version,
            environment=settings.environment,
            checks=checks,
            classifier_state=model.state.value,
            classifier_error=model.last_error(),
        )

    @app.post("/api/v1/model/load", response_model=LoadResult, tags=["Model"])
    async def load_model(
        model: ModelLifecycleManager = Depends(get_model_manager_dep),
    ) -> LoadResult:
        """
        Load the classifier, or wait for the load already in progress.

        Returns immediately when the classifier is ready. After a failure,
        calling this again retries.
        """
        result = await model.load()
        logger.info("Model load requested", success=result.success, error_code=result.error_code)
        return result

    @app.post("/api/v1/assessments", response_model=AssessmentResponse, tags=["Assessment"])
    async def create_assessment(
        request: AssessmentRequest,
        settings: Settings = Depends(get_app_settings),
        service: AssessmentService = Depends(get_assessment_service_dep),
    ) -> AssessmentResponse:
        """
        Assess a skin spot from a photo and the symptom checklist.

        When the classifier is unavailable the assessment still completes
        using the fallback AI base risk of 0.1.
        """
        # base64 expands 3 bytes to 4 characters
        if len(request.image) * 3 // 4 > settings.max_image_bytes:
            raise HTTPException(status_code=413, detail="Image exceeds the maximum allowed size")

        logger.info(
            "Assessment request received",
            image_chars=len(request.image),
            symptoms=request.symptoms.describe(),
        )

        outcome = await service.assess(
            request.image,
            request.symptoms,
            image_ref=request.image_ref,
        )
        info = outcome.tier_info

        return AssessmentResponse(
            scan_id=outcome.record.id,
            inference=outcome.inference,
            assessment=outcome.assessment,
            status=TierResponse(
                tier=info.tier,
                label=info.label,
                color=info.color,
                color_value=info.color_value,
                action=info.action,
            ),
            advice=AdviceResponse(
                title=info.advice_title,
                message=info.advice_message,
                action=info.advice_action,
            ),
            symptoms=list(outcome.symptoms),
            processing_time_ms=outcome.processing_time_ms,
        )

    @app.get("/api/v1/scans", response_model=ScanListResponse, tags=["Scans"])
    async def list_scans(
        repository: ScanRepository = Depends(get_scan_repository_dep),
    ) -> ScanListResponse:
        """Get all stored scans, newest first."""
        scans = repository.list_all()
        return ScanListResponse(scans=scans, count=len(scans))

    @app.get("/api/v1/scans/{scan_id}", response_model=ScanRecord, tags=["Scans"])
    async def get_scan(
        scan_id: str,
        repository: ScanRepository = Depends(get_scan_repository_dep),
    ) -> ScanRecord:
        """
        Get a specific scan.

        Args:
            scan_id: The scan ID returned by the assessment endpoint.
        """
        record = repository.get(scan_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Scan not found")
        return record


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "skincheck.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
