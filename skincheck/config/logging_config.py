"""
Structured logging for the SkinCheck service.

Every record carries the service name, version and environment, so that
classifier load failures and fallback assessments can be traced across
deployments. Request handlers additionally bind a request ID through
structlog contextvars.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from skincheck.config.config import Settings, get_settings

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "PIL", "onnxruntime")


def _service_info(settings: Settings) -> Processor:
    service = {
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

    def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in service.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_info


def configure_logging(settings: Settings | None = None, stream: TextIO | None = None) -> None:
    """
    Route structlog and stdlib logging through one handler.

    ``log_format="json"`` emits one JSON object per line for aggregation;
    ``"console"`` emits key=value lines, colored when writing to a TTY.

    Args:
        settings: Settings override. Uses cached settings if omitted.
        stream: Destination for log records. Defaults to stdout.
    """
    settings = settings or get_settings()
    stream = stream or sys.stdout

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_info(settings),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        pre_chain.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(settings.log_level.upper())

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structured logger for ``name`` (usually ``__name__``)."""
    return structlog.get_logger(name)


def bind_request_context(request_id: str, method: str, path: str, **extra: Any) -> None:
    """
    Start a fresh log context for one HTTP request.

    Args:
        request_id: Unique request identifier, echoed in X-Request-ID.
        method: HTTP method.
        path: Request path.
        **extra: Additional fields, e.g. the client address.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        http_method=method,
        http_path=path,
        **extra,
    )


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
