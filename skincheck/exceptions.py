"""
Error taxonomy for the classifier lifecycle and inference path.

- ConfigurationError: asset location unset or still a placeholder.
  Detected before any network access and not retryable until the
  configuration changes.
- LoadError: fetching or building the classifier failed. Retryable.
- InferenceError: the forward pass could not run (model not ready,
  disposed mid-call, bad output shape). Always recovered locally.
- ImageDecodeError: the uploaded image could not be decoded.
"""

from datetime import datetime, timezone
from typing import Any


class SkinCheckError(Exception):
    """Base exception for all SkinCheck errors."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
        suggestions: list[str] | None = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._get_default_error_code()
        self.context: dict[str, Any] = context or {}
        self.suggestions: list[str] = suggestions or []
        self.recoverable = recoverable
        self.timestamp = datetime.now(timezone.utc)

    def _get_default_error_code(self) -> str:
        return "SKINCHECK_ERROR"

    def add_context(self, key: str, value: Any) -> "SkinCheckError":
        if key:
            self.context[key] = value
        return self

    def add_suggestion(self, suggestion: str) -> "SkinCheckError":
        if suggestion:
            self.suggestions.append(suggestion)
        return self

    def __str__(self) -> str:
        base = self.message or ""
        if self.suggestions:
            return f"{base} -- Suggestions: {'; '.join(self.suggestions)}"
        return base


class ConfigurationError(SkinCheckError):
    """Raised when the classifier location is missing or invalid."""

    def __init__(self, message: str, *, config_field: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.config_field = config_field

    def _get_default_error_code(self) -> str:
        return "CONFIGURATION_ERROR"

    def __str__(self) -> str:
        base = self.message or ""
        if self.config_field:
            base = f"[{self.config_field}] {base}"
        if self.suggestions:
            return f"{base} -- Suggestions: {'; '.join(self.suggestions)}"
        return base


class LoadError(SkinCheckError):
    """Raised when the classifier assets cannot be fetched or built."""

    def __init__(self, message: str, *, url: str | None = None, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)
        if url:
            self.add_context("url", url)

    def _get_default_error_code(self) -> str:
        return "LOAD_ERROR"


class InferenceError(SkinCheckError):
    """Raised when a forward pass cannot be completed."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("recoverable", True)
        super().__init__(message, **kwargs)

    def _get_default_error_code(self) -> str:
        return "INFERENCE_ERROR"


class ImageDecodeError(InferenceError):
    """Raised when an image payload cannot be decoded."""

    def _get_default_error_code(self) -> str:
        return "IMAGE_DECODE_ERROR"
