"""
Application configuration with environment-based settings.
All configuration is explicit, validated, and logged at startup.

Scoring weights, tier thresholds and the label risk table are fixed
policy and live in code, not here.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development. The classifier
    location has no usable default: until MODEL_BASE_URL is set the service
    runs in fallback mode (symptom-only scoring with the default AI risk).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        protected_namespaces=(),
    )

    # Application
    app_name: str = Field(default="SkinCheck", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Allowed CORS origins"
    )

    # Classifier assets
    model_base_url: str = Field(
        default="",
        description="Base URL of the exported classifier folder (must end with the model ID)"
    )
    model_file: str = Field(default="model.onnx", description="Model definition file name")
    metadata_file: str = Field(default="metadata.json", description="Model metadata file name")
    model_fetch_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for each classifier asset request"
    )
    preload_model: bool = Field(
        default=True,
        description="Start loading the classifier in the background at startup"
    )

    # Uploads
    max_image_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Maximum decoded image payload size"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def model_definition_url(self) -> str:
        """Full URL of the model definition resource."""
        return _join_url(self.model_base_url, self.model_file)

    @property
    def model_metadata_url(self) -> str:
        """Full URL of the model metadata resource."""
        return _join_url(self.model_base_url, self.metadata_file)


def _join_url(base: str, name: str) -> str:
    base = base.strip()
    if not base.endswith("/"):
        base += "/"
    return base + name


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for the application lifetime.
    Use dependency injection in FastAPI routes for testability.
    """
    return Settings()
