import pytest
from pydantic import ValidationError

from skincheck.config.config import Settings


def test_defaults_run_in_fallback_mode(monkeypatch):
    for name in ("MODEL_BASE_URL", "PRELOAD_MODEL", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.model_base_url == ""
    assert settings.model_file == "model.onnx"
    assert settings.metadata_file == "metadata.json"
    assert settings.preload_model is True
    assert settings.is_production is False


@pytest.mark.parametrize(
    "base_url",
    ["https://models.example.com/abc123/", "https://models.example.com/abc123"],
)
def test_asset_urls(base_url):
    settings = Settings(_env_file=None, model_base_url=base_url)
    assert settings.model_definition_url == "https://models.example.com/abc123/model.onnx"
    assert settings.model_metadata_url == "https://models.example.com/abc123/metadata.json"


def test_environment_variables(monkeypatch):
    monkeypatch.setenv("MODEL_BASE_URL", "https://cdn.example.org/m/1/")
    monkeypatch.setenv("PRELOAD_MODEL", "false")
    monkeypatch.setenv("ENVIRONMENT", "production")

    settings = Settings(_env_file=None)

    assert settings.model_base_url == "https://cdn.example.org/m/1/"
    assert settings.preload_model is False
    assert settings.is_production is True


def test_invalid_timeout_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, model_fetch_timeout_seconds=0)
