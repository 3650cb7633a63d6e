"""Unit tests for ZenStateSettings."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from zenstate.engine.settings import ZenStateSettings, _get_settings_cached, get_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in ("ZENML_SERVER_URL", "ZENML_API_KEY", "ZENML_API_TOKEN", "ZENML_REQUEST_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the way.
    monkeypatch.chdir(tmp_path)
    _get_settings_cached.cache_clear()


def test_token_credential(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZENML_SERVER_URL", "https://zenml.example.com/")
    monkeypatch.setenv("ZENML_API_TOKEN", "tok")
    settings = ZenStateSettings()
    assert settings.server_url == "https://zenml.example.com"
    assert settings.api_token is not None
    assert settings.api_token.get_secret_value() == "tok"
    assert settings.request_timeout == 30.0


def test_missing_credential_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZENML_SERVER_URL", "https://zenml.example.com")
    with pytest.raises(ValidationError, match="one of api_key or api_token is required"):
        ZenStateSettings()


def test_both_credentials_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZENML_SERVER_URL", "https://zenml.example.com")
    monkeypatch.setenv("ZENML_API_KEY", "key")
    monkeypatch.setenv("ZENML_API_TOKEN", "tok")
    with pytest.raises(ValidationError, match="mutually exclusive"):
        ZenStateSettings()


def test_missing_server_url() -> None:
    with pytest.raises(ValidationError):
        ZenStateSettings(api_key="key")


def test_empty_server_url() -> None:
    with pytest.raises(ValidationError, match="server_url cannot be empty"):
        ZenStateSettings(server_url="  ", api_key="key")


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZENML_SERVER_URL", "https://zenml.example.com")
    monkeypatch.setenv("ZENML_API_KEY", "key")
    monkeypatch.setenv("ZENML_REQUEST_TIMEOUT", "5")
    first = get_settings()
    assert first is get_settings()
    assert first.request_timeout == 5.0
