"""Client configuration loaded from ZENML_* environment variables."""

from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ZenStateSettings(BaseSettings):
    """Connection settings for the remote ZenML server.

    All fields are read from environment variables with the ``ZENML_`` prefix.
    For example, ``ZENML_SERVER_URL=https://zenml.example.com`` maps to
    ``server_url``.

    Exactly one of ``api_key`` / ``api_token`` must be provided: no entity
    operation can proceed without a credential, so a missing one fails at load
    time rather than on the first request.
    """

    model_config = SettingsConfigDict(
        env_prefix="ZENML_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Server ----------------------------------------------------------------
    server_url: str
    """Base URL of the server, without the ``/api/v1`` suffix."""

    # -- Auth ------------------------------------------------------------------
    api_key: SecretStr | None = None
    """Service account API key, exchanged for a bearer token on first use."""

    api_token: SecretStr | None = None
    """Pre-issued bearer token, sent as-is."""

    # -- Requests --------------------------------------------------------------
    request_timeout: float = 30.0
    """Deadline in seconds applied to every remote call."""

    page_size: int = 100

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    log_json: bool = False
    """Emit one JSON object per log record instead of the console format."""

    @model_validator(mode="after")
    def _check_credentials(self) -> ZenStateSettings:
        if not self.server_url.strip():
            msg = "server_url cannot be empty"
            raise ValueError(msg)
        has_key = self.api_key is not None and bool(self.api_key.get_secret_value())
        has_token = self.api_token is not None and bool(self.api_token.get_secret_value())
        if not has_key and not has_token:
            msg = "one of api_key or api_token is required"
            raise ValueError(msg)
        if has_key and has_token:
            msg = "api_key and api_token are mutually exclusive; set exactly one"
            raise ValueError(msg)
        self.server_url = self.server_url.rstrip("/")
        return self


def get_settings() -> ZenStateSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``_get_settings_cached.cache_clear()`` in tests to
    force a re-read after overriding env vars.
    """
    return _get_settings_cached()


@lru_cache(maxsize=1)
def _get_settings_cached() -> ZenStateSettings:
    return ZenStateSettings()  # type: ignore[call-arg]
