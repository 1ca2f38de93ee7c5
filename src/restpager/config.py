"""Configuration management with pydantic-settings for restpager.

Loads from (in order of precedence):
1. Environment variables with the RESTPAGER_ prefix (highest priority)
2. .env file in the working directory
3. Default values (lowest priority)

Credentials are held as SecretStr and only unwrapped when the
ConnectionContext is built.
"""

import logging
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("restpager.config")

__all__ = [
    "DEFAULT_API_VERSION",
    "DEFAULT_URL",
    "ClientSettings",
    "get_settings",
    "reset_settings",
]

DEFAULT_URL = "https://gitlab.com"
DEFAULT_API_VERSION = "v4"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
VALID_LOG_FORMATS = {"json", "text"}


class ClientSettings(BaseSettings):
    """Settings for a restpager client.

    Attributes:
        url: Server root URL; the API path is appended as /api/<version>
        version: API version segment (e.g. v4)
        token: Personal access token, sent as the private-token header
        oauth_token: OAuth bearer token, takes precedence over token
        reject_unauthorized: Verify TLS certificates
        timeout_seconds: Per-request timeout for the HTTP transport
        max_retries: Retries after a 429 response before giving up
        max_backoff: Upper bound (seconds) on a single Retry-After wait
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log format (json for production, text for development)
    """

    model_config = SettingsConfigDict(
        env_prefix="RESTPAGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        validate_default=True,
        frozen=True,
        extra="ignore",
    )

    url: str = Field(default=DEFAULT_URL, description="Server root URL")

    version: str = Field(
        default=DEFAULT_API_VERSION, description="API version path segment"
    )

    token: SecretStr | None = Field(
        default=None, description="Personal access token (private-token header)"
    )

    oauth_token: SecretStr | None = Field(
        default=None,
        description="OAuth bearer token (authorization header). Wins over token.",
    )

    reject_unauthorized: bool = Field(
        default=True, description="Verify TLS certificates"
    )

    timeout_seconds: float = Field(
        default=30.0, ge=1.0, le=300.0, description="Request timeout in seconds"
    )

    max_retries: int = Field(
        default=3, ge=0, le=10, description="Retries after HTTP 429"
    )

    max_backoff: float = Field(
        default=60.0, ge=0.0, le=600.0, description="Maximum single retry wait"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    log_format: str = Field(default="json", description="json or text")

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the server URL so joins never produce '//'."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"url must start with http:// or https://, got {v!r}")
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v!r}"
            )
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in VALID_LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v!r}"
            )
        return fmt

    def get_token(self) -> str | None:
        """Return the personal token as a plain string, if configured."""
        return self.token.get_secret_value() if self.token else None

    def get_oauth_token(self) -> str | None:
        """Return the OAuth token as a plain string, if configured."""
        return self.oauth_token.get_secret_value() if self.oauth_token else None


@lru_cache(maxsize=1)
def get_settings() -> ClientSettings:
    """Get the global settings singleton.

    First call loads from environment + .env file, subsequent calls return
    the cached instance.

    Raises:
        ValidationError: If configuration values are invalid.
    """
    settings = ClientSettings()
    logger.debug(
        "settings_loaded",
        extra={
            "url": settings.url,
            "version": settings.version,
            "has_token": settings.token is not None,
            "has_oauth_token": settings.oauth_token is not None,
        },
    )
    return settings


def reset_settings() -> None:
    """Reset the settings singleton. Only use in test code."""
    get_settings.cache_clear()
