"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Settings are read once at the process entry point and handed to components as
typed values; rate limiters never touch the environment themselves.
"""

from __future__ import annotations

import os
from pathlib import Path

from fastapi import Request
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=False)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    api_key_required: bool = Field(
        True,
        description="Whether admin endpoints require an API key",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid admin API keys",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting on portal and API routes",
    )
    portal_customer_header: str = Field(
        "X-Customer-ID",
        description="Header carrying the customer id resolved by upstream token validation",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class PortalRateLimitSettings(BaseSettings):
    """Quota for the customer portal limiter."""

    requests: int = Field(100, ge=1, description="Requests allowed per window")
    window_seconds: int = Field(60, ge=1, description="Sliding window length in seconds")

    model_config = SettingsConfigDict(
        env_prefix="PORTAL_RATE_LIMIT_",
        case_sensitive=False,
    )


class ApiRateLimitSettings(BaseSettings):
    """Quota for the general API limiter."""

    requests: int = Field(60, ge=1, description="Requests allowed per window")
    window_seconds: int = Field(60, ge=1, description="Sliding window length in seconds")

    model_config = SettingsConfigDict(
        env_prefix="API_RATE_LIMIT_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Upstash Redis REST credentials backing the sliding windows.

    When either credential is missing the limiters run permanently fail-open.
    """

    rest_url: str | None = Field(
        None,
        description="Upstash Redis REST endpoint (https://...)",
    )
    rest_token: str | None = Field(
        None,
        description="Upstash Redis REST access token",
    )
    timeout_ms: int = Field(
        300,
        ge=1,
        description="Per-call timeout for store operations in milliseconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTASH_REDIS_",
        case_sensitive=False,
    )

    @property
    def configured(self) -> bool:
        return bool(self.rest_url and self.rest_token)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, ge=0, description="Rotate after this size (0 disables rotation)")
    backup_count: int = Field(5, ge=0, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    portal_limit: PortalRateLimitSettings = Field(default_factory=PortalRateLimitSettings)
    api_limit: ApiRateLimitSettings = Field(default_factory=ApiRateLimitSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()


def get_app_settings(request: Request) -> Settings:
    """Return the settings the running application was built with."""
    return request.app.state.settings
