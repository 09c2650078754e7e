"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Settings are built once at process start and handed to ``create_app``; no
module reads ambient globals at request time.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
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


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate log file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field("X-Request-ID", description="Header carrying the correlation id")

    model_config = SettingsConfigDict(env_prefix="LOG_", case_sensitive=False)


class AppSettings(BaseSettings):
    """HTTP surface and admission pipeline configuration."""

    debug: bool = Field(False, description="Enable debug mode with verbose logging")
    allowed_origins: str = Field(
        "http://localhost:3000,http://localhost:3001",
        description="Comma-separated list of origins allowed to submit signups",
    )
    max_body_bytes: int = Field(1024, description="Maximum signup request body size", ge=1)
    timing_noise_min_ms: int = Field(50, description="Lower bound of the randomized response delay", ge=0)
    timing_noise_max_ms: int = Field(150, description="Upper bound of the randomized response delay", ge=0)
    store_timeout_seconds: float = Field(
        3.0, description="Timeout for duplicate check, insert and count calls", gt=0
    )
    report_position: bool = Field(True, description="Return the waitlist position on success")
    admin_api_key_required: bool = Field(
        True, description="Whether admin endpoints require an API key"
    )
    admin_api_keys: str | None = Field(
        None, description="Comma-separated list of valid admin API keys"
    )

    model_config = SettingsConfigDict(env_prefix="APP_", case_sensitive=False)


class RateLimitSettings(BaseSettings):
    """Sliding-window limits for each scope."""

    global_limit: int = Field(1000, ge=1, description="Signup attempts per window across all sources")
    global_window_seconds: int = Field(3600, ge=1)
    address_limit: int = Field(20, ge=1, description="Signup attempts per window per client address")
    address_window_seconds: int = Field(3600, ge=1)
    identity_limit: int = Field(20, ge=1, description="Signup attempts per window per identity")
    identity_window_seconds: int = Field(3600, ge=1)
    strict_limit: int = Field(2, ge=1, description="Limit used by the strict escalation lever")
    strict_window_seconds: int = Field(3600, ge=1)
    strict_mode: bool = Field(
        False, description="Tighten the per-identity limit to strict_limit"
    )
    fail_closed: bool | None = Field(
        None,
        description="Deny when the counter store fails. Defaults to True only in production",
    )
    fail_closed_retry_after_seconds: int = Field(60, ge=1)
    timeout_seconds: float = Field(1.0, gt=0, description="Timeout for one counter store call")

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", case_sensitive=False)


class RedisSettings(BaseSettings):
    """Shared counter store connection."""

    url: str | None = Field(
        None, description="Redis URL; when unset a per-process in-memory store is used"
    )
    socket_timeout_seconds: float = Field(1.0, gt=0)
    key_prefix: str = Field("waitlist", description="Namespace for every Redis key")

    model_config = SettingsConfigDict(env_prefix="REDIS_", case_sensitive=False)


class DatabaseSettings(BaseSettings):
    """Durable store connection."""

    url: str | None = Field(
        None, description="SQLAlchemy URL; defaults to a SQLite file under data/"
    )
    echo: bool = Field(False, description="Echo SQL statements")

    model_config = SettingsConfigDict(env_prefix="DATABASE_", case_sensitive=False)


class NotifierSettings(BaseSettings):
    """Confirmation email delivery."""

    provider: str = Field("none", description="Notifier provider: resend or none")
    api_key: str | None = Field(None, description="Provider API key")
    from_email: str | None = Field(None, description="Sender address")
    reply_to_email: str | None = Field(None, description="Reply-To address")
    base_url: str = Field("https://api.resend.com", description="Provider API base URL")
    timeout_seconds: float = Field(10.0, gt=0)
    queue_size: int = Field(1000, ge=1, description="Maximum pending notifications")
    workers: int = Field(2, ge=1, description="Concurrent notification workers")
    site_url: str = Field("https://example.com", description="Link included in the email body")
    product_name: str = Field("Waitlist", description="Product name used in the email subject")

    model_config = SettingsConfigDict(env_prefix="NOTIFIER_", case_sensitive=False)


def _build_app_settings() -> AppSettings:
    return AppSettings()


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()


def _build_redis_settings() -> RedisSettings:
    return RedisSettings()


def _build_database_settings() -> DatabaseSettings:
    return DatabaseSettings()


def _build_notifier_settings() -> NotifierSettings:
    return NotifierSettings()


def _build_log_settings() -> LogSettings:
    return LogSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    database: DatabaseSettings = Field(default_factory=_build_database_settings)
    notifier: NotifierSettings = Field(default_factory=_build_notifier_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(case_sensitive=False)

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() == "development"

    @property
    def rate_limit_fails_closed(self) -> bool:
        """Resolve the counter-store failure policy for this environment."""
        if self.rate_limit.fail_closed is not None:
            return self.rate_limit.fail_closed
        return self.is_production


def get_settings() -> Settings:
    """Build settings from the current environment."""

    return Settings()
