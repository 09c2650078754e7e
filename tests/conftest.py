"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins APP_ENV to ``testing`` before settings are imported so no developer
.env file leaks into the run.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_ADMIN_API_KEYS", "test-admin-key")

from typing import Callable

import pytest
from fastapi.testclient import TestClient

from app.adapters.notifier.base import AbstractNotifier, NotificationRequest, NotificationResult
from app.core.app_factory import create_app
from app.core.config import (
    AppSettings,
    DatabaseSettings,
    LogSettings,
    NotifierSettings,
    RateLimitSettings,
    RedisSettings,
    Settings,
)
from app.core.container import ServiceContainer, build_services

ADMIN_KEY = "test-admin-key"
ALLOWED_ORIGIN = "https://app.example.com"


class RecordingNotifier(AbstractNotifier):
    """Configured notifier that records every request instead of sending."""

    def __init__(self) -> None:
        self.requests: list[NotificationRequest] = []

    async def send(self, request: NotificationRequest) -> NotificationResult:
        self.requests.append(request)
        return NotificationResult(success=True, message_id=f"msg-{len(self.requests)}")


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Factory for isolated settings: temp SQLite file, no Redis, no delays."""

    def _make(
        *,
        app_env: str = "testing",
        app: dict | None = None,
        rate_limit: dict | None = None,
        notifier: dict | None = None,
    ) -> Settings:
        app_kwargs = {
            "allowed_origins": ALLOWED_ORIGIN,
            "timing_noise_min_ms": 0,
            "timing_noise_max_ms": 0,
            "admin_api_key_required": True,
            "admin_api_keys": ADMIN_KEY,
        }
        app_kwargs.update(app or {})
        return Settings(
            app_env=app_env,
            app=AppSettings(**app_kwargs),
            rate_limit=RateLimitSettings(**(rate_limit or {})),
            redis=RedisSettings(url=None),
            database=DatabaseSettings(url=f"sqlite:///{(tmp_path / 'waitlist.db').as_posix()}"),
            notifier=NotifierSettings(**(notifier or {"provider": "none"})),
            log=LogSettings(level="WARNING", format="plain"),
        )

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def services(settings, notifier) -> ServiceContainer:
    return build_services(settings, notifier=notifier)


@pytest.fixture
def client(settings, services):
    """TestClient with the lifespan running (schema created, workers started)."""
    app = create_app(settings, services=services)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict:
    return {"X-API-Key": ADMIN_KEY}


@pytest.fixture
def json_headers() -> dict:
    return {"Content-Type": "application/json"}
