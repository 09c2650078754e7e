"""Tests for global exception handlers.

Validates that every error type is answered in the shared
``{success, message}`` shape with the right status and no leakage.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AuthenticationAppError,
    ClientInputAppError,
    DependencyAppError,
    PolicyRejectionAppError,
)
from app.core.exception_handlers import setup_exception_handlers
from app.services.admission_service import INTERNAL_ERROR_MESSAGE


@pytest.fixture
def app_with_handlers() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/client-input")
    async def client_input():
        raise ClientInputAppError(code="bad", message="Bad input")

    @app.get("/too-large")
    async def too_large():
        raise ClientInputAppError(code="body_too_large", message="Request body too large", details={"http_status": 413})

    @app.get("/rate-limited")
    async def rate_limited():
        raise PolicyRejectionAppError(
            code="rate_limited",
            message="Too many requests",
            details={"http_status": 429, "retry_after": 30},
        )

    @app.get("/auth")
    async def auth():
        raise AuthenticationAppError(code="invalid_api_key", message="Invalid or missing API key")

    @app.get("/dependency")
    async def dependency():
        raise DependencyAppError(code="db", message="connection refused at 10.0.0.5:5432")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("secret internals")

    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    @pytest.mark.parametrize(
        "path, status, message",
        [
            ("/client-input", 400, "Bad input"),
            ("/too-large", 413, "Request body too large"),
            ("/auth", 403, "Invalid or missing API key"),
        ],
    )
    def test_status_and_message(self, client, path, status, message) -> None:
        response = client.get(path)

        assert response.status_code == status
        assert response.json() == {"success": False, "message": message}

    def test_rate_limit_sets_retry_after(self, client) -> None:
        response = client.get("/rate-limited")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "30"

    def test_dependency_message_is_never_surfaced(self, client) -> None:
        response = client.get("/dependency")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": INTERNAL_ERROR_MESSAGE}
        assert "10.0.0.5" not in response.text


class TestFallbackHandlers:
    def test_unexpected_exception_is_generic_500(self, client) -> None:
        response = client.get("/boom")

        assert response.status_code == 500
        assert "secret internals" not in response.text
        assert response.json()["message"] == INTERNAL_ERROR_MESSAGE

    def test_unknown_route_uses_same_shape(self, client) -> None:
        response = client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Not Found"}
