"""API key authentication for the admin control plane.

Keys are validated against a comma-separated list from ``APP_ADMIN_API_KEYS``.
The public waitlist endpoint is never behind this check.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Annotated

from fastapi import Header, Request

from app.core.config import AppSettings
from app.core.errors import AuthenticationAppError

logger = logging.getLogger(__name__)


def parse_api_keys(keys_string: str | None) -> set[str]:
    """Parse comma-separated API keys into a set.

    Examples:
        >>> parse_api_keys("key1, key2 , key3 ") == {"key1", "key2", "key3"}
        True
        >>> parse_api_keys(None)
        set()
    """
    if not keys_string:
        return set()

    return {key.strip() for key in keys_string.split(",") if key.strip()}


def _key_hash(key: str) -> str:
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def validate_api_key(provided_key: str | None, app_settings: AppSettings) -> None:
    """Validate ``provided_key`` against the configured admin keys.

    Raises:
        AuthenticationAppError: If the key is missing or invalid, or if
            authentication is required but no keys are configured.
    """
    if not app_settings.admin_api_key_required:
        return

    valid_keys = parse_api_keys(app_settings.admin_api_keys)
    if not valid_keys:
        logger.error(
            "auth.validation_failed",
            extra={"reason": "api_keys_not_configured"},
        )
        raise AuthenticationAppError(
            code="api_keys_not_configured",
            message="Admin API is not configured",
            details={"hint": "Set APP_ADMIN_API_KEYS or disable with APP_ADMIN_API_KEY_REQUIRED=false"},
        )

    if not provided_key:
        logger.warning("auth.missing_key", extra={"api_key_present": False})
        raise AuthenticationAppError(
            code="missing_api_key",
            message="Missing API key. Provide X-API-Key header.",
        )

    provided = provided_key.encode()
    if not any(hmac.compare_digest(provided, key.encode()) for key in valid_keys):
        logger.warning(
            "auth.validation_failed",
            extra={"reason": "invalid_api_key", "api_key_hash": _key_hash(provided_key)},
        )
        raise AuthenticationAppError(code="invalid_api_key", message="Invalid or missing API key")

    logger.info("auth.success", extra={"api_key_hash": _key_hash(provided_key)})


async def verify_api_key(
    request: Request,
    x_api_key: Annotated[str | None, Header(alias="X-API-Key")] = None,
) -> None:
    """FastAPI dependency guarding admin routes.

    Usage:
        @router.post("/admin/thing", dependencies=[Depends(verify_api_key)])
    """
    validate_api_key(x_api_key, request.app.state.settings.app)
