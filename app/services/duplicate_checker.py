"""Duplicate identity lookup against the durable store."""

from __future__ import annotations

import asyncio
import logging

from app.adapters.store.base import AbstractWaitlistStore, StoreUnavailableError
from app.core.errors import DependencyAppError

logger = logging.getLogger(__name__)


class DuplicateChecker:
    """Exact-match lookup on the unique identity field.

    Store errors and timeouts are hard failures: they are never read as
    "does not exist".
    """

    def __init__(self, store: AbstractWaitlistStore, *, timeout_seconds: float = 3.0) -> None:
        self._store = store
        self._timeout = timeout_seconds

    async def exists(self, normalized_identity: str) -> bool:
        try:
            return await asyncio.wait_for(
                self._store.exists(normalized_identity),
                timeout=self._timeout,
            )
        except (StoreUnavailableError, asyncio.TimeoutError) as exc:
            logger.error(
                "duplicate_check.failed",
                extra={"error_type": type(exc).__name__, "timeout_s": self._timeout},
            )
            raise DependencyAppError(
                code="duplicate_check_failed",
                message="Failed to check email status",
                details={"dependency": "waitlist_store"},
            ) from exc
