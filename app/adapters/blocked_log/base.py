"""Blocked-request log interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

# Records are kept for 24 hours
RETENTION_SECONDS = 86_400

# Newest records kept per address
MAX_RECORDS_PER_ADDRESS = 100


@dataclass(frozen=True)
class BlockedRequest:
    """One heuristic rejection recorded against a client address."""

    reason: str
    timestamp_ms: int


class BlockedLogUnavailableError(Exception):
    """Raised when the blocked-request log cannot be written or read."""


class AbstractBlockedRequestLog(ABC):
    """Append-only per-address log plus a global blocked counter."""

    @abstractmethod
    async def record(self, address: str, reason: str) -> None:
        """Append ``(reason, now)`` for ``address`` and bump the global total."""
        raise NotImplementedError

    @abstractmethod
    async def list_for(self, address: str) -> list[BlockedRequest]:
        """Return retained records for ``address``, newest first."""
        raise NotImplementedError

    @abstractmethod
    async def total(self) -> int:
        """Return the number of blocked requests ever recorded."""
        raise NotImplementedError

    async def close(self) -> None:
        return None
