"""Durable waitlist store interface.

Failure kinds are distinct on purpose: ``exists`` returning False means "no
such entry", while an unreachable or erroring store raises
``StoreUnavailableError``. A unique-constraint violation on insert raises
``DuplicateEntryError`` naming the offending field.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class WaitlistEntry:
    """An accepted signup. Never mutated once written."""

    email: str
    referral_code: str
    name: str | None = None
    referred_by: str | None = None
    created_at: datetime = field(default_factory=_utcnow)


class StoreUnavailableError(Exception):
    """Raised when the durable store cannot be reached or errors."""


class DuplicateEntryError(Exception):
    """Raised when an insert violates a unique constraint.

    Attributes:
        field: ``"email"`` or ``"referral_code"``.
    """

    def __init__(self, field: str) -> None:
        super().__init__(f"duplicate value for {field}")
        self.field = field


class AbstractWaitlistStore(ABC):
    """Interface for the durable record store."""

    @abstractmethod
    async def exists(self, email: str) -> bool:
        """Return True if an entry with this normalized email exists."""
        raise NotImplementedError

    @abstractmethod
    async def insert(self, entry: WaitlistEntry) -> str:
        """Insert ``entry`` atomically and return its id.

        Raises:
            DuplicateEntryError: If ``email`` or ``referral_code`` already exists.
            StoreUnavailableError: On any other store failure.
        """
        raise NotImplementedError

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of entries."""
        raise NotImplementedError

    @abstractmethod
    async def find_by_referral_code(self, code: str) -> str | None:
        """Return the id of the entry owning ``code``, if any."""
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        raise NotImplementedError

    async def prepare(self) -> None:
        """Create schema or warm connections before serving traffic."""
        return None

    async def close(self) -> None:
        return None
