from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class NotificationRequest:
	"""Data needed to confirm one accepted signup."""

	email: str
	referral_code: str
	name: str | None = None
	position: int | None = None


@dataclass(frozen=True)
class NotificationResult:
	success: bool
	message_id: str | None = None
	error: str | None = None


class AbstractNotifier(ABC):
	"""Interface for confirmation senders.

	Implementations report delivery problems through ``NotificationResult``
	rather than raising, but callers still guard against unexpected errors.
	"""

	@property
	def configured(self) -> bool:
		return True

	@abstractmethod
	async def send(self, request: NotificationRequest) -> NotificationResult:
		"""Deliver a confirmation for ``request``."""
		...

	async def close(self) -> None:
		return None


class NullNotifier(AbstractNotifier):
	"""Notifier used when no provider is configured (expected in local dev)."""

	@property
	def configured(self) -> bool:
		return False

	async def send(self, request: NotificationRequest) -> NotificationResult:
		return NotificationResult(success=True, message_id="skipped-no-config")
