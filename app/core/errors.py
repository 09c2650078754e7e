"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.

Taxonomy:
- ClientInputAppError: malformed, oversized or invalid requests (4xx). The
  message is specific enough for the client to self-correct.
- PolicyRejectionAppError: rate limited, duplicate, origin rejected. The
  message is deliberately generic.
- DependencyAppError: a shared store is unreachable, erroring or too slow.
  Never surfaced verbatim; callers answer with a generic 500.
- AuthenticationAppError: admin API key failures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    http_status: int
    retry_after: int
    scope: str
    dependency: str
    max_bytes: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    default_status = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    @property
    def http_status(self) -> int:
        if self.details and "http_status" in self.details:
            return self.details["http_status"]
        return self.default_status


class ClientInputAppError(AppError):
    """Raised when request shape, headers or fields are invalid."""


class PolicyRejectionAppError(AppError):
    """Raised when a request is refused by policy (rate limit, duplicate, origin)."""

    default_status = 403


class DependencyAppError(AppError):
    """Raised when a shared store fails or times out."""

    default_status = 500


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""

    default_status = 403
