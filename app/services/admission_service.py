"""Admission pipeline for public waitlist signups.

Every signup attempt walks a fixed sequence of stages, any of which can end
the request early:

 1. Transport shape: method gate, origin allow-list (blocked-request record on failure)
 2. Content shape: JSON content type, declared Content-Length cap
 3. Rate limits: global, per-address (and per-identity if already known)
 4. Payload parse: bounded body read, JSON object decode
 5. Honeypot: decoy fields filled -> record, delay, success-shaped response
 6. Identity validation: present, string, normalized, length, format
 7. Optional fields: name and referral code sanitized (never rejects)
 8. Per-identity rate limit with the parsed identity
 9. Duplicate check: delay, generic 409
10. Persist: referral code + atomic insert (unique constraints close races)
11. Post-commit: best-effort position, background notification hand-off
12. Success

Client input and policy failures are answered at the stage that detects
them. Dependency and unexpected failures are caught at ``admit``'s outer
boundary and answered with a generic 500. Honeypot, duplicate and internal
error responses are delayed by timing noise; nothing else is.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from app.adapters.blocked_log.base import AbstractBlockedRequestLog, BlockedLogUnavailableError
from app.adapters.notifier.base import NotificationRequest
from app.adapters.store.base import (
    AbstractWaitlistStore,
    DuplicateEntryError,
    StoreUnavailableError,
    WaitlistEntry,
)
from app.core.errors import (
    AppError,
    ClientInputAppError,
    DependencyAppError,
    PolicyRejectionAppError,
)
from app.core.logging import mask_address
from app.core.origin_policy import OriginPolicy
from app.core.request_limits import body_too_large
from app.schemas.waitlist import SignupData, SignupResponse
from app.services.duplicate_checker import DuplicateChecker
from app.services.notification_dispatcher import NotificationDispatcher
from app.services.rate_limit_service import RateLimitDecision, RateLimiter
from app.services.timing_noise import TimingNoise
from app.utils.identity_hasher import hash_identity
from app.utils.identity_validators import (
    MAX_IDENTITY_LENGTH,
    normalize_identity,
    validate_identity,
)
from app.utils.referral_codes import generate_referral_code
from app.utils.text_sanitizer import normalize_referral_code, sanitize_display_name

logger = logging.getLogger(__name__)

ALLOWED_METHODS = frozenset({"POST", "OPTIONS"})
HONEYPOT_FIELDS = ("website", "url", "phone")
REFERRAL_CODE_ATTEMPTS = 5

SUCCESS_MESSAGE = "You're on the list! Check your email for confirmation."
DUPLICATE_MESSAGE = "You're already on the waitlist. We'll be in touch!"
INTERNAL_ERROR_MESSAGE = "Something went wrong. Please try again later."
IDENTITY_RATE_LIMIT_MESSAGE = "Too many attempts with this email. Please try again later."


@dataclass
class SignupAttempt:
    """Transport-level view of one signup request.

    ``read_body`` is only awaited at the parse stage, after the shape and
    rate-limit checks have passed.
    """

    method: str
    client_address: str
    read_body: Callable[[], Awaitable[bytes]]
    origin: str | None = None
    content_type: str | None = None
    content_length: str | None = None
    identity_hint: str | None = None


@dataclass(frozen=True)
class AdmissionOutcome:
    """What the HTTP layer should send back.

    ``decision`` is for logs and tests only and is never serialized.
    """

    status_code: int
    body: SignupResponse
    decision: str
    headers: dict[str, str] = field(default_factory=dict)


def _rate_limited(decision: RateLimitDecision, message: str | None = None) -> PolicyRejectionAppError:
    retry_after = decision.retry_after_seconds or 60
    return PolicyRejectionAppError(
        code="rate_limited",
        message=message or f"Too many requests. Please try again in {retry_after} seconds.",
        details={"http_status": 429, "retry_after": retry_after, "scope": decision.scope.value},
    )


class AdmissionPipeline:
    """Decides accept / reject / absorb for each signup attempt."""

    def __init__(
        self,
        *,
        rate_limiter: RateLimiter,
        duplicate_checker: DuplicateChecker,
        store: AbstractWaitlistStore,
        blocked_log: AbstractBlockedRequestLog,
        dispatcher: NotificationDispatcher,
        origin_policy: OriginPolicy,
        timing_noise: TimingNoise,
        max_body_bytes: int = 1024,
        store_timeout_seconds: float = 3.0,
        report_position: bool = True,
        code_generator: Callable[[], str] = generate_referral_code,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.duplicate_checker = duplicate_checker
        self.store = store
        self.blocked_log = blocked_log
        self.dispatcher = dispatcher
        self.origin_policy = origin_policy
        self.timing_noise = timing_noise
        self.max_body_bytes = max_body_bytes
        self.store_timeout_seconds = store_timeout_seconds
        self.report_position = report_position
        self._generate_code = code_generator

    async def admit(self, attempt: SignupAttempt) -> AdmissionOutcome:
        """Run every stage for ``attempt`` and return the response to send."""

        try:
            return await self._run(attempt)
        except (ClientInputAppError, PolicyRejectionAppError) as exc:
            return self._rejection(exc)
        except DependencyAppError as exc:
            logger.error(
                "admission.dependency_failure",
                extra={
                    "error_code": exc.code,
                    "error_msg": exc.message,
                    "client_network": mask_address(attempt.client_address),
                },
            )
            return await self._internal_error()
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "admission.unexpected_error",
                extra={"error_type": type(exc).__name__},
            )
            return await self._internal_error()

    async def _run(self, attempt: SignupAttempt) -> AdmissionOutcome:
        # Stage 1
        method = attempt.method.upper()
        if method not in ALLOWED_METHODS:
            raise ClientInputAppError(
                code="method_not_allowed",
                message="Method not allowed",
                details={"http_status": 405},
            )
        if method == "OPTIONS":
            return AdmissionOutcome(
                status_code=200,
                body=SignupResponse(success=True, message="OK"),
                decision="preflight",
            )
        if not self.origin_policy.is_allowed(attempt.origin):
            await self._record_blocked(attempt.client_address, "invalid_origin")
            raise PolicyRejectionAppError(
                code="invalid_origin",
                message="Invalid request origin",
                details={"http_status": 403},
            )

        # Stage 2
        self._check_content_shape(attempt)

        # Stage 3
        hint = normalize_identity(attempt.identity_hint) if attempt.identity_hint else None
        decision = await self.rate_limiter.check_admission(attempt.client_address, hint)
        if not decision.allowed:
            raise _rate_limited(decision)

        # Stage 4
        payload = await self._parse_body(attempt)

        # Stage 5
        if any(payload.get(name) for name in HONEYPOT_FIELDS):
            return await self._absorb(attempt)

        # Stage 6
        identity = self._validated_identity(payload)

        # Stage 7
        name = sanitize_display_name(payload.get("name"))
        referred_by = normalize_referral_code(
            payload.get("referredBy") or payload.get("referralCode")
        )

        # Stage 8
        if identity != hint:
            decision = await self.rate_limiter.check_identity(identity)
            if not decision.allowed:
                raise _rate_limited(decision, IDENTITY_RATE_LIMIT_MESSAGE)

        # Stage 9
        if await self.duplicate_checker.exists(identity):
            return await self._duplicate(identity)

        # Stage 10
        try:
            referral_code = await asyncio.shield(self._persist(identity, name, referred_by))
        except DuplicateEntryError:
            # Lost the race against a concurrent signup for the same identity
            return await self._duplicate(identity)

        # Stage 11
        position = await self._position()
        self.dispatcher.enqueue(
            NotificationRequest(
                email=identity,
                referral_code=referral_code,
                name=name,
                position=position,
            )
        )

        # Stage 12
        logger.info(
            "admission.accepted",
            extra={"identity_hash": hash_identity(identity)[:16], "position": position},
        )
        return AdmissionOutcome(
            status_code=200,
            body=SignupResponse(
                success=True,
                message=SUCCESS_MESSAGE,
                data=SignupData(referral_code=referral_code, position=position),
            ),
            decision="accepted",
        )

    def _check_content_shape(self, attempt: SignupAttempt) -> None:
        if "application/json" not in (attempt.content_type or "").lower():
            raise ClientInputAppError(
                code="invalid_content_type",
                message="Content-Type must be application/json",
            )
        if attempt.content_length is None:
            return
        try:
            declared = int(attempt.content_length.strip())
        except ValueError:
            declared = -1
        if declared < 0:
            raise ClientInputAppError(
                code="invalid_content_length",
                message="Invalid Content-Length header",
            )
        if declared > self.max_body_bytes:
            raise body_too_large(self.max_body_bytes)

    async def _parse_body(self, attempt: SignupAttempt) -> dict[str, Any]:
        raw = await attempt.read_body()
        if len(raw) > self.max_body_bytes:
            raise body_too_large(self.max_body_bytes)
        try:
            payload = json.loads(raw)
        except (ValueError, RecursionError):
            payload = None
        if not isinstance(payload, dict):
            raise ClientInputAppError(code="invalid_json", message="Invalid JSON body")
        return payload

    def _validated_identity(self, payload: dict[str, Any]) -> str:
        raw = payload.get("identity")
        if raw is None:
            raw = payload.get("email")
        if not raw or not isinstance(raw, str):
            raise ClientInputAppError(code="identity_required", message="Email is required")

        identity = normalize_identity(raw)
        if len(identity) > MAX_IDENTITY_LENGTH:
            raise ClientInputAppError(code="identity_too_long", message="Email address is too long")
        if not validate_identity(identity):
            raise ClientInputAppError(
                code="identity_invalid",
                message="Please enter a valid email address",
            )
        return identity

    async def _persist(self, identity: str, name: str | None, referred_by: str | None) -> str:
        """Insert the entry, regenerating the referral code on collisions.

        Runs shielded so a cancelled request cannot abort a committing insert.
        """
        for attempt_no in range(1, REFERRAL_CODE_ATTEMPTS + 1):
            entry = WaitlistEntry(
                email=identity,
                referral_code=self._generate_code(),
                name=name,
                referred_by=referred_by,
            )
            try:
                await asyncio.wait_for(self.store.insert(entry), timeout=self.store_timeout_seconds)
                return entry.referral_code
            except DuplicateEntryError as exc:
                if exc.field != "referral_code":
                    raise
                logger.warning("admission.referral_code_collision", extra={"attempt": attempt_no})
            except (StoreUnavailableError, asyncio.TimeoutError) as exc:
                raise DependencyAppError(
                    code="persist_failed",
                    message="Failed to add to waitlist",
                    details={"dependency": "waitlist_store"},
                ) from exc

        raise DependencyAppError(
            code="referral_code_exhausted",
            message="Could not allocate a unique referral code",
            details={"dependency": "waitlist_store"},
        )

    async def _position(self) -> int | None:
        """Best-effort entry count; failures are logged and omitted."""
        if not self.report_position:
            return None
        try:
            return await asyncio.wait_for(self.store.count(), timeout=self.store_timeout_seconds)
        except Exception as exc:  # noqa: BLE001
            logger.warning("admission.position_unavailable", extra={"error_type": type(exc).__name__})
            return None

    async def _record_blocked(self, address: str, reason: str) -> None:
        try:
            await asyncio.wait_for(
                self.blocked_log.record(address, reason),
                timeout=self.store_timeout_seconds,
            )
        except (BlockedLogUnavailableError, asyncio.TimeoutError) as exc:
            logger.warning(
                "blocked_log.record_failed",
                extra={"reason": reason, "error_type": type(exc).__name__},
            )
        logger.warning(
            "admission.blocked",
            extra={"reason": reason, "client_network": mask_address(address)},
        )

    async def _absorb(self, attempt: SignupAttempt) -> AdmissionOutcome:
        """Answer a honeypot trip exactly like a genuine success."""
        await self._record_blocked(attempt.client_address, "honeypot_triggered")
        position = await self._position()
        await self.timing_noise.apply()
        return AdmissionOutcome(
            status_code=200,
            body=SignupResponse(
                success=True,
                message=SUCCESS_MESSAGE,
                data=SignupData(referral_code=self._generate_code(), position=position),
            ),
            decision="absorbed",
        )

    async def _duplicate(self, identity: str) -> AdmissionOutcome:
        logger.info("admission.duplicate", extra={"identity_hash": hash_identity(identity)[:16]})
        await self.timing_noise.apply()
        return AdmissionOutcome(
            status_code=409,
            body=SignupResponse(success=False, message=DUPLICATE_MESSAGE),
            decision="duplicate",
        )

    async def _internal_error(self) -> AdmissionOutcome:
        await self.timing_noise.apply()
        return AdmissionOutcome(
            status_code=500,
            body=SignupResponse(success=False, message=INTERNAL_ERROR_MESSAGE),
            decision="error",
        )

    def _rejection(self, exc: AppError) -> AdmissionOutcome:
        headers: dict[str, str] = {}
        retry_after = (exc.details or {}).get("retry_after")
        if retry_after:
            headers["Retry-After"] = str(retry_after)
        logger.info(
            "admission.rejected",
            extra={"error_code": exc.code, "status_code": exc.http_status},
        )
        return AdmissionOutcome(
            status_code=exc.http_status,
            body=SignupResponse(success=False, message=exc.message),
            decision="rejected",
            headers=headers,
        )
