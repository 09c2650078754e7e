from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from app.adapters.blocked_log.base import BlockedLogUnavailableError
from app.core.auth import verify_api_key
from app.core.errors import DependencyAppError
from app.core.logging import mask_address
from app.schemas.waitlist import (
    BlockedRecord,
    BlockedRequestsResponse,
    RateLimitDecisionResponse,
    StrictLimitRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(verify_api_key)])


@router.post("/strict-limit", response_model=RateLimitDecisionResponse)
async def apply_strict_limit(payload: StrictLimitRequest, request: Request) -> RateLimitDecisionResponse:
    """Consume one event from the strict limiter for ``payload.address``.

    Operators call this repeatedly to throttle an abusive address; the
    returned decision shows how much of the strict budget remains.
    """
    services = request.app.state.services
    decision = await services.rate_limiter.apply_strict_limit(payload.address.strip())
    return RateLimitDecisionResponse(
        allowed=decision.allowed,
        scope=decision.scope.value,
        limit=decision.limit,
        remaining=decision.remaining,
        reset_at_ms=decision.reset_at_ms,
        retry_after_seconds=decision.retry_after_seconds,
        degraded=decision.degraded,
    )


@router.get("/blocked/{address}", response_model=BlockedRequestsResponse)
async def list_blocked_requests(address: str, request: Request) -> BlockedRequestsResponse:
    """List blocked-request records kept for ``address`` (newest first)."""
    blocked_log = request.app.state.services.blocked_log
    try:
        records = await blocked_log.list_for(address)
        total = await blocked_log.total()
    except BlockedLogUnavailableError as exc:
        logger.error("admin.blocked_log_unavailable", extra={"client_network": mask_address(address)})
        raise DependencyAppError(
            code="blocked_log_unavailable",
            message="Blocked request log unavailable",
            details={"dependency": "blocked_log"},
        ) from exc

    return BlockedRequestsResponse(
        address=address,
        records=[BlockedRecord(reason=r.reason, timestamp_ms=r.timestamp_ms) for r in records],
        total_blocked=total,
    )
