from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.client_address import resolve_client_address
from app.core.request_limits import read_body_limited
from app.schemas.waitlist import SignupResponse
from app.services.admission_service import SignupAttempt

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Waitlist"])

# Every method is routed here so the pipeline answers 405 in its own shape.
ROUTED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@router.api_route(
    "/waitlist",
    methods=ROUTED_METHODS,
    response_model=SignupResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
async def join_waitlist(request: Request) -> JSONResponse:
    """Admit or reject a waitlist signup.

    The request body is read lazily by the admission pipeline, after the
    method, origin, content-shape and rate-limit stages have passed.
    """
    services = request.app.state.services
    peer = request.client.host if request.client else None

    async def read_body() -> bytes:
        return await read_body_limited(request, services.settings.app.max_body_bytes)

    attempt = SignupAttempt(
        method=request.method,
        client_address=resolve_client_address(request.headers, peer),
        read_body=read_body,
        origin=request.headers.get("origin"),
        content_type=request.headers.get("content-type"),
        content_length=request.headers.get("content-length"),
    )
    outcome = await services.pipeline.admit(attempt)
    logger.info(
        "waitlist.request_completed",
        extra={"status_code": outcome.status_code, "decision": outcome.decision},
    )
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.body.to_content(),
        headers=outcome.headers or None,
    )
