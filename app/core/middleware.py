"""HTTP middleware for request ID propagation and response hardening.

Two middlewares are installed by the app factory:

- ``build_request_id_middleware`` accepts the incoming request-id header or
  generates a UUID, stores it in contextvars for log correlation, and echoes
  it (plus the request duration) on the response.
- ``build_security_headers_middleware`` adds the fixed security headers to
  every response and the CORS headers when the request origin is allowed.

Usage:
    app.middleware("http")(build_request_id_middleware("X-Request-ID"))
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response

from app.core.logging import clear_request_id, set_request_id
from app.core.origin_policy import OriginPolicy

CallNext = Callable[[Request], Awaitable[Response]]

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}

CORS_ALLOW_METHODS = "POST, OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type"
CORS_MAX_AGE = "86400"


def build_request_id_middleware(header_name: str = "X-Request-ID"):
    """Return a middleware that propagates ``header_name`` as the request id."""

    async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
        request_id = request.headers.get(header_name) or str(uuid.uuid4())
        set_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            clear_request_id()

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[header_name] = request_id
        response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
        return response

    return request_id_middleware


def apply_cors_headers(response: Response, origin: str | None, policy: OriginPolicy) -> None:
    """Reflect ``origin`` only when the policy allows it."""

    allowed = policy.cors_origin(origin)
    if allowed is None:
        return
    response.headers["Access-Control-Allow-Origin"] = allowed
    response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
    response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
    response.headers["Access-Control-Max-Age"] = CORS_MAX_AGE
    response.headers["Vary"] = "Origin"


def build_security_headers_middleware(policy: OriginPolicy):
    """Return a middleware adding security and CORS headers to every response."""

    async def security_headers_middleware(request: Request, call_next: CallNext) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers[name] = value
        apply_cors_headers(response, request.headers.get("origin"), policy)
        return response

    return security_headers_middleware
