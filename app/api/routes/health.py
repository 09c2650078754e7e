from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns a static payload; it never touches the shared stores.
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: pings the counter store and the durable store."""

    services = request.app.state.services
    checks = {
        "counter_store": await services.counter_store.ping(),
        "store": await services.store.ping(),
    }
    ready = all(checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ok" if ready else "unavailable",
            "checks": {name: "ok" if ok else "down" for name, ok in checks.items()},
        },
    )
