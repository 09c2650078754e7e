"""Global exception handlers for consistent error responses.

Every error leaving the API uses the same body shape as the waitlist
endpoint: ``{"success": false, "message": ...}``.

Design:
- AppError subclasses -> their ``http_status`` (400, 403, 413, 429, 500)
- RequestValidationError -> 400 with a generic message (admin payloads)
- Starlette HTTPException (404, 405 from routing) -> same status, same shape
- Unexpected Exception -> generic 500 (safety net)
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import AppError, DependencyAppError
from app.core.logging import get_request_id
from app.services.admission_service import INTERNAL_ERROR_MESSAGE

logger = logging.getLogger(__name__)


def error_body(message: str) -> dict:
    return {"success": False, "message": message}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with the shared body shape.

    Dependency failures never surface their message; everything else is
    already written for the client.
    """
    status_code = exc.http_status
    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    message = INTERNAL_ERROR_MESSAGE if isinstance(exc, DependencyAppError) else exc.message
    headers = None
    retry_after = (exc.details or {}).get("retry_after")
    if retry_after:
        headers = {"Retry-After": str(retry_after)}

    return JSONResponse(status_code=status_code, content=error_body(message), headers=headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(
        "request_validation_failed",
        extra={"error_count": len(exc.errors()), "request_path": request.url.path},
    )
    return JSONResponse(status_code=400, content=error_body("Invalid request body"))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure for debugging while returning the generic message, so
    no stack trace or internal detail reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )
    return JSONResponse(status_code=500, content=error_body(INTERNAL_ERROR_MESSAGE))


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
