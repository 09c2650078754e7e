"""Bounded request body reading."""
from __future__ import annotations

import logging

from fastapi import Request

from app.core.errors import ClientInputAppError

logger = logging.getLogger(__name__)


def body_too_large(max_bytes: int) -> ClientInputAppError:
    return ClientInputAppError(
        code="body_too_large",
        message="Request body too large",
        details={"http_status": 413, "max_bytes": max_bytes},
    )


async def read_body_limited(request: Request, max_bytes: int) -> bytes:
    """Read the request body in chunks, enforcing ``max_bytes``.

    The declared Content-Length is checked by the admission pipeline before
    this runs; the chunked read is the secondary enforcement for requests
    that omit or understate it.

    Raises:
        ClientInputAppError: 413 when the body exceeds ``max_bytes``.
    """
    size = 0
    chunks: list[bytes] = []

    async for chunk in request.stream():
        if not chunk:
            continue
        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "request_limits.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise body_too_large(max_bytes)
        chunks.append(chunk)

    return b"".join(chunks)
