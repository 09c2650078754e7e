"""Client address resolution behind proxies and CDNs."""

from __future__ import annotations

from typing import Mapping

UNKNOWN_ADDRESS = "unknown"


def resolve_client_address(headers: Mapping[str, str], peer: str | None = None) -> str:
    """Pick the client address from proxy headers, then the socket peer.

    Order: first hop of ``X-Forwarded-For``, ``X-Real-IP``,
    ``CF-Connecting-IP``, the peer host, else ``"unknown"``.
    """

    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value and value.strip():
            return value.strip()

    return peer or UNKNOWN_ADDRESS
