"""Opaque, deterministic keys for identity-scoped rate limiting.

The per-identity limiter is keyed by a digest so the counter store never holds
a raw identity. The digest is for keying only; it does not make the counter
store confidential.
"""

from __future__ import annotations

import hashlib


def _rolling_hash(value: str) -> str:
    """Deterministic 32-bit rolling hash (``h * 31 + c``) rendered as hex."""

    h = 0
    for char in value:
        h = (h * 31 + ord(char)) & 0xFFFFFFFF
    return f"id_{h:08x}"


def hash_identity(identity: str) -> str:
    """Map a normalized identity to an opaque bucket key.

    Uses SHA-256. The rolling-hash fallback is only taken on runtimes whose
    ``hashlib`` does not offer SHA-256 (e.g. restricted FIPS builds).

    Examples:
        >>> hash_identity("foo@bar.com") == hash_identity("foo@bar.com")
        True
        >>> len(hash_identity("foo@bar.com"))
        64
    """

    data = identity.encode("utf-8")
    if "sha256" in hashlib.algorithms_available:
        return hashlib.sha256(data).hexdigest()
    return _rolling_hash(identity)
