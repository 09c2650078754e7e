"""Identity (email address) normalization and format validation."""

from __future__ import annotations

import re
from typing import Any

# RFC 5321 path limit
MAX_IDENTITY_LENGTH = 254

_IDENTITY_RE = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)


def normalize_identity(value: str) -> str:
    """Trim surrounding whitespace and lowercase.

    Idempotent: ``normalize_identity(normalize_identity(x)) == normalize_identity(x)``.

    Examples:
        >>> normalize_identity(" Foo@Bar.COM ")
        'foo@bar.com'
    """

    return value.strip().lower()


def validate_identity(value: Any) -> bool:
    """Check an email address against a practical format grammar.

    Rejects non-strings, empty strings and anything over 254 characters.
    Domain labels are 1-63 alphanumerics or hyphens and may not start or end
    with a hyphen.
    """

    if not isinstance(value, str) or not value:
        return False
    if len(value) > MAX_IDENTITY_LENGTH:
        return False
    return _IDENTITY_RE.fullmatch(value) is not None
