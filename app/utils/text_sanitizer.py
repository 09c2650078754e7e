"""Sanitizers for free-form text fields of a signup body.

Values are degraded rather than rejected: whitespace is trimmed, control
characters are stripped and the result is truncated to a field limit.
"""

from __future__ import annotations

import re
from typing import Any

MAX_TEXT_LENGTH = 255
MAX_NAME_LENGTH = 100
MAX_REFERRAL_CODE_LENGTH = 20

# C0 control characters and DEL
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


def sanitize_text(value: Any, max_length: int = MAX_TEXT_LENGTH) -> str:
    """Degrade free-form text into a safe, bounded string.

    Trims surrounding whitespace, strips control characters and truncates to
    ``max_length``. Never raises: non-string input becomes an empty string.

    Args:
        value: Raw field value from the request body.
        max_length: Maximum length of the result.

    Returns:
        str: Sanitized text, possibly empty.
    """
    if not isinstance(value, str) or not value:
        return ""
    text = _CONTROL_CHARS_RE.sub("", value.strip())
    return text[:max_length]


def sanitize_display_name(value: Any) -> str | None:
    """Sanitize an optional display name; empty results become None."""
    if not isinstance(value, str):
        return None
    name = sanitize_text(value)[:MAX_NAME_LENGTH]
    return name or None


def normalize_referral_code(value: Any) -> str | None:
    """Uppercase, cap at 20 characters, then sanitize. Empty becomes None."""
    if not isinstance(value, str):
        return None
    code = sanitize_text(value.upper()[:MAX_REFERRAL_CODE_LENGTH])
    return code or None
