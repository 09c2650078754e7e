"""Referral code generation."""

from __future__ import annotations

import secrets

# Excludes visually confusable characters: I, O, 0, 1
REFERRAL_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """Return a random code drawn from ``REFERRAL_ALPHABET`` using ``secrets``."""

    if length < 1:
        raise ValueError("length must be >= 1")
    return "".join(secrets.choice(REFERRAL_ALPHABET) for _ in range(length))


def is_referral_code(value: str, length: int = REFERRAL_CODE_LENGTH) -> bool:
    """True if ``value`` has the generated length and uses only the alphabet."""

    return len(value) == length and all(char in REFERRAL_ALPHABET for char in value)
