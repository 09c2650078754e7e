"""Origin allow-listing for the public signup endpoint."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from app.core.config import Settings

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})


def parse_origins(origins: str | None) -> frozenset[str]:
    """Parse a comma-separated origin list into a set.

    Examples:
        >>> sorted(parse_origins("https://a.com, https://b.com/"))
        ['https://a.com', 'https://b.com']
        >>> parse_origins(None)
        frozenset()
    """
    if not origins:
        return frozenset()
    return frozenset(o.strip().rstrip("/") for o in origins.split(",") if o.strip())


def _is_loopback(origin: str) -> bool:
    try:
        parts = urlsplit(origin)
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and parts.hostname in LOOPBACK_HOSTS


@dataclass(frozen=True)
class OriginPolicy:
    """Decides which ``Origin`` headers may submit signups.

    Absent origins are same-origin requests and are always permitted. In
    development any loopback origin is permitted as well.
    """

    allowed_origins: frozenset[str]
    allow_loopback: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "OriginPolicy":
        return cls(
            allowed_origins=parse_origins(settings.app.allowed_origins),
            allow_loopback=settings.is_development,
        )

    def is_allowed(self, origin: str | None) -> bool:
        if not origin:
            return True
        if origin in self.allowed_origins:
            return True
        return self.allow_loopback and _is_loopback(origin)

    def cors_origin(self, origin: str | None) -> str | None:
        """Origin to reflect in ``Access-Control-Allow-Origin``, if any."""
        if origin and self.is_allowed(origin):
            return origin
        return None
