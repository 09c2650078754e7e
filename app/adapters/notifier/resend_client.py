"""Resend email notifier adapter."""

from __future__ import annotations

import html
import logging
from typing import Any

import httpx

from app.adapters.notifier.base import AbstractNotifier, NotificationRequest, NotificationResult

logger = logging.getLogger(__name__)


def _display_name(request: NotificationRequest) -> str:
    return request.name or request.email.split("@", 1)[0]


def _position_text(position: int | None) -> str:
    return f" at position #{position:,}" if position else ""


def render_text(request: NotificationRequest, *, product_name: str, site_url: str) -> str:
    """Render the plain-text confirmation body."""

    return (
        f"Hey {_display_name(request)}!\n\n"
        f"You're officially on the {product_name} waitlist{_position_text(request.position)}!\n\n"
        f"Your referral code: {request.referral_code}\n"
        "Share it with friends to move up the list.\n\n"
        "We'll email you as soon as early access opens.\n\n"
        f"Visit us: {site_url}\n\n"
        "You received this email because you signed up for our waitlist."
    )


def render_html(request: NotificationRequest, *, product_name: str, site_url: str) -> str:
    """Render the HTML confirmation body with every dynamic value escaped."""

    position = _position_text(request.position)
    return (
        f"<p>Hey {html.escape(_display_name(request))}!</p>"
        f"<p>You're officially on the {html.escape(product_name)} waitlist"
        f"{html.escape(position)}!</p>"
        f"<p>Your referral code: <strong>{html.escape(request.referral_code)}</strong></p>"
        f'<p><a href="{html.escape(site_url, quote=True)}">Visit {html.escape(product_name)}</a></p>'
        "<p>You received this email because you signed up for our waitlist.</p>"
    )


class ResendNotifier(AbstractNotifier):
    """Send confirmations through the Resend HTTP API.

    Uses an ``httpx.AsyncClient`` owned by this adapter; call ``close`` on
    shutdown.
    """

    def __init__(
        self,
        *,
        api_key: str,
        from_email: str,
        reply_to_email: str | None = None,
        base_url: str = "https://api.resend.com",
        timeout_seconds: float = 10.0,
        product_name: str = "Waitlist",
        site_url: str = "https://example.com",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._from_email = from_email
        self._reply_to_email = reply_to_email or from_email
        self._product_name = product_name
        self._site_url = site_url
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def _build_payload(self, request: NotificationRequest) -> dict[str, Any]:
        return {
            "from": self._from_email,
            "to": [request.email],
            "reply_to": self._reply_to_email,
            "subject": f"You're on the {self._product_name} waitlist!",
            "html": render_html(request, product_name=self._product_name, site_url=self._site_url),
            "text": render_text(request, product_name=self._product_name, site_url=self._site_url),
            "tags": [
                {"name": "type", "value": "waitlist-welcome"},
                {"name": "source", "value": "website"},
            ],
        }

    async def send(self, request: NotificationRequest) -> NotificationResult:
        try:
            response = await self._client.post("/emails", json=self._build_payload(request))
        except httpx.HTTPError as exc:
            return NotificationResult(success=False, error=f"{type(exc).__name__}: {exc}")

        if response.status_code >= 400:
            return NotificationResult(
                success=False,
                error=f"resend returned HTTP {response.status_code}",
            )

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        return NotificationResult(success=True, message_id=message_id)

    async def close(self) -> None:
        await self._client.aclose()
