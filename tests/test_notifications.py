"""Tests for the Resend notifier, notifier factory and background dispatcher."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from app.adapters.notifier.base import NotificationRequest, NotificationResult, NullNotifier
from app.adapters.notifier.factory import create_notifier
from app.adapters.notifier.resend_client import ResendNotifier, render_html, render_text
from app.core.config import NotifierSettings
from app.services.notification_dispatcher import NotificationDispatcher

REQUEST = NotificationRequest(email="ada@example.com", referral_code="ABCD2345", name="Ada", position=42)


def _resend(handler) -> ResendNotifier:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://api.resend.test",
    )
    return ResendNotifier(
        api_key="re_test",
        from_email="hello@example.com",
        product_name="Acme",
        site_url="https://acme.test",
        client=client,
    )


class TestRendering:
    def test_text_body_includes_code_and_position(self) -> None:
        body = render_text(REQUEST, product_name="Acme", site_url="https://acme.test")

        assert "Hey Ada!" in body
        assert "ABCD2345" in body
        assert "position #42" in body
        assert "https://acme.test" in body

    def test_html_escapes_user_values(self) -> None:
        request = NotificationRequest(email="x@y.com", referral_code="ABCD2345", name="<script>alert(1)</script>")

        body = render_html(request, product_name="Acme", site_url="https://acme.test")

        assert "<script>" not in body
        assert "&lt;script&gt;" in body

    def test_name_falls_back_to_local_part(self) -> None:
        request = NotificationRequest(email="grace@example.com", referral_code="ABCD2345")

        body = render_text(request, product_name="Acme", site_url="https://acme.test")

        assert "Hey grace!" in body
        assert "position" not in body


class TestResendNotifier:
    @pytest.mark.asyncio
    async def test_posts_email_payload(self) -> None:
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email-123"})

        notifier = _resend(handler)
        result = await notifier.send(REQUEST)
        await notifier.close()

        assert result == NotificationResult(success=True, message_id="email-123")
        assert captured["path"] == "/emails"
        assert captured["payload"]["to"] == ["ada@example.com"]
        assert captured["payload"]["from"] == "hello@example.com"
        assert captured["payload"]["reply_to"] == "hello@example.com"
        assert "Acme" in captured["payload"]["subject"]

    @pytest.mark.asyncio
    async def test_http_error_status_is_failure(self) -> None:
        notifier = _resend(lambda request: httpx.Response(422, json={"message": "bad"}))

        result = await notifier.send(REQUEST)

        assert result.success is False
        assert "422" in result.error

    @pytest.mark.asyncio
    async def test_transport_error_is_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await _resend(handler).send(REQUEST)

        assert result.success is False
        assert "ConnectError" in result.error


class TestCreateNotifier:
    def test_none_provider(self) -> None:
        assert isinstance(create_notifier(NotifierSettings(provider="none")), NullNotifier)

    def test_resend_without_credentials_degrades(self) -> None:
        notifier = create_notifier(NotifierSettings(provider="resend", api_key=None, from_email=None))

        assert isinstance(notifier, NullNotifier)
        assert notifier.configured is False

    def test_resend_configured(self) -> None:
        notifier = create_notifier(
            NotifierSettings(provider="resend", api_key="re_x", from_email="a@example.com")
        )

        assert isinstance(notifier, ResendNotifier)

    def test_unknown_provider(self) -> None:
        with pytest.raises(ValueError):
            create_notifier(NotifierSettings(provider="carrier-pigeon"))


class TestNotificationDispatcher:
    @pytest.mark.asyncio
    async def test_delivers_in_background_and_drains_on_stop(self) -> None:
        notifier = Mock()
        notifier.configured = True
        notifier.send = AsyncMock(return_value=NotificationResult(success=True, message_id="m"))
        dispatcher = NotificationDispatcher(notifier, workers=2)
        dispatcher.start()

        assert dispatcher.enqueue(REQUEST) is True
        assert dispatcher.enqueue(REQUEST) is True
        await dispatcher.stop()

        assert notifier.send.await_count == 2
        assert dispatcher.sent == 2
        assert dispatcher.running is False

    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(self) -> None:
        notifier = Mock()
        notifier.configured = True
        notifier.send = AsyncMock(
            side_effect=[RuntimeError("boom"), NotificationResult(success=False, error="HTTP 500")]
        )
        dispatcher = NotificationDispatcher(notifier, workers=1)
        dispatcher.start()

        dispatcher.enqueue(REQUEST)
        dispatcher.enqueue(REQUEST)
        await dispatcher.drain()

        assert dispatcher.failed == 2
        assert dispatcher.running is True
        await dispatcher.stop()

    @pytest.mark.asyncio
    async def test_skips_when_not_configured(self) -> None:
        dispatcher = NotificationDispatcher(NullNotifier())

        assert dispatcher.enqueue(REQUEST) is False
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_drops_when_queue_full(self) -> None:
        notifier = Mock()
        notifier.configured = True
        dispatcher = NotificationDispatcher(notifier, queue_size=1)

        assert dispatcher.enqueue(REQUEST) is True
        assert dispatcher.enqueue(REQUEST) is False
        assert dispatcher.dropped == 1

    @pytest.mark.asyncio
    async def test_stop_is_bounded_by_drain_timeout(self) -> None:
        notifier = Mock()
        notifier.configured = True

        async def never_finishes(_request):
            await asyncio.sleep(10)

        notifier.send = never_finishes
        dispatcher = NotificationDispatcher(notifier, workers=1, drain_timeout_seconds=0.05)
        dispatcher.start()
        dispatcher.enqueue(REQUEST)

        await dispatcher.stop()

        assert dispatcher.running is False

    def test_rejects_zero_workers(self) -> None:
        with pytest.raises(ValueError):
            NotificationDispatcher(NullNotifier(), workers=0)
