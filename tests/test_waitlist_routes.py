"""End-to-end tests for /api/waitlist through the full FastAPI stack.

Tests use the ``client`` fixture (lifespan running, temp SQLite store,
in-memory counters, zero timing noise) and ``client.portal`` to inspect the
async stores from the test thread.
"""

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient

from app.adapters.notifier.base import NullNotifier
from app.core.app_factory import create_app
from app.core.container import build_services
from app.services.admission_service import DUPLICATE_MESSAGE, SUCCESS_MESSAGE
from app.utils.referral_codes import is_referral_code

URL = "/api/waitlist"
ALLOWED_ORIGIN = "https://app.example.com"


@contextmanager
def client_for(settings, **overrides):
    services = build_services(settings, notifier=overrides.pop("notifier", NullNotifier()), **overrides)
    with TestClient(create_app(settings, services=services)) as test_client:
        yield test_client, services


def _count(client: TestClient, services) -> int:
    return client.portal.call(services.store.count)


class TestSignupScenarios:
    def test_new_identity_accepted_with_referral_code(self, client, services, notifier) -> None:
        response = client.post(URL, json={"email": "new@example.com", "name": "Ada"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == SUCCESS_MESSAGE
        assert is_referral_code(body["data"]["referralCode"])
        assert body["data"]["position"] == 1

        client.portal.call(services.dispatcher.drain)
        assert [r.email for r in notifier.requests] == ["new@example.com"]
        assert notifier.requests[0].referral_code == body["data"]["referralCode"]

    def test_double_submission_is_single_entry_and_generic_409(self, client, services) -> None:
        first = client.post(URL, json={"email": "twice@example.com"})
        second = client.post(URL, json={"email": " TWICE@example.com "})

        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json() == {"success": False, "message": DUPLICATE_MESSAGE}
        assert _count(client, services) == 1

    def test_invalid_identity_is_400(self, client) -> None:
        response = client.post(URL, json={"email": "bad"})

        assert response.status_code == 400
        assert "valid email" in response.json()["message"]

    def test_honeypot_is_success_shaped_and_persists_nothing(self, client, services, notifier) -> None:
        trap = client.post(URL, json={"identity": "x@y.com", "phone": "555"})
        real = client.post(URL, json={"identity": "real@y.com"})

        assert trap.status_code == 200
        assert trap.json()["message"] == SUCCESS_MESSAGE
        assert trap.json().keys() == real.json().keys()
        assert trap.json()["data"].keys() == real.json()["data"].keys()
        assert _count(client, services) == 1

        # The trapped identity is still free to sign up for real
        assert client.post(URL, json={"identity": "x@y.com"}).status_code == 200

    def test_oversized_body_is_413(self, client, services) -> None:
        payload = '{"email": "big@example.com", "name": "' + "n" * 2000 + '"}'

        response = client.post(URL, content=payload, headers={"Content-Type": "application/json"})

        assert response.status_code == 413
        assert response.json() == {"success": False, "message": "Request body too large"}
        assert _count(client, services) == 0

    def test_wrong_content_type_is_400(self, client) -> None:
        response = client.post(URL, data={"email": "form@example.com"})

        assert response.status_code == 400
        assert response.json()["message"] == "Content-Type must be application/json"

    def test_malformed_json_is_400(self, client, json_headers) -> None:
        response = client.post(URL, content="{not json", headers=json_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid JSON body"

    @pytest.mark.parametrize("method", ["get", "put", "delete", "patch"])
    def test_other_methods_are_405_in_same_shape(self, client, method) -> None:
        response = getattr(client, method)(URL)

        assert response.status_code == 405
        assert response.json() == {"success": False, "message": "Method not allowed"}

    def test_preflight_for_allowed_origin(self, client) -> None:
        response = client.options(URL, headers={"Origin": ALLOWED_ORIGIN})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "OK"}
        assert response.headers["Access-Control-Allow-Origin"] == ALLOWED_ORIGIN
        assert "POST" in response.headers["Access-Control-Allow-Methods"]
        assert response.headers["Access-Control-Max-Age"]

    def test_foreign_origin_is_403_and_recorded(self, client, services, admin_headers) -> None:
        response = client.post(
            URL,
            json={"email": "a@b.com"},
            headers={"Origin": "https://evil.example", "X-Forwarded-For": "203.0.113.9"},
        )

        assert response.status_code == 403
        assert response.json()["message"] == "Invalid request origin"
        assert "Access-Control-Allow-Origin" not in response.headers

        blocked = client.get("/api/admin/blocked/203.0.113.9", headers=admin_headers).json()
        assert [r["reason"] for r in blocked["records"]] == ["invalid_origin"]


class TestRateLimiting:
    def test_address_limit_then_other_address_unaffected(self, make_settings) -> None:
        settings = make_settings(rate_limit={"address_limit": 2})
        headers = {"X-Forwarded-For": "198.51.100.1, 10.0.0.1"}

        with client_for(settings) as (client, _services):
            for i in range(2):
                assert client.post(URL, json={"email": f"u{i}@example.com"}, headers=headers).status_code == 200

            blocked = client.post(URL, json={"email": "u3@example.com"}, headers=headers)
            other = client.post(URL, json={"email": "u4@example.com"}, headers={"X-Real-IP": "198.51.100.2"})

        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) > 0
        assert blocked.json()["message"].startswith("Too many requests.")
        assert other.status_code == 200

    def test_identity_limit(self, make_settings) -> None:
        settings = make_settings(rate_limit={"identity_limit": 1})

        with client_for(settings) as (client, _services):
            client.post(URL, json={"email": "same@example.com"}, headers={"X-Real-IP": "1.1.1.1"})
            response = client.post(URL, json={"email": "same@example.com"}, headers={"X-Real-IP": "2.2.2.2"})

        assert response.status_code == 429
        assert response.json()["message"] == "Too many attempts with this email. Please try again later."


class TestSecurityHeaders:
    @pytest.mark.parametrize("path", ["/health", URL])
    def test_security_headers_on_every_response(self, client, path) -> None:
        response = client.get(path)

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert response.headers["Content-Security-Policy"] == "default-src 'none'; frame-ancestors 'none'"

    def test_loopback_origin_allowed_only_in_development(self, make_settings) -> None:
        origin = "http://localhost:5173"

        with client_for(make_settings(app_env="development")) as (client, _services):
            dev = client.post(URL, json={"email": "dev@example.com"}, headers={"Origin": origin})
        with client_for(make_settings(app_env="production")) as (client, _services):
            prod = client.post(URL, json={"email": "prod@example.com"}, headers={"Origin": origin})

        assert dev.status_code == 200
        assert dev.headers["Access-Control-Allow-Origin"] == origin
        assert prod.status_code == 403
