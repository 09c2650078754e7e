"""Unit tests for admin API key authentication."""

import pytest

from app.core.auth import parse_api_keys, validate_api_key
from app.core.config import AppSettings
from app.core.errors import AuthenticationAppError


class TestParseAPIKeys:
    """Test API key parsing utility function."""

    def test_parse_multiple_keys_with_whitespace(self) -> None:
        assert parse_api_keys("key1 , key2  ,  key3") == {"key1", "key2", "key3"}

    @pytest.mark.parametrize("value", [None, "", "   ,  ,  "])
    def test_parse_empty_inputs(self, value) -> None:
        assert parse_api_keys(value) == set()

    def test_parse_removes_duplicate_keys(self) -> None:
        assert parse_api_keys("key1,key2,key1") == {"key1", "key2"}


class TestValidateAPIKey:
    """Test core API key validation logic."""

    def test_bypassed_when_auth_disabled(self) -> None:
        app_settings = AppSettings(admin_api_key_required=False, admin_api_keys=None)

        validate_api_key(None, app_settings)
        validate_api_key("anything", app_settings)

    def test_raises_when_no_keys_configured(self) -> None:
        app_settings = AppSettings(admin_api_key_required=True, admin_api_keys="")

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("some-key", app_settings)

        assert exc_info.value.code == "api_keys_not_configured"

    def test_missing_key(self) -> None:
        app_settings = AppSettings(admin_api_key_required=True, admin_api_keys="k1")

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key(None, app_settings)

        assert exc_info.value.code == "missing_api_key"
        assert exc_info.value.http_status == 403

    def test_invalid_key(self) -> None:
        app_settings = AppSettings(admin_api_key_required=True, admin_api_keys="k1,k2")

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key("k3", app_settings)

        assert exc_info.value.code == "invalid_api_key"

    @pytest.mark.parametrize("key", ["k1", "k2"])
    def test_valid_keys(self, key) -> None:
        validate_api_key(key, AppSettings(admin_api_key_required=True, admin_api_keys="k1,k2"))

    @pytest.mark.parametrize("key", ["café", "ключ", "k1é"])
    def test_non_ascii_key_is_rejected_not_crashed(self, key) -> None:
        app_settings = AppSettings(admin_api_key_required=True, admin_api_keys="k1,k2")

        with pytest.raises(AuthenticationAppError) as exc_info:
            validate_api_key(key, app_settings)

        assert exc_info.value.code == "invalid_api_key"

    def test_non_ascii_configured_key_matches(self) -> None:
        validate_api_key("café", AppSettings(admin_api_key_required=True, admin_api_keys="café"))
