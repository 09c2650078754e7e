"""Tests for the duplicate checker's failure semantics."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from app.adapters.store.base import StoreUnavailableError
from app.core.errors import DependencyAppError
from app.services.duplicate_checker import DuplicateChecker


def _store(**kwargs):
    store = Mock()
    store.exists = AsyncMock(**kwargs)
    return store


@pytest.mark.asyncio
@pytest.mark.parametrize("found", [True, False])
async def test_returns_store_answer(found: bool) -> None:
    store = _store(return_value=found)

    assert await DuplicateChecker(store).exists("a@b.com") is found
    store.exists.assert_awaited_once_with("a@b.com")


@pytest.mark.asyncio
async def test_store_error_is_not_read_as_absent() -> None:
    checker = DuplicateChecker(_store(side_effect=StoreUnavailableError("down")))

    with pytest.raises(DependencyAppError) as exc_info:
        await checker.exists("a@b.com")

    assert exc_info.value.code == "duplicate_check_failed"
    assert exc_info.value.http_status == 500


@pytest.mark.asyncio
async def test_timeout_is_a_failure() -> None:
    async def slow(_identity):
        await asyncio.sleep(5)
        return False

    store = Mock()
    store.exists = slow
    checker = DuplicateChecker(store, timeout_seconds=0.05)

    with pytest.raises(DependencyAppError):
        await checker.exists("a@b.com")
