"""Tests for retry with exponential backoff."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from spacebot.errors import NotFoundError, UpstreamError
from spacebot.retry import _is_retryable, retry_async


@pytest.mark.asyncio
async def test_retry_succeeds_first_try():
    fn = MagicMock(return_value="ok")
    result = await retry_async(fn, label="test")
    assert result == "ok"
    assert fn.call_count == 1


@pytest.mark.asyncio
async def test_retry_awaits_coroutine_functions():
    fn = AsyncMock(side_effect=[UpstreamError("busy", status=503), {"id": 1}])
    result = await retry_async(fn, max_retries=2, base_delay=0.01, label="test")
    assert result == {"id": 1}
    assert fn.await_count == 2


@pytest.mark.asyncio
async def test_retry_exhausted_raises():
    fn = MagicMock(side_effect=ConnectionError("down"))
    with pytest.raises(ConnectionError):
        await retry_async(fn, max_retries=2, base_delay=0.01, label="test")
    assert fn.call_count == 3  # 1 initial + 2 retries


@pytest.mark.asyncio
async def test_client_errors_raise_immediately():
    fn = MagicMock(side_effect=UpstreamError("unauthorised", status=401))
    with pytest.raises(UpstreamError):
        await retry_async(fn, max_retries=3, base_delay=0.01, label="test")
    assert fn.call_count == 1


@pytest.mark.parametrize("status", [429, 500, 502, 503, 504, None])
def test_upstream_transient_statuses_are_retryable(status):
    assert _is_retryable(UpstreamError("boom", status=status)) is True


@pytest.mark.parametrize("status", [400, 401, 403, 404])
def test_upstream_client_statuses_are_not_retryable(status):
    assert _is_retryable(UpstreamError("boom", status=status)) is False


def test_not_found_is_not_retryable():
    assert _is_retryable(NotFoundError("Location ID 1 not found")) is False


def test_is_retryable_network_errors():
    assert _is_retryable(TimeoutError("timed out")) is True
    assert _is_retryable(ConnectionError("reset")) is True


def test_is_retryable_value_error():
    assert _is_retryable(ValueError("bad")) is False
