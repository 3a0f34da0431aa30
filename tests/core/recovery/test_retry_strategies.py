"""Tests for RetryConfig and ExponentialBackoffStrategy."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from altverse.core.recovery import ExponentialBackoffStrategy, RetryConfig


class TestRetryConfig:
    def test_exponential_delays(self):
        config = RetryConfig(initial_delay_seconds=1.0, backoff_factor=2.0)

        assert [config.get_delay(i) for i in range(3)] == [1.0, 2.0, 4.0]

    def test_max_delay_cap(self):
        config = RetryConfig(initial_delay_seconds=10.0, backoff_factor=10.0, max_delay_seconds=30.0)

        assert config.get_delay(3) == 30.0

    def test_jitter_stays_in_range(self):
        config = RetryConfig(initial_delay_seconds=1.0, jitter=True, jitter_factor=0.1)

        for _ in range(20):
            assert 0.9 <= config.get_delay(0) <= 1.1


class TestExponentialBackoffStrategy:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        sleeps = []
        operation = AsyncMock(return_value="ok")

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        result = await ExponentialBackoffStrategy(sleep=fake_sleep).execute(operation)

        assert result == "ok"
        assert operation.await_count == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_retries_with_backoff_schedule(self):
        sleeps = []
        operation = AsyncMock(side_effect=[RuntimeError("1"), RuntimeError("2"), RuntimeError("3"), "ok"])

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        strategy = ExponentialBackoffStrategy(RetryConfig(max_retries=3), sleep=fake_sleep)
        result = await strategy.execute(operation, label="tvl")

        assert result == "ok"
        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self):
        operation = AsyncMock(side_effect=[RuntimeError("first"), RuntimeError("last")])

        strategy = ExponentialBackoffStrategy(RetryConfig(max_retries=1), sleep=AsyncMock())

        with pytest.raises(RuntimeError, match="last"):
            await strategy.execute(operation)
        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_cancellation_is_not_retried(self):
        operation = AsyncMock(side_effect=asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await ExponentialBackoffStrategy(sleep=AsyncMock()).execute(operation)
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_passes_arguments(self):
        operation = AsyncMock(return_value=3)

        await ExponentialBackoffStrategy().execute(operation, 1, 2, label="sum", scale=10)

        operation.assert_awaited_once_with(1, 2, scale=10)
