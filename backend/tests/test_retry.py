"""
Tests for the store retry policy.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from shared.infrastructure.retry import (
    RetryConfig,
    calculate_delay_with_jitter,
    is_transient,
    run_with_retry,
)

FAST = RetryConfig(timeout=1.0, max_attempts=3, initial_delay=0.0, max_delay=0.0)


class TestRetryConfig:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"timeout": 0},
            {"max_attempts": 0},
            {"initial_delay": -1},
            {"initial_delay": 2.0, "max_delay": 1.0},
            {"jitter_factor": 1.5},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)

    def test_delay_is_capped(self):
        config = RetryConfig(initial_delay=1.0, max_delay=2.0, jitter_factor=0.0)
        assert calculate_delay_with_jitter(0, config) == 1.0
        assert calculate_delay_with_jitter(5, config) == 2.0


class TestIsTransient:
    def test_connection_and_timeout(self):
        assert is_transient(ConnectionError())
        assert is_transient(asyncio.TimeoutError())
        assert is_transient(OperationalError("select 1", {}, Exception("gone")))

    def test_logic_errors(self):
        assert not is_transient(ValueError())
        assert not is_transient(IntegrityError("insert", {}, Exception("dup")))


class TestRunWithRetry:
    async def test_transient_failure_is_retried(self):
        operation = AsyncMock(side_effect=[ConnectionError("drop"), "ok"])
        on_retry = AsyncMock()

        result = await run_with_retry(operation, FAST, on_retry=on_retry)

        assert result == "ok"
        assert operation.await_count == 2
        on_retry.assert_awaited_once()

    async def test_non_transient_fails_fast(self):
        operation = AsyncMock(side_effect=ValueError("bad"))

        with pytest.raises(ValueError):
            await run_with_retry(operation, FAST)
        assert operation.await_count == 1

    async def test_attempts_are_bounded(self):
        operation = AsyncMock(side_effect=ConnectionError("drop"))

        with pytest.raises(ConnectionError):
            await run_with_retry(operation, FAST)
        assert operation.await_count == 3

    async def test_slow_attempt_times_out(self):
        async def slow():
            await asyncio.sleep(1)

        config = RetryConfig(timeout=0.01, max_attempts=1, initial_delay=0.0, max_delay=0.0)
        with pytest.raises(asyncio.TimeoutError):
            await run_with_retry(slow, config)
