"""
Tests for retry with backoff
"""

import logging

import pytest

from expense_api.core.retry import (
    RetryConfig,
    RetryStatsTracker,
    STORAGE_RETRY_CONFIG,
    calculate_delay,
    with_retry,
    with_retry_and_stats,
    with_retry_async,
)

NO_WAIT = RetryConfig(max_attempts=3, base_delay_ms=0, max_delay_ms=0, backoff_multiplier=2, jitter_ms=0)


class Flaky:
    """Fails a fixed number of times before returning a value."""

    def __init__(self, failures, error=ConnectionError("connection reset")):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


class TestCalculateDelay:
    def test_exponential_growth_without_jitter(self):
        config = RetryConfig(max_attempts=5, base_delay_ms=100, max_delay_ms=10000, backoff_multiplier=2, jitter_ms=0)
        assert [calculate_delay(n, config) for n in (1, 2, 3, 4)] == [100, 200, 400, 800]

    def test_capped_at_max_delay(self):
        config = RetryConfig(max_attempts=5, base_delay_ms=1000, max_delay_ms=1500, backoff_multiplier=3, jitter_ms=500)
        assert calculate_delay(4, config) == 1500

    def test_jitter_bounds(self):
        config = RetryConfig(max_attempts=2, base_delay_ms=100, max_delay_ms=10000, backoff_multiplier=2, jitter_ms=50)
        for _ in range(50):
            assert 100 <= calculate_delay(1, config) <= 150


class TestWithRetry:
    def test_succeeds_after_failures(self):
        operation = Flaky(2)
        assert with_retry(operation, NO_WAIT, "flaky") == "ok"
        assert operation.calls == 3

    def test_raises_last_error_when_exhausted(self):
        operation = Flaky(5)
        with pytest.raises(ConnectionError):
            with_retry(operation, NO_WAIT, "flaky")
        assert operation.calls == 3

    def test_non_retryable_error_is_not_retried(self):
        config = RetryConfig(
            max_attempts=3, base_delay_ms=0, max_delay_ms=0, backoff_multiplier=2, jitter_ms=0,
            retryable=lambda e: "timeout" in str(e),
        )
        operation = Flaky(1, error=ValueError("bad input"))
        with pytest.raises(ValueError):
            with_retry(operation, config)
        assert operation.calls == 1

    def test_storage_config_predicate(self):
        assert STORAGE_RETRY_CONFIG.retryable(Exception("503 Service Unavailable"))
        assert STORAGE_RETRY_CONFIG.retryable(Exception("Read timeout on endpoint"))
        assert not STORAGE_RETRY_CONFIG.retryable(Exception("Access Denied"))

    async def test_async_retry(self):
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise TimeoutError("timeout")
            return calls

        assert await with_retry_async(operation, NO_WAIT, "async") == 2

    def test_logs_each_retry_and_the_final_failure(self, caplog):
        caplog.set_level(logging.WARNING, logger="expense_api.core.retry")
        with pytest.raises(ConnectionError):
            with_retry(Flaky(5), NO_WAIT, "flaky")

        messages = [r.getMessage() for r in caplog.records]
        assert len([m for m in messages if "Retrying in 0ms" in m]) == 2
        assert any("Retry limit reached (flaky): attempt 3/3" in m for m in messages)

    async def test_async_retry_exhausted(self):
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise TimeoutError("timeout")

        with pytest.raises(TimeoutError):
            await with_retry_async(operation, NO_WAIT, "async")
        assert calls == 3


class TestRetryStats:
    def test_records_success_and_failure(self):
        tracker = RetryStatsTracker()

        with_retry_and_stats(Flaky(1), NO_WAIT, "one retry", tracker=tracker)
        with pytest.raises(ConnectionError):
            with_retry_and_stats(Flaky(10), NO_WAIT, "always fails", tracker=tracker)

        stats = tracker.get_stats()
        assert stats["total_operations"] == 2
        assert stats["successful_operations"] == 1
        assert stats["failed_operations"] == 1
        assert stats["total_retries"] == 3
        assert stats["average_retries"] == 1.5

    def test_reset(self):
        tracker = RetryStatsTracker()
        tracker.record_operation(True, 2)
        tracker.reset()
        assert tracker.get_stats()["total_operations"] == 0
