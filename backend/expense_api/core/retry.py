"""
Retry with exponential backoff and jitter

Used around calls to external services (object storage, Google OAuth) and
around SQLite writes that can hit a locked database.
"""

import logging
import random
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int
    base_delay_ms: int
    max_delay_ms: int
    backoff_multiplier: float
    jitter_ms: int
    retryable: Optional[Callable[[BaseException], bool]] = None


def _message_contains(*needles: str) -> Callable[[BaseException], bool]:
    def check(error: BaseException) -> bool:
        message = str(error).lower()
        return any(needle in message for needle in needles)
    return check


DEFAULT_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay_ms=1000,
    max_delay_ms=10000,
    backoff_multiplier=2,
    jitter_ms=100,
)

# Network failures, timeouts and 5xx gateway errors
STORAGE_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    base_delay_ms=500,
    max_delay_ms=5000,
    backoff_multiplier=2,
    jitter_ms=200,
    retryable=_message_contains("network", "timeout", "connection", "502", "503", "504"),
)

AUTH_RETRY_CONFIG = RetryConfig(
    max_attempts=2,
    base_delay_ms=200,
    max_delay_ms=1000,
    backoff_multiplier=2,
    jitter_ms=50,
    retryable=_message_contains("service unavailable", "timeout"),
)

DATABASE_RETRY_CONFIG = RetryConfig(
    max_attempts=2,
    base_delay_ms=100,
    max_delay_ms=2000,
    backoff_multiplier=2,
    jitter_ms=50,
    retryable=_message_contains("locked", "busy", "connection"),
)


def calculate_delay(attempt: int, config: RetryConfig) -> int:
    """
    Delay in milliseconds before retrying after the given (1-based) attempt
    """
    exponential = config.base_delay_ms * (config.backoff_multiplier ** (attempt - 1))
    jitter = random.uniform(0, config.jitter_ms)
    return int(min(exponential + jitter, config.max_delay_ms))




def _retry_kwargs(config: RetryConfig, context: Optional[str]) -> Dict[str, Any]:
    def wait(retry_state: RetryCallState) -> float:
        return calculate_delay(retry_state.attempt_number, config) / 1000

    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            f"Operation failed ({context}), attempt {retry_state.attempt_number}/{config.max_attempts}: "
            f"{retry_state.outcome.exception()}. Retrying in {retry_state.next_action.sleep * 1000:.0f}ms"
        )

    if config.retryable is not None:
        retry = retry_if_exception(config.retryable)
    else:
        retry = retry_if_exception_type(Exception)

    return {
        "stop": stop_after_attempt(config.max_attempts),
        "retry": retry,
        "wait": wait,
        "before_sleep": before_sleep,
        "reraise": True,
    }


def _log_give_up(error: BaseException, attempt_number: int, config: RetryConfig, context: Optional[str]) -> None:
    if config.retryable is not None and not config.retryable(error):
        logger.warning(f"Non-retryable error ({context}) on attempt {attempt_number}: {error}")
    else:
        logger.error(
            f"Retry limit reached ({context}): attempt {attempt_number}/{config.max_attempts}, error: {error}"
        )


class RetryStatsTracker:
    """Aggregate counters for retried operations"""

    def __init__(self):
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        self._stats = {
            "total_operations": 0,
            "successful_operations": 0,
            "failed_operations": 0,
            "total_retries": 0,
            "average_retries": 0.0,
        }

    def record_operation(self, success: bool, retry_count: int) -> None:
        with self._lock:
            self._stats["total_operations"] += 1
            if success:
                self._stats["successful_operations"] += 1
            else:
                self._stats["failed_operations"] += 1
            if retry_count > 0:
                self._stats["total_retries"] += retry_count
            self._stats["average_retries"] = (
                self._stats["total_retries"] / self._stats["total_operations"]
            )

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._stats)


retry_stats = RetryStatsTracker()


def with_retry(
    operation: Callable[[], T],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    context: Optional[str] = None,
    tracker: Optional[RetryStatsTracker] = None,
) -> T:
    """
    Run a blocking operation, retrying failures according to config

    The last error is re-raised once attempts are exhausted or when the
    config's retryable predicate rejects it. When a tracker is given the
    outcome and retry count are recorded in it.
    """
    attempt_number = 0
    try:
        for attempt in Retrying(**_retry_kwargs(config, context)):
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                result = operation()
    except Exception as e:
        _log_give_up(e, attempt_number, config, context)
        if tracker is not None:
            tracker.record_operation(False, attempt_number - 1)
        raise

    if attempt_number > 1:
        logger.info(f"Retry succeeded ({context}) on attempt {attempt_number}/{config.max_attempts}")
    if tracker is not None:
        tracker.record_operation(True, attempt_number - 1)
    return result


async def with_retry_async(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    context: Optional[str] = None,
) -> T:
    """Async counterpart of with_retry"""
    attempt_number = 0
    try:
        async for attempt in AsyncRetrying(**_retry_kwargs(config, context)):
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                result = await operation()
    except Exception as e:
        _log_give_up(e, attempt_number, config, context)
        raise

    if attempt_number > 1:
        logger.info(f"Retry succeeded ({context}) on attempt {attempt_number}/{config.max_attempts}")
    return result


def with_retry_and_stats(
    operation: Callable[[], T],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    context: Optional[str] = None,
    tracker: Optional[RetryStatsTracker] = None,
) -> T:
    """with_retry recording into the shared retry_stats unless a tracker is given"""
    return with_retry(operation, config, context, tracker=tracker or retry_stats)
