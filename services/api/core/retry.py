# services/api/core/retry.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Quota / rate-limit markers that show up in error messages even when no
# status code is attached to the exception.
_RATE_LIMIT_MARKERS = ("quota exceeded", "rate limit", "ratelimitexceeded", "429")


@dataclass(frozen=True)
class RetryOptions:
    """
    Backoff settings for remote spreadsheet calls.

    Delay before retry n (0-indexed) = min(initial_delay * backoff_multiplier**n, max_delay).
    Delays are in seconds. No jitter is applied.
    """
    max_retries: int = 3
    initial_delay: float = 2.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    retryable_statuses: Tuple[int, ...] = (429, 500, 502, 503, 504)

    def rate_limit_only(self) -> "RetryOptions":
        """Same timings, but only rate-limit failures are retried (for non-idempotent writes)."""
        return replace(self, retryable_statuses=(429,))

    def delay_for(self, retry_index: int) -> float:
        return min(self.initial_delay * (self.backoff_multiplier ** retry_index), self.max_delay)


DEFAULT_RETRY_OPTIONS = RetryOptions()


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def is_retryable_error(error: BaseException, retryable_statuses: Tuple[int, ...]) -> bool:
    """Classify an error as transient (rate limit / server error) or not."""
    if isinstance(error, ConfigurationError):
        return False

    status = _status_of(error)
    if status is not None and status in retryable_statuses:
        return True

    message = str(error).lower()
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


def _log_retry(options: RetryOptions) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Retry attempt %d/%d after %.1fs: %s",
            retry_state.attempt_number,
            options.max_retries,
            delay,
            error,
        )

    return before_sleep


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run `operation` (a zero-argument coroutine function), retrying transient failures.

    The operation is attempted at most ``max_retries + 1`` times. Non-retryable
    errors, and the last error once retries are exhausted, are re-raised unchanged.
    """
    opts = options or DEFAULT_RETRY_OPTIONS
    retrying = AsyncRetrying(
        stop=stop_after_attempt(opts.max_retries + 1),
        wait=wait_exponential(
            multiplier=opts.initial_delay,
            exp_base=opts.backoff_multiplier,
            min=0,
            max=opts.max_delay,
        ),
        retry=retry_if_exception(lambda e: is_retryable_error(e, opts.retryable_statuses)),
        before_sleep=_log_retry(opts),
        sleep=sleep,
        reraise=True,
    )

    # AsyncRetrying only awaits coroutine functions; lambdas returning a
    # coroutine must be awaited inside the attempt to be retried.
    async def _attempt() -> T:
        return await operation()

    return await retrying(_attempt)
