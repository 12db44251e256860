"""Retry with exponential backoff and jitter, shared by every network caller.

Usage::

    async for attempt in retrying(max_attempts=3, base_delay=1.0, is_retryable=is_transient):
        with attempt:
            html = await fetch()

or, for a single coroutine function::

    result = await call_with_retry(fetch, url, max_attempts=3, base_delay=1.0, is_retryable=is_transient)
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx
from tenacity import AsyncRetrying, RetryCallState, before_sleep_log, retry_if_exception, stop_after_attempt

from mediagrab.shared.exceptions import RateLimitedError, SourceBlockedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_wait(
    base_delay: float,
    *,
    max_delay: float = 60.0,
    jitter: float = 0.2,
) -> Callable[[RetryCallState], float]:
    """Build a tenacity wait strategy.

    The delay is ``base_delay * 2**(attempt-1)`` capped at ``max_delay``, plus up to
    ``jitter`` of itself at random. An exception carrying a positive ``retry_after``
    attribute overrides the computed delay (still capped).
    """

    def _wait(retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        hinted = getattr(exc, "retry_after", None)
        if isinstance(hinted, (int, float)) and hinted > 0:
            return float(min(hinted, max_delay))
        delay = min(base_delay * 2 ** (retry_state.attempt_number - 1), max_delay)
        return delay + random.uniform(0, delay * jitter)

    return _wait


def retrying(
    *,
    max_attempts: int,
    base_delay: float,
    is_retryable: Callable[[BaseException], bool],
    max_delay: float = 60.0,
    jitter: float = 0.2,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncRetrying:
    """Return a configured ``AsyncRetrying`` controller.

    Args:
        max_attempts: Total attempts including the first call.
        base_delay: Delay in seconds before the second attempt.
        is_retryable: Predicate deciding whether an exception is worth retrying.
        max_delay: Upper bound for a single delay.
        jitter: Fraction of the delay added at random.
        sleep: Awaitable sleep function (override in tests).

    Returns:
        Controller that re-raises the last exception once attempts are exhausted.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=backoff_wait(base_delay, max_delay=max_delay, jitter=jitter),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )


async def call_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int,
    base_delay: float,
    is_retryable: Callable[[BaseException], bool],
    max_delay: float = 60.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """Await ``func(*args, **kwargs)`` under the retry policy."""
    controller = retrying(
        max_attempts=max_attempts,
        base_delay=base_delay,
        is_retryable=is_retryable,
        max_delay=max_delay,
        sleep=sleep,
    )
    return await controller(func, *args, **kwargs)


def is_transient(exc: BaseException) -> bool:
    """Timeouts, connection resets and 5xx/429 responses."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429
    return isinstance(exc, (SourceBlockedError, RateLimitedError))


def retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse a numeric ``Retry-After`` header, if any."""
    raw = response.headers.get("Retry-After")
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value > 0 else None
