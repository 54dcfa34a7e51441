"""Retry-with-backoff policy shared by every call site that retries.

Attempts are numbered from 1. After a failed attempt ``n`` the policy sleeps
``backoff(n)`` seconds before attempt ``n + 1``; the default backoff is
exponential (2, 4, 8, ... seconds). Errors the ``retryable`` predicate
rejects propagate immediately.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def exponential_backoff(attempt: int) -> float:
    return float(2 ** attempt)


def retry_any(error: BaseException) -> bool:
    return isinstance(error, Exception)


class RetryExhaustedError(Exception):
    """Raised when every attempt failed. ``last_error`` is the final cause."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    backoff: Callable[[int], float] = exponential_backoff
    retryable: Callable[[BaseException], bool] = retry_any
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    async def call(
        self,
        fn: Callable[[], Awaitable[T]],
        on_retry: Callable[[int, BaseException, float], None] | None = None,
    ) -> T:
        """Run ``fn`` until it succeeds or attempts run out.

        ``on_retry(attempt, error, delay)`` is invoked before each backoff
        sleep so callers can surface "retrying in Ns" status.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await fn()
            except Exception as e:
                if not self.retryable(e):
                    raise
                if attempt >= self.max_attempts:
                    raise RetryExhaustedError(attempt, e) from e
                delay = self.backoff(attempt)
                logger.debug(f"Attempt {attempt}/{self.max_attempts} failed ({e}); retrying in {delay:.0f}s")
                if on_retry:
                    on_retry(attempt, e, delay)
                await self.sleep(delay)
        raise AssertionError("unreachable")
