"""Bounded retry with exponential backoff and jitter."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]
ShouldRetry = Callable[[BaseException], bool]


class RetryPolicy(BaseModel):
    """Retry parameters, validated when the policy is built."""

    model_config = ConfigDict(frozen=True)

    attempts: int = Field(..., ge=1)
    min_delay: float = Field(..., ge=0.0, description="Base delay in seconds.")
    max_delay: float = Field(..., ge=0.0, description="Upper bound of the unjittered delay.")
    jitter: float = Field(0.0, ge=0.0, le=1.0)

    def delay_for(self, attempt: int, *, rng: Callable[[], float] = random.random) -> float:
        """Delay after the failed 1-indexed ``attempt``."""

        base = min(self.max_delay, self.min_delay * 2 ** (attempt - 1))
        factor = 1 - self.jitter / 2 + rng() * self.jitter
        return base * factor

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        should_retry: ShouldRetry | None = None,
        sleep: Sleep | None = None,
        rng: Callable[[], float] = random.random,
        label: str = "operation",
    ) -> T:
        sleep = sleep or asyncio.sleep
        for attempt in range(1, self.attempts + 1):
            try:
                return await operation()
            except Exception as exc:
                if should_retry is not None and not should_retry(exc):
                    raise
                if attempt == self.attempts:
                    raise
                delay = self.delay_for(attempt, rng=rng)
                logger.warning(
                    "%s failed on attempt %d/%d: %s; retrying in %.2fs",
                    label,
                    attempt,
                    self.attempts,
                    exc,
                    delay,
                )
                await sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover


async def retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    min_delay: float,
    max_delay: float,
    jitter: float = 0.0,
    should_retry: ShouldRetry | None = None,
    sleep: Sleep | None = None,
    rng: Callable[[], float] = random.random,
) -> T:
    """Run ``operation`` until it succeeds, attempts run out or ``should_retry`` says stop.

    The last error is re-raised unchanged. Invalid ``attempts``/``jitter`` raise
    ``ValueError`` before the operation is called.
    """

    policy = RetryPolicy(attempts=attempts, min_delay=min_delay, max_delay=max_delay, jitter=jitter)
    return await policy.run(operation, should_retry=should_retry, sleep=sleep, rng=rng)


__all__ = ["RetryPolicy", "retry"]
