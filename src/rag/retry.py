"""
Retry Policy
============

Bounded exponential backoff for async operations.

    policy = RetryPolicy(max_attempts=3, base_delay=1.0, backoff_multiplier=2.0)
    result = await execute_with_retry(lambda: embedder.embed_many(texts), policy)

Delays between attempts: base_delay * multiplier ** (attempt - 1), i.e. 1s, 2s.
Attempts run sequentially; the sleep function is injectable so tests do not
wait on real time.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration."""
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay cannot be negative")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")

    def delay_after(self, attempt: int) -> float:
        """Delay before the attempt following `attempt` (1-based)."""
        return self.base_delay * (self.backoff_multiplier ** (attempt - 1))

    @property
    def delays(self) -> List[float]:
        return [self.delay_after(a) for a in range(1, self.max_attempts)]


class RetryExhaustedError(Exception):
    """Every attempt failed. `last_error` holds the final exception."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts: {last_error}")


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Optional[SleepFunc] = None,
    description: str = "operation",
) -> T:
    """
    Run `operation` until it succeeds or the policy is exhausted.

    Any Exception triggers a retry. Cancellation is not caught.

    Raises:
        RetryExhaustedError: chained from the last attempt's exception
    """
    sleep = sleep or asyncio.sleep

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as e:
            if attempt >= policy.max_attempts:
                logger.error(
                    f"{description} failed on final attempt {attempt}/{policy.max_attempts}: {e}",
                    extra={"attempt": attempt},
                )
                raise RetryExhaustedError(attempt, e) from e

            delay = policy.delay_after(attempt)
            logger.warning(
                f"{description} attempt {attempt}/{policy.max_attempts} failed: {e}; "
                f"retrying in {delay:.1f}s",
                extra={"attempt": attempt, "delay": delay},
            )
            await sleep(delay)

    # max_attempts >= 1 guarantees a return or raise above
    raise AssertionError("unreachable")
