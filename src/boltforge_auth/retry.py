"""
Retry with exponential backoff for calls that must survive network blips.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, TypeVar

from .errors import is_network_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff settings for transient failures."""

    max_retries: int = 3  # Retries after the first attempt
    base_delay: float = 1.0  # Seconds before the first retry

    def delay_for(self, attempt: int) -> float:
        """Delay after the failed attempt number ``attempt`` (0-based)."""
        return self.base_delay * (2**attempt)

    @property
    def max_total_wait(self) -> float:
        return sum(self.delay_for(attempt) for attempt in range(self.max_retries))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    is_retryable: Callable[[BaseException], bool] = is_network_error,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    operation_name: Optional[str] = None,
) -> T:
    """
    Run ``operation``, retrying only failures ``is_retryable`` accepts.

    Auth rejections are never retryable: retrying bad credentials is wrong
    and would burn the sign-in rate limit budget.

    Args:
        operation: Zero-argument coroutine function to call
        policy: Retry count and base delay (defaults to 3 retries from 1s)
        is_retryable: Predicate deciding whether an error is transient
        sleep: Awaitable used for the backoff wait
        operation_name: Label used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        The last error when it is not retryable or retries are exhausted
    """
    policy = policy or RetryPolicy()
    name = operation_name or getattr(operation, "__name__", "operation")

    for attempt in range(policy.max_retries + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or attempt == policy.max_retries:
                raise

            delay = policy.delay_for(attempt)
            logger.info(
                f"Retry attempt {attempt + 1}/{policy.max_retries} for {name} "
                f"in {delay:.1f}s after: {e}"
            )
            await sleep(delay)

    # Unreachable: the final attempt either returns or raises
    raise RuntimeError(f"{name} exhausted retries without a result")
