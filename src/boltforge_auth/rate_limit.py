"""
Sliding-window rate limiter with lockout for sign-in attempts.

No timers are involved: whether a lockout is still active is computed
from ``(now, blocked_until)`` whenever the limiter is queried.
"""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiter behavior (seconds)."""

    max_attempts: int = 5  # Attempts within the window before lockout
    window: float = 900.0  # Sliding window length
    block_duration: float = 900.0  # Lockout length once the limit is hit


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot for rendering a countdown and remaining attempts."""

    attempts: int
    attempts_remaining: int
    is_blocked: bool
    remaining_time: int
    can_attempt: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempts": self.attempts,
            "attempts_remaining": self.attempts_remaining,
            "is_blocked": self.is_blocked,
            "remaining_time": self.remaining_time,
            "can_attempt": self.can_attempt,
        }


def remaining_seconds(now: float, blocked_until: Optional[float]) -> int:
    """Whole seconds left in a lockout, rounded up; 0 when not blocked."""
    if blocked_until is None:
        return 0
    return max(0, math.ceil(blocked_until - now))


class RateLimiter:
    """
    Fixed-threshold limiter over a sliding window.

    Recording the ``max_attempts``-th attempt inside the window starts a
    lockout of ``block_duration``. Attempts made during a lockout are
    rejected without being counted and do not move its end. When the
    lockout ends every recorded attempt is forgotten.
    """

    def __init__(
        self,
        name: str,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize rate limiter.

        Args:
            name: Identifier of the guarded action (e.g. "sign_in")
            config: Thresholds and durations
            clock: Monotonic time source in seconds
        """
        self.name = name
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._attempts: list[float] = []
        self._blocked_until: Optional[float] = None

    def _expire_block(self, now: float) -> None:
        if self._blocked_until is not None and now >= self._blocked_until:
            logger.info(f"Rate limiter '{self.name}' lockout expired")
            self._attempts = []
            self._blocked_until = None

    def _prune(self, now: float) -> None:
        self._attempts = [t for t in self._attempts if now - t < self.config.window]

    def _current_attempts(self, now: float) -> int:
        return sum(1 for t in self._attempts if now - t < self.config.window)

    def can_attempt(self) -> bool:
        """True unless a lockout is in effect."""
        now = self._clock()
        self._expire_block(now)
        return self._blocked_until is None

    def record_attempt(self) -> bool:
        """
        Record an attempt and evaluate the threshold.

        Returns:
            Whether further attempts are still permitted
        """
        now = self._clock()
        self._expire_block(now)

        if self._blocked_until is not None:
            logger.debug(f"Rate limiter '{self.name}' is blocked, attempt not recorded")
            return False

        self._prune(now)
        self._attempts.append(now)

        if len(self._attempts) >= self.config.max_attempts:
            self._blocked_until = now + self.config.block_duration
            logger.warning(
                f"Rate limiter '{self.name}' locked for {self.config.block_duration:.0f}s "
                f"after {len(self._attempts)} attempts"
            )
            return False

        return True

    def reset(self) -> None:
        """Clear every attempt and lift any lockout immediately."""
        self._attempts = []
        self._blocked_until = None
        logger.debug(f"Rate limiter '{self.name}' reset")

    @property
    def is_blocked(self) -> bool:
        return not self.can_attempt()

    @property
    def attempts(self) -> int:
        now = self._clock()
        self._expire_block(now)
        return self._current_attempts(now)

    @property
    def attempts_remaining(self) -> int:
        return self.get_status().attempts_remaining

    @property
    def remaining_time(self) -> int:
        now = self._clock()
        self._expire_block(now)
        return remaining_seconds(now, self._blocked_until)

    def get_status(self) -> RateLimitStatus:
        now = self._clock()
        self._expire_block(now)
        attempts = self._current_attempts(now)
        blocked = self._blocked_until is not None
        return RateLimitStatus(
            attempts=attempts,
            attempts_remaining=0 if blocked else max(0, self.config.max_attempts - attempts),
            is_blocked=blocked,
            remaining_time=remaining_seconds(now, self._blocked_until),
            can_attempt=not blocked,
        )


class RateLimiterManager:
    """Manages one rate limiter per guarded action."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._limiters: dict[str, RateLimiter] = {}
        self._clock = clock

    def get_or_create(self, name: str, config: Optional[RateLimitConfig] = None) -> RateLimiter:
        """Get existing or create new rate limiter."""
        if name not in self._limiters:
            self._limiters[name] = RateLimiter(name, config, clock=self._clock)
        return self._limiters[name]

    def get_all_stats(self) -> dict[str, Any]:
        return {name: limiter.get_status().to_dict() for name, limiter in self._limiters.items()}

    def reset_all(self) -> None:
        for limiter in self._limiters.values():
            limiter.reset()
