"""Reconnect delays for change feed consumers: exponential backoff with jitter."""

from __future__ import annotations

import random
from dataclasses import dataclass

from menuboard.core.config import (
    REALTIME_RETRY_INITIAL_DELAY,
    REALTIME_RETRY_MAX_ATTEMPTS,
    REALTIME_RETRY_MAX_DELAY,
)


@dataclass(frozen=True)
class RetryConfig:
    """
    Attributes:
        initial_delay: Base delay in seconds.
        max_delay: Cap applied before jitter.
        backoff_base: Exponential multiplier.
        jitter_factor: Random jitter range as a fraction of the delay (0.25 = +-25%).
        max_attempts: Consecutive failed connections before giving up.
    """

    initial_delay: float = REALTIME_RETRY_INITIAL_DELAY
    max_delay: float = REALTIME_RETRY_MAX_DELAY
    backoff_base: float = 2.0
    jitter_factor: float = 0.25
    max_attempts: int = REALTIME_RETRY_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.initial_delay < 0:
            raise ValueError("initial_delay must not be negative")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.backoff_base < 1:
            raise ValueError("backoff_base must be >= 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def calculate_delay_with_jitter(attempt: int, config: RetryConfig | None = None) -> float:
    """Delay before reconnect number ``attempt`` (0-indexed).

    base = initial_delay * backoff_base ** attempt, capped at max_delay,
    then spread by +-jitter_factor.
    """
    if config is None:
        config = RetryConfig()

    capped_delay = min(config.initial_delay * (config.backoff_base ** attempt), config.max_delay)
    jitter_range = capped_delay * config.jitter_factor
    jitter = random.uniform(-jitter_range, jitter_range)
    return max(0.0, capped_delay + jitter)
