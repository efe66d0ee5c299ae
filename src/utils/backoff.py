"""
Retry spacing for the capture attempt loop.

Backoff is off by default: attempts follow each other immediately. When a
base delay is configured, the pause before attempt n+1 grows
exponentially with n and is capped, with a little jitter so scheduled
runs against the same host do not fall into lockstep.
"""

from __future__ import annotations

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class BackoffConfig:
    """Exponential backoff parameters.

    - base_delay: Pause after the first failed attempt, in seconds
    - max_delay: Upper bound for any single pause
    - exponential_base: Growth factor per failed attempt
    - jitter_factor: Relative random variation (0.1 means ±10%)
    """

    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base <= 1:
            raise ValueError("exponential_base must be > 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")


def calculate_backoff(
    failed_attempts: int,
    config: BackoffConfig | None = None,
    *,
    add_jitter: bool = True,
) -> float:
    """Return the pause in seconds after ``failed_attempts + 1`` failures.

    ``failed_attempts`` is 0-indexed: 0 gives base_delay, 1 gives
    base_delay * exponential_base, and so on up to max_delay.

    Example:
        >>> calculate_backoff(2, BackoffConfig(), add_jitter=False)
        4.0
    """
    if failed_attempts < 0:
        raise ValueError("failed_attempts must be non-negative")

    config = config or BackoffConfig()
    delay = min(
        config.base_delay * config.exponential_base**failed_attempts,
        config.max_delay,
    )
    if add_jitter and config.jitter_factor:
        spread = delay * config.jitter_factor
        delay = delay + random.uniform(-spread, spread)
    return max(delay, 0.0)


def retry_delays(max_attempts: int, config: BackoffConfig) -> list[float]:
    """Jitter-free pauses of a loop that runs max_attempts times.

    There is one pause between each pair of consecutive attempts and none
    after the last, so the list has max_attempts - 1 entries.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    return [calculate_backoff(n, config, add_jitter=False) for n in range(max_attempts - 1)]


def estimate_worst_case_seconds(
    max_attempts: int,
    attempt_timeout: float,
    config: BackoffConfig | None = None,
) -> float:
    """Longest a capture can take when every attempt hits its timeout.

    Pauses are included only when backoff is enabled (config is not None).
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    total = max_attempts * attempt_timeout
    if config is not None:
        total += sum(retry_delays(max_attempts, config))
    return total
