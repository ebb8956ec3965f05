"""
Retry policy - bounded exponential backoff with jitter.

    delay = min(max_delay, base * 2^(attempt-1) + jitter),  0 <= jitter < base

A provider Retry-After hint raises the delay to at least the hint, still
capped by max_delay.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Callable


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff constants, in seconds."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    random: Callable[[], float] = field(default=random.random, compare=False)

    def compute_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        jitter = self.random() * self.base_delay
        delay = self.base_delay * 2 ** (attempt - 1) + jitter
        if retry_after is not None and retry_after > delay:
            delay = retry_after
        return min(self.max_delay, delay)

    def should_retry(self, attempt: int, retryable: bool) -> bool:
        return retryable and attempt <= self.max_retries


@dataclass
class RetryState:
    """Lives for one logical call across its retry loop."""

    attempt: int = 1
    last_error: str | None = None
    delay: float = 0.0


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given as seconds or an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
