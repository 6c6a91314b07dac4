"""
Bounded retry strategy with exponential backoff.

The policy only decides how many attempts are made, how long to wait between them
and which failures are worth another attempt. Callers own the loop so they can
classify failures on every attempt.
"""
import time
from typing import Callable, Optional


def _always(exc: Exception) -> bool:
    return True


class RetryPolicy:
    """Max attempts, backoff schedule and retriable-failure predicate."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        retry_on: Optional[Callable[[Exception], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.retry_on = retry_on or _always
        self.sleep = sleep

    @classmethod
    def from_config(cls, retry_config: dict, **overrides) -> "RetryPolicy":
        """Build a policy from a {max_attempts, base_delay} config dict."""
        params = {
            "max_attempts": retry_config.get("max_attempts", 3),
            "base_delay": retry_config.get("base_delay", 1.0),
        }
        params.update(overrides)
        return cls(**params)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based attempt: base, 2*base, 4*base, ..."""
        return self.base_delay * (2 ** (attempt - 1))

    def should_retry(self, exc: Exception, attempt: int) -> bool:
        """True when another attempt is allowed for this failure."""
        return attempt < self.max_attempts and self.retry_on(exc)

    def backoff(self, attempt: int) -> float:
        """Sleep for the delay after the given attempt and return the delay."""
        delay = self.delay_for(attempt)
        if delay > 0:
            self.sleep(delay)
        return delay
