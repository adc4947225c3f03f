"""Backoff configuration for retried requests."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryConfig:
    """Exponential backoff between attempts.

    ``attempts`` counts every try including the first, so attempts=3 means
    at most two retries, waiting 1s then 2s with the defaults.
    """

    attempts: int = 3
    delay: float = 1.0
    backoff_factor: float = 2.0
    max_delay: float = 30.0

    def get_delay(self, attempt: int) -> float:
        """Delay after the given failed attempt (0-indexed)."""
        return min(self.delay * (self.backoff_factor ** attempt), self.max_delay)

    def delays(self) -> list[float]:
        return [self.get_delay(i) for i in range(max(self.attempts - 1, 0))]
