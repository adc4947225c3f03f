"""Per-platform request pacing and backoff.

State per platform moves Idle -> Active -> Cooldown -> Idle:
- track_request() counts requests in a 60s window; more than 30 trips a 30s cooldown
- mark_rate_limited() starts an escalating cooldown after a 429-like response
- should_throttle() is True during cooldown and clears an elapsed one

State is in-memory and per process.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Callable

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
MAX_REQUESTS_PER_WINDOW = 30
BURST_COOLDOWN_SECONDS = 30.0
BASE_BACKOFF_SECONDS = 30.0
MAX_BACKOFF_SECONDS = 120.0


@dataclass
class RateLimitState:
    last_request_at: float = 0.0
    request_count: int = 0
    cooldown_until: float = 0.0


def backoff_seconds(request_count: int) -> float:
    """30s doubling every 10 requests in the window, capped at 120s."""
    return min(MAX_BACKOFF_SECONDS, BASE_BACKOFF_SECONDS * 2 ** (request_count // 10))


class RateBackoffTracker:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[str, RateLimitState] = {}

    def _state(self, platform: str) -> RateLimitState:
        state = self._states.get(platform)
        if state is None:
            state = self._states[platform] = RateLimitState()
        return state

    def should_throttle(self, platform: str) -> bool:
        with self._lock:
            state = self._states.get(platform)
            if state is None or not state.cooldown_until:
                return False
            if self._clock() < state.cooldown_until:
                return True
            state.cooldown_until = 0.0
            state.request_count = 0
            return False

    def track_request(self, platform: str) -> None:
        with self._lock:
            now = self._clock()
            state = self._state(platform)
            if now - state.last_request_at > WINDOW_SECONDS:
                state.request_count = 0
            state.request_count += 1
            state.last_request_at = now

            if state.request_count > MAX_REQUESTS_PER_WINDOW:
                state.cooldown_until = now + BURST_COOLDOWN_SECONDS
                state.request_count = 0
                logger.warning(
                    "%s: more than %d requests in %ds, cooling down %ds",
                    platform, MAX_REQUESTS_PER_WINDOW, WINDOW_SECONDS, BURST_COOLDOWN_SECONDS,
                )

    def mark_rate_limited(self, platform: str) -> float:
        """Start a backoff cooldown. Returns its length in seconds."""
        with self._lock:
            state = self._state(platform)
            backoff = backoff_seconds(state.request_count)
            state.cooldown_until = self._clock() + backoff
        logger.warning("%s rate limited, backing off %ds", platform, backoff)
        return backoff

    def snapshot(self) -> dict[str, dict]:
        with self._lock:
            now = self._clock()
            return {
                platform: {
                    **asdict(state),
                    "throttled": bool(state.cooldown_until) and now < state.cooldown_until,
                }
                for platform, state in self._states.items()
            }

    def reset(self, platform: str | None = None) -> None:
        with self._lock:
            if platform is None:
                self._states.clear()
            else:
                self._states.pop(platform, None)
