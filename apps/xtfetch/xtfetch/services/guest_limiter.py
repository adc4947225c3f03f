"""Fixed-window per-IP quota for the guest playground and legacy surfaces.

A URL the same IP already fetched inside its URL window is served again
without consuming quota, so refreshing a result page is free.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from xtfetch.url import normalize_for_cache

CLEANUP_THRESHOLD = 1000


@dataclass(frozen=True)
class LimiterConfig:
    limit: int
    window_seconds: float
    url_window_seconds: float


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_in: int  # seconds until the window resets, 0 when no window is open
    limit: int

    def envelope(self) -> dict:
        """The ``rateLimit`` block of guest API responses."""
        data = {"remaining": self.remaining, "limit": self.limit}
        if self.reset_in:
            data["resetIn"] = self.reset_in
        return data


@dataclass
class _Window:
    count: int
    reset_at: float


PLAYGROUND = LimiterConfig(limit=5, window_seconds=120, url_window_seconds=120)
LEGACY = LimiterConfig(limit=5, window_seconds=300, url_window_seconds=300)


class GuestRateLimiter:
    def __init__(self, config: LimiterConfig = PLAYGROUND, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}
        self._seen: dict[str, float] = {}

    @property
    def limit(self) -> int:
        return self.config.limit

    def _reset_in(self, window: _Window, now: float) -> int:
        remaining = window.reset_at - now
        return math.ceil(remaining) if remaining > 0 else 0

    def _cleanup(self, now: float) -> None:
        if len(self._windows) > CLEANUP_THRESHOLD:
            for ip in [ip for ip, w in self._windows.items() if now >= w.reset_at]:
                del self._windows[ip]
        if len(self._seen) > CLEANUP_THRESHOLD:
            for key in [k for k, expires in self._seen.items() if now >= expires]:
                del self._seen[key]

    def check_limit(self, ip: str) -> RateLimitResult:
        """Consume one unit of the IP's quota."""
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            window = self._windows.get(ip)
            if window is None or now >= window.reset_at:
                window = self._windows[ip] = _Window(
                    count=0, reset_at=now + self.config.window_seconds,
                )
            if window.count >= self.config.limit:
                return RateLimitResult(False, 0, self._reset_in(window, now), self.config.limit)
            window.count += 1
            return RateLimitResult(
                True, self.config.limit - window.count, self._reset_in(window, now), self.config.limit,
            )

    def status(self, ip: str) -> RateLimitResult:
        """Current quota without consuming it."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(ip)
            if window is None or now >= window.reset_at:
                return RateLimitResult(True, self.config.limit, 0, self.config.limit)
            remaining = max(0, self.config.limit - window.count)
            return RateLimitResult(remaining > 0, remaining, self._reset_in(window, now), self.config.limit)

    def is_url_seen(self, ip: str, url: str) -> bool:
        key = f"{ip}:{normalize_for_cache(url)}"
        with self._lock:
            expires = self._seen.get(key)
            if expires is None:
                return False
            if self._clock() >= expires:
                del self._seen[key]
                return False
            return True

    def remember_url(self, ip: str, url: str) -> None:
        key = f"{ip}:{normalize_for_cache(url)}"
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            self._seen[key] = now + self.config.url_window_seconds

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._seen.clear()
