"""LRU cache with TTL, used when Redis is not available for scraper results."""

from __future__ import annotations

import time
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable


class TTLCache:
    """Thread-safe LRU cache whose entries carry their own TTL.

    Evicts the least recently used entry once ``max_size`` is reached.
    Expired entries are dropped lazily on access or by ``cleanup_expired()``.

    Example:
        cache = TTLCache(max_size=500)
        cache.set("result:twitter:123", payload, ttl_seconds=21600)
        payload = cache.get("result:twitter:123")
    """

    def __init__(self, max_size: int = 1000, clock: Callable[[], float] = time.monotonic):
        self._max_size = max_size
        self._clock = clock
        self._cache: OrderedDict[str, tuple[float, Any]] = OrderedDict()
        self._lock = Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            item = self._cache.get(key)
            if item is None:
                return None
            expires_at, value = item
            if self._clock() >= expires_at:
                del self._cache[key]
                return None
            self._cache.move_to_end(key)
            return value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            while len(self._cache) >= self._max_size and key not in self._cache:
                self._cache.popitem(last=False)
            self._cache[key] = (self._clock() + ttl_seconds, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        """Number of entries, including possibly expired ones."""
        return len(self._cache)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, (expires_at, _) in self._cache.items() if now >= expires_at]
            for key in expired:
                del self._cache[key]
            return len(expired)

    @property
    def stats(self) -> dict:
        with self._lock:
            now = self._clock()
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "expired_count": sum(1 for exp, _ in self._cache.values() if now >= exp),
            }
