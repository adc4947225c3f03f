"""Scraper result cache.

Keys are ``result:{platform}:{content_id}``; URLs without a recognizable
content id fall back to a sha256 of the normalized URL. Redis TTL expiry is
authoritative; an in-process TTLCache covers Redis outages.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Callable

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from xtfetch.models.media import CacheEntry
from xtfetch.url import extract_content_id, normalize_url
from xtfetch.utils.ttl_cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600

PLATFORM_TTLS: dict[str, int] = {
    "facebook": 3600,
    "instagram": 7200,
    "twitter": 21600,
    "tiktok": 43200,
    "weibo": 21600,
    "youtube": 3600,
}


def cache_key(platform: str, url: str) -> str:
    normalized = normalize_url(url)
    content_id = extract_content_id(platform, normalized)
    if not content_id:
        content_id = hashlib.sha256(normalized.encode()).hexdigest()[:32]
    return f"result:{platform}:{content_id}"


class ResultCache:
    def __init__(
        self,
        redis_client: aioredis.Redis | None = None,
        clock: Callable[[], float] = time.time,
        memory_size: int = 500,
    ) -> None:
        self._redis = redis_client
        self._clock = clock
        self._memory = TTLCache(max_size=memory_size, clock=clock)

    async def get(self, platform: str, url: str) -> dict[str, Any] | None:
        key = cache_key(platform, url)
        entry: CacheEntry | None = None
        if self._redis is not None:
            try:
                data = await self._redis.get(key)
                if data is not None:
                    entry = CacheEntry.model_validate_json(data)
            except (RedisError, ValidationError) as e:
                logger.warning("Result cache read failed for %s: %s", key, e)
                entry = self._memory.get(key)
        else:
            entry = self._memory.get(key)

        if entry is None or entry.is_expired(self._clock()):
            return None
        logger.debug("Cache hit %s", key)
        return entry.value

    async def set(self, platform: str, url: str, value: dict[str, Any], ttl: int | None = None) -> None:
        key = cache_key(platform, url)
        ttl = ttl or PLATFORM_TTLS.get(platform, DEFAULT_TTL)
        entry = CacheEntry(
            key=key, platform=platform, value=value, ttl_seconds=ttl, created_at=self._clock(),
        )
        self._memory.set(key, entry, ttl)
        if self._redis is None:
            return
        try:
            await self._redis.set(key, entry.model_dump_json(), ex=ttl)
        except RedisError as e:
            logger.warning("Result cache write failed for %s: %s", key, e)

    async def delete(self, platform: str, url: str) -> None:
        key = cache_key(platform, url)
        self._memory.delete(key)
        if self._redis is not None:
            await self._redis.delete(key)
