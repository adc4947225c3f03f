"""Redis persistence for browser profiles."""

from __future__ import annotations

import logging
from datetime import datetime

import redis.asyncio as aioredis

from xtfetch.models.profile import BrowserProfile

logger = logging.getLogger(__name__)

INDEX_KEY = "profiles:index"


def _profile_key(profile_id: str) -> str:
    return f"profiles:pool:{profile_id}"


class ProfileStore:
    """CRUD and usage counters for BrowserProfile records."""

    def __init__(self, redis_client: aioredis.Redis) -> None:
        self._redis = redis_client

    async def list_profiles(self) -> list[BrowserProfile]:
        profile_ids = await self._redis.smembers(INDEX_KEY)
        profiles = []
        for pid in sorted(profile_ids):
            data = await self._redis.get(_profile_key(pid))
            if data is None:
                continue
            profiles.append(BrowserProfile.model_validate_json(data))
        return profiles

    async def get(self, profile_id: str) -> BrowserProfile | None:
        data = await self._redis.get(_profile_key(profile_id))
        if data is None:
            return None
        return BrowserProfile.model_validate_json(data)

    async def save(self, profile: BrowserProfile) -> BrowserProfile:
        await self._redis.set(_profile_key(profile.id), profile.model_dump_json())
        await self._redis.sadd(INDEX_KEY, profile.id)
        return profile

    async def delete(self, profile_id: str) -> bool:
        removed = await self._redis.delete(_profile_key(profile_id))
        await self._redis.srem(INDEX_KEY, profile_id)
        return bool(removed)

    async def record_usage(self, profile_id: str, success: bool | None = None) -> None:
        """Bump use_count (and success/error count when the outcome is known)."""
        profile = await self.get(profile_id)
        if profile is None:
            return
        profile.use_count += 1
        profile.last_used_at = datetime.now()
        if success is True:
            profile.success_count += 1
        elif success is False:
            profile.error_count += 1
        await self._redis.set(_profile_key(profile.id), profile.model_dump_json())
        logger.debug("Profile %s used (%d)", profile_id[:8], profile.use_count)
