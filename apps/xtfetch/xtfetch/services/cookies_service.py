"""CookiePoolService: tiered cookie pool stored in Redis.

Provides:
- get_best_cookie(platform, tier): checkout with private -> public fallback
- record_outcome(cookie_id, success, error): health bookkeeping after use
- add/update/list/get/disable/delete for the admin API
- pool_stats() / status_summary() for dashboards and the public status endpoint

Selection and status transitions live in xtfetch.cookies.selection; this
service only loads and saves records. Cookie values never reach the logs.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable

import redis.asyncio as aioredis

from xtfetch.cookies.parser import extract_user_id, mask_cookie
from xtfetch.cookies.selection import (
    apply_disable,
    apply_failure,
    apply_success,
    apply_usage,
    is_selectable,
    select_cookie,
)
from xtfetch.models.cookies import CookieRecord, CookieStatus, CookieTier
from xtfetch.platforms import COOKIE_PLATFORMS

logger = logging.getLogger(__name__)

# Fields the admin API may change on an existing record
UPDATABLE_FIELDS = frozenset({
    "label", "tier", "status", "enabled", "max_uses_per_hour", "cookie_value",
})


def _pool_key(cookie_id: str) -> str:
    return f"cookies:pool:{cookie_id}"


def _index_key(platform: str) -> str:
    return f"cookies:index:{platform}"


class CookiePoolService:
    """Manages cookie lifecycle for scrapers and the media proxy."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._redis = redis_client
        self._clock = clock

    # ──────────────────────────────────────────────
    # Storage
    # ──────────────────────────────────────────────

    async def _load_platform(self, platform: str) -> list[CookieRecord]:
        cookie_ids = await self._redis.smembers(_index_key(platform))
        records = []
        for cid in sorted(cookie_ids):
            data = await self._redis.get(_pool_key(cid))
            if data is None:
                continue
            records.append(CookieRecord.model_validate_json(data))
        return records

    async def _save(self, cookie: CookieRecord) -> None:
        """Persist cookie state to Redis."""
        await self._redis.set(_pool_key(cookie.id), cookie.to_storage_json())

    # ──────────────────────────────────────────────
    # Checkout / outcome
    # ──────────────────────────────────────────────

    async def get_best_cookie(
        self,
        platform: str,
        tier: CookieTier = CookieTier.PUBLIC,
    ) -> CookieRecord | None:
        """Check out the best cookie for a platform.

        Private requests fall back to the public tier. Returns None when
        neither tier has a selectable cookie.
        """
        now = self._clock()
        cookies = await self._load_platform(platform)
        best = select_cookie(cookies, CookieTier(tier), now)
        if best is None:
            logger.info("No %s cookie available for %s", CookieTier(tier).value, platform)
            return None

        apply_usage(best, now)
        await self._save(best)
        logger.info(
            "Checked out cookie %s (%s tier) for %s (%d/%d this hour)",
            best.id[:8], best.tier.value, platform, best.uses_this_hour, best.max_uses_per_hour,
        )
        return best

    async def record_outcome(
        self,
        cookie_id: str,
        success: bool,
        error: str | None = None,
    ) -> CookieRecord | None:
        cookie = await self.get_cookie(cookie_id)
        if cookie is None:
            logger.debug("Outcome for unknown cookie %s ignored", cookie_id[:8])
            return None

        now = self._clock()
        if success:
            apply_success(cookie, now)
        else:
            apply_failure(cookie, error, now)
            logger.warning(
                "Cookie %s (%s) failed (%d errors), status %s: %s",
                cookie.id[:8], cookie.platform, cookie.error_count,
                cookie.status.value, cookie.last_error,
            )
        await self._save(cookie)
        return cookie

    # ──────────────────────────────────────────────
    # Admin
    # ──────────────────────────────────────────────

    async def add_cookie(
        self,
        platform: str,
        cookie_value: str,
        tier: CookieTier = CookieTier.PUBLIC,
        label: str | None = None,
        max_uses_per_hour: int = 60,
    ) -> CookieRecord:
        cookie = CookieRecord(
            platform=platform,
            tier=tier,
            label=label,
            cookie_value=cookie_value,
            user_id=extract_user_id(cookie_value, platform),
            max_uses_per_hour=max_uses_per_hour,
            created_at=self._clock(),
        )
        await self._save(cookie)
        await self._redis.sadd(_index_key(platform), cookie.id)
        logger.info(
            "Added %s cookie %s for %s (%s)",
            cookie.tier.value, cookie.id[:8], platform, mask_cookie(cookie_value),
        )
        return cookie

    async def get_cookie(self, cookie_id: str) -> CookieRecord | None:
        data = await self._redis.get(_pool_key(cookie_id))
        if data is None:
            return None
        return CookieRecord.model_validate_json(data)

    async def list_cookies(self, platform: str | None = None) -> list[CookieRecord]:
        platforms = [platform] if platform else list(COOKIE_PLATFORMS)
        records: list[CookieRecord] = []
        for p in platforms:
            records.extend(await self._load_platform(p))
        return records

    async def update_cookie(self, cookie_id: str, changes: dict[str, Any]) -> CookieRecord | None:
        cookie = await self.get_cookie(cookie_id)
        if cookie is None:
            return None
        updates = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
        data = cookie.model_dump(context={"reveal_secrets": True})
        data.update(updates)
        updated = CookieRecord.model_validate(data)
        if "cookie_value" in updates:
            updated.user_id = extract_user_id(updated.cookie_value.get_secret_value(), updated.platform)
        if updated.status == CookieStatus.HEALTHY and "status" in updates:
            updated.cooldown_until = None
            updated.error_count = 0
        await self._save(updated)
        return updated

    async def disable(self, cookie_id: str) -> CookieRecord | None:
        cookie = await self.get_cookie(cookie_id)
        if cookie is None:
            return None
        apply_disable(cookie)
        await self._save(cookie)
        logger.info("Cookie %s (%s) disabled", cookie.id[:8], cookie.platform)
        return cookie

    async def delete_cookie(self, cookie_id: str) -> bool:
        cookie = await self.get_cookie(cookie_id)
        if cookie is None:
            return False
        await self._redis.delete(_pool_key(cookie_id))
        await self._redis.srem(_index_key(cookie.platform), cookie_id)
        return True

    # ──────────────────────────────────────────────
    # Stats
    # ──────────────────────────────────────────────

    async def pool_stats(self, platforms: Iterable[str] = COOKIE_PLATFORMS) -> dict[str, dict[str, int]]:
        """Per-platform counts by status, plus total and selectable."""
        now = self._clock()
        stats = {}
        for platform in platforms:
            cookies = await self._load_platform(platform)
            counts = {status.value: 0 for status in CookieStatus}
            for cookie in cookies:
                counts[cookie.status.value] += 1
            counts["total"] = len(cookies)
            counts["available"] = sum(1 for c in cookies if is_selectable(c, now))
            stats[platform] = counts
        return stats

    async def status_summary(self, platforms: Iterable[str] = COOKIE_PLATFORMS) -> dict[str, dict[str, Any]]:
        """{platform: {available, healthyCount}} for the public status endpoint."""
        stats = await self.pool_stats(platforms)
        return {
            platform: {
                "available": counts["available"] > 0,
                "healthyCount": counts[CookieStatus.HEALTHY.value],
            }
            for platform, counts in stats.items()
        }
