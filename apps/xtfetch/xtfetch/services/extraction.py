"""Media extraction flow shared by the guest surfaces.

cache -> pacing check -> unauthenticated scrape -> pooled cookie retry.
Cookie outcomes and profile usage are recorded in the background.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError
from redis.exceptions import RedisError

from xtfetch.cookies.selection import classify_error
from xtfetch.http.errors import PlatformBusy
from xtfetch.models.cookies import CookieRecord, CookieTier
from xtfetch.platforms import COOKIE_PLATFORMS
from xtfetch.scrapers import ScrapeResult, ScraperRegistry
from xtfetch.services.background import BackgroundDispatcher
from xtfetch.services.cache_service import ResultCache
from xtfetch.services.cookies_service import CookiePoolService
from xtfetch.services.rate_tracker import RateBackoffTracker

logger = logging.getLogger(__name__)

# Platforms whose scrapers cannot work without a session cookie
COOKIE_REQUIRED_PLATFORMS = frozenset({"weibo"})


@dataclass
class Extraction:
    result: ScrapeResult
    cached: bool = False
    used_cookie: bool = False
    response_time_ms: int = 0

    def payload(self) -> dict:
        data = dict(self.result.data or {})
        data["usedCookie"] = self.used_cookie
        data["cached"] = self.cached
        data["responseTime"] = self.response_time_ms
        return data


class MediaExtractor:
    def __init__(
        self,
        registry: ScraperRegistry,
        cache: ResultCache,
        tracker: RateBackoffTracker,
        cookies: CookiePoolService | None = None,
        dispatcher: BackgroundDispatcher | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.tracker = tracker
        self.cookies = cookies
        self.dispatcher = dispatcher or BackgroundDispatcher()
        self._clock = clock

    async def _checkout_cookie(self, platform: str) -> CookieRecord | None:
        if self.cookies is None:
            return None
        try:
            return await self.cookies.get_best_cookie(platform, CookieTier.PRIVATE)
        except (RedisError, ValidationError, OSError) as e:
            logger.warning("Cookie pool unavailable for %s: %s", platform, e)
            return None

    async def extract(self, url: str, platform: str) -> Extraction:
        """Raises PlatformBusy while the platform is cooling down."""
        started = self._clock()

        cached = await self.cache.get(platform, url)
        if cached is not None:
            return Extraction(
                ScrapeResult(success=True, data=cached),
                cached=True,
                response_time_ms=int((self._clock() - started) * 1000),
            )

        if self.tracker.should_throttle(platform):
            raise PlatformBusy(platform)
        self.tracker.track_request(platform)

        result: ScrapeResult | None = None
        used_cookie = False

        if platform not in COOKIE_REQUIRED_PLATFORMS:
            result = await self.registry.scrape(platform, url)

        if (result is None or not result.success) and platform in COOKIE_PLATFORMS:
            cookie = await self._checkout_cookie(platform)
            if cookie is not None:
                used_cookie = True
                result = await self.registry.scrape(
                    platform, url, cookie.cookie_value.get_secret_value(),
                )
                if self.cookies is not None:
                    self.dispatcher.dispatch(
                        self.cookies.record_outcome(cookie.id, result.success, result.error),
                        name=f"cookie-outcome-{cookie.id[:8]}",
                    )

        if result is None:
            result = ScrapeResult(success=False, error=f"{platform} requires a cookie, none available")

        if not result.success and classify_error(result.error) == "rate_limited":
            self.tracker.mark_rate_limited(platform)

        if result.success and result.data:
            await self.cache.set(platform, url, result.data)

        return Extraction(
            result,
            used_cookie=used_cookie,
            response_time_ms=int((self._clock() - started) * 1000),
        )
