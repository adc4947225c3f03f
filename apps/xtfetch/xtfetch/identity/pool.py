"""BrowserIdentityPool: rotating browser fingerprints for outbound requests.

Profiles come from Redis (admin managed) and are cached for a short refresh
interval. Any store failure, or an empty store, falls back to the built-in
STATIC_PROFILES; selection never raises.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Callable

from pydantic import ValidationError
from redis.exceptions import RedisError

from xtfetch.identity.headers import build_headers
from xtfetch.identity.profiles import STATIC_PROFILES, is_static
from xtfetch.identity.selection import filter_candidates, select_weighted
from xtfetch.models.profile import BrowserProfile
from xtfetch.platforms import CHROMIUM_ONLY_PLATFORMS
from xtfetch.services.background import BackgroundDispatcher
from xtfetch.services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


class BrowserIdentityPool:
    """Selects a browser profile per request, never the same one twice in a row."""

    def __init__(
        self,
        store: ProfileStore | None = None,
        dispatcher: BackgroundDispatcher | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        refresh_interval: float = 60.0,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher or BackgroundDispatcher()
        self._rng = rng or random.Random()
        self._clock = clock
        self._refresh_interval = refresh_interval
        self._lock = threading.Lock()
        self._last_id: str | None = None
        self._cached: list[BrowserProfile] | None = None
        self._loaded_at = 0.0

    @property
    def last_profile_id(self) -> str | None:
        return self._last_id

    def invalidate(self) -> None:
        """Drop the cached profile list (after admin edits)."""
        self._cached = None

    async def _load_profiles(self) -> list[BrowserProfile]:
        if self._cached is not None and self._clock() - self._loaded_at < self._refresh_interval:
            return self._cached

        profiles: list[BrowserProfile] = []
        if self._store is not None:
            try:
                profiles = await self._store.list_profiles()
            except (RedisError, ValidationError, OSError) as e:
                logger.warning("Profile store unavailable, using static profiles: %s", e)

        if not profiles:
            profiles = list(STATIC_PROFILES)

        self._cached = profiles
        self._loaded_at = self._clock()
        return profiles

    async def select_profile(
        self,
        platform: str | None = None,
        chromium_only: bool = False,
    ) -> BrowserProfile:
        chromium_only = chromium_only or platform in CHROMIUM_ONLY_PLATFORMS
        profiles = await self._load_profiles()

        candidates = filter_candidates(profiles, platform, chromium_only)
        if not candidates:
            candidates = filter_candidates(STATIC_PROFILES, platform, chromium_only)

        with self._lock:
            profile = select_weighted(candidates, self._last_id, self._rng)
            self._last_id = profile.id

        if self._store is not None and not is_static(profile):
            self._dispatcher.dispatch(
                self._store.record_usage(profile.id), name=f"profile-usage-{profile.id[:8]}",
            )
        return profile

    async def rotating_headers(
        self,
        platform: str | None = None,
        cookie: str | None = None,
        include_referer: bool = True,
        chromium_only: bool = False,
    ) -> dict[str, str]:
        """Select a profile and build its header set."""
        profile = await self.select_profile(platform, chromium_only)
        return build_headers(profile, platform, cookie, include_referer)
