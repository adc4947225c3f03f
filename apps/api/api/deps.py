"""Shared dependencies for API endpoints.

Every stateful service (pacing maps, guest limiters, identity pool) is created
once in the app lifespan and handed to endpoints through ``get_services()``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import redis.asyncio as aioredis
from fastapi import Header, HTTPException

from xtfetch.config.settings import Settings, get_settings
from xtfetch.http.client import ResilientClient
from xtfetch.identity.pool import BrowserIdentityPool
from xtfetch.proxy.relay import MediaRelay
from xtfetch.scrapers import ScraperRegistry
from xtfetch.services.background import BackgroundDispatcher
from xtfetch.services.cache_service import ResultCache
from xtfetch.services.cookies_service import CookiePoolService
from xtfetch.services.extraction import MediaExtractor
from xtfetch.services.guest_limiter import GuestRateLimiter, LimiterConfig
from xtfetch.services.profile_store import ProfileStore
from xtfetch.services.rate_tracker import RateBackoffTracker

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    redis: aioredis.Redis
    dispatcher: BackgroundDispatcher
    profiles: ProfileStore
    identity: BrowserIdentityPool
    cookies: CookiePoolService
    tracker: RateBackoffTracker
    cache: ResultCache
    registry: ScraperRegistry
    extractor: MediaExtractor
    playground_limiter: GuestRateLimiter
    legacy_limiter: GuestRateLimiter
    client: ResilientClient
    relay: MediaRelay


def build_services(
    settings: Settings,
    redis_client: aioredis.Redis,
    registry: ScraperRegistry | None = None,
    relay: MediaRelay | None = None,
) -> Services:
    dispatcher = BackgroundDispatcher()
    profiles = ProfileStore(redis_client)
    cookies = CookiePoolService(redis_client)
    tracker = RateBackoffTracker()
    cache = ResultCache(redis_client)
    registry = registry or ScraperRegistry()
    return Services(
        settings=settings,
        redis=redis_client,
        dispatcher=dispatcher,
        profiles=profiles,
        identity=BrowserIdentityPool(profiles, dispatcher),
        cookies=cookies,
        tracker=tracker,
        cache=cache,
        registry=registry,
        extractor=MediaExtractor(registry, cache, tracker, cookies, dispatcher),
        playground_limiter=GuestRateLimiter(LimiterConfig(
            limit=settings.playground_rate_limit,
            window_seconds=settings.playground_window_seconds,
            url_window_seconds=settings.playground_url_cache_seconds,
        )),
        legacy_limiter=GuestRateLimiter(LimiterConfig(
            limit=settings.legacy_rate_limit,
            window_seconds=settings.legacy_window_seconds,
            url_window_seconds=settings.legacy_window_seconds,
        )),
        client=ResilientClient.from_settings(settings),
        relay=relay or MediaRelay(
            timeout=settings.proxy_upstream_timeout, chunk_size=settings.proxy_chunk_size,
        ),
    )


_services: Services | None = None


async def init_deps(services: Services | None = None) -> None:
    """Initialize shared dependencies (called on app startup)."""
    global _services
    if services is None:
        settings = get_settings()
        redis_client = aioredis.from_url(settings.redis_url, decode_responses=True)
        services = build_services(settings, redis_client)
        services.registry.load_entry_points()
    _services = services
    logger.info("Scrapers registered: %s", ", ".join(services.registry.platforms()) or "none")


async def close_deps() -> None:
    """Close shared dependencies (called on app shutdown)."""
    global _services
    if _services is None:
        return
    await _services.dispatcher.drain()
    await _services.client.close()
    await _services.relay.close()
    await _services.redis.aclose()
    _services = None


def get_services() -> Services:
    """Get the shared service container."""
    assert _services is not None, "Services not initialized, call init_deps() first"
    return _services


def get_redis() -> aioredis.Redis:
    return get_services().redis


async def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    """Admin endpoints need X-Admin-Key; they are off while no key is configured."""
    expected = get_services().settings.admin_api_key
    if not expected:
        raise HTTPException(status_code=403, detail="Admin API is disabled")
    if x_admin_key != expected:
        raise HTTPException(status_code=401, detail="Invalid admin key")
