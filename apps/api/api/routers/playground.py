"""Guest extraction endpoints: the public playground and the legacy surface.

No account needed; each client IP gets a small fixed-window quota. Checks run
cheapest first and nothing before the quota step consumes it:
url present -> URL screen -> attack patterns -> platform -> seen URL -> quota
-> platform enabled -> extraction.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from api.deps import Services, get_services
from xtfetch.http.errors import PlatformBusy, RateLimitExceeded
from xtfetch.platforms import GUEST_PLATFORMS, detect_platform, get_platform_name
from xtfetch.services.guest_limiter import GuestRateLimiter
from xtfetch.url import detect_attack_patterns, get_client_ip, is_valid_social_url, normalize_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["playground"])


class ExtractRequest(BaseModel):
    url: str | None = None


def _error(message: str, status_code: int, rate_limit: dict[str, Any], platform: str | None = None) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "error": message, "rateLimit": rate_limit}
    if platform:
        body["platform"] = platform
    return JSONResponse(body, status_code=status_code)


def _describe(surface: str, limiter: GuestRateLimiter) -> dict:
    return {
        "name": f"XTFetch {surface} API",
        "description": "Extract downloadable media from a social media post URL",
        "methods": ["GET ?url=", "POST {\"url\": ...}"],
        "supportedPlatforms": list(GUEST_PLATFORMS),
        "rateLimit": {
            "limit": limiter.config.limit,
            "windowSeconds": int(limiter.config.window_seconds),
        },
    }


async def _handle(
    request: Request,
    url: str | None,
    services: Services,
    limiter: GuestRateLimiter,
    enabled: bool,
) -> JSONResponse:
    settings = services.settings
    ip = get_client_ip(request.headers, request.client.host if request.client else "unknown")
    quota = limiter.status(ip).envelope()

    if settings.maintenance_mode:
        return _error(settings.maintenance_message, 503, quota)
    if not enabled:
        return _error("This endpoint is currently disabled", 503, quota)

    if not url:
        return _error("URL is required", 400, quota)
    url = url.strip()

    valid, reason = is_valid_social_url(url)
    if not valid:
        return _error(reason or "Invalid URL", 400, quota)
    if detect_attack_patterns(url):
        logger.warning("Attack pattern in guest request from %s", ip)
        return _error("Invalid URL", 400, quota)

    platform = detect_platform(normalize_url(url))
    if platform is None or platform not in GUEST_PLATFORMS:
        return _error("Unsupported platform", 400, quota)

    if limiter.is_url_seen(ip, url):
        rate = limiter.status(ip)
    else:
        rate = limiter.check_limit(ip)
        if not rate.allowed:
            raise RateLimitExceeded(rate.reset_in, rate.limit)

    if not settings.is_platform_enabled(platform):
        return _error(f"{get_platform_name(platform)} is temporarily unavailable", 503, rate.envelope(), platform)

    try:
        extraction = await services.extractor.extract(url, platform)
    except PlatformBusy as e:
        return _error(str(e), 503, rate.envelope(), platform)
    if not extraction.result.success:
        return _error(extraction.result.error or "Extraction failed", 400, rate.envelope(), platform)

    limiter.remember_url(ip, url)
    return JSONResponse({
        "success": True,
        "platform": platform,
        "cached": extraction.cached,
        "data": extraction.payload(),
        "rateLimit": rate.envelope(),
    })


# ──────────────────────────────────────────────
# Playground
# ──────────────────────────────────────────────

@router.get("/playground")
async def playground_get(
    request: Request,
    url: str | None = None,
    services: Services = Depends(get_services),
):
    """Endpoint description without ``url``; extraction with it."""
    limiter = services.playground_limiter
    if url is None:
        ip = get_client_ip(request.headers, request.client.host if request.client else "unknown")
        return {**_describe("Playground", limiter), "rateLimit": limiter.status(ip).envelope()}
    return await _handle(request, url, services, limiter, services.settings.playground_enabled)


@router.post("/playground")
async def playground_post(
    request: Request,
    body: ExtractRequest,
    services: Services = Depends(get_services),
) -> JSONResponse:
    return await _handle(
        request, body.url, services, services.playground_limiter, services.settings.playground_enabled,
    )


# ──────────────────────────────────────────────
# Legacy
# ──────────────────────────────────────────────

@router.get("/legacy")
async def legacy_get(
    request: Request,
    url: str | None = None,
    services: Services = Depends(get_services),
):
    limiter = services.legacy_limiter
    if url is None:
        return _describe("Legacy", limiter)
    return await _handle(request, url, services, limiter, True)


@router.post("/legacy")
async def legacy_post(
    request: Request,
    body: ExtractRequest,
    services: Services = Depends(get_services),
) -> JSONResponse:
    return await _handle(request, body.url, services, services.legacy_limiter, True)
