"""Media proxy endpoint.

Relays CDN media through this server so clients get the right Referer,
browser headers and Content-Disposition. Only hosts on the CDN allow-list
are reachable; see xtfetch.proxy.validation.
"""

import asyncio
import logging

import aiohttp
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError
from redis.exceptions import RedisError

from api.deps import Services, get_services
from xtfetch.models.cookies import CookieTier
from xtfetch.platforms import COOKIE_PLATFORMS, PLATFORM_CONFIGS
from xtfetch.proxy.relay import DEFAULT_FILENAME, relay_headers
from xtfetch.proxy.validation import validate_proxy_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["proxy"])


async def _upstream_headers(services: Services, platform: str | None) -> dict[str, str]:
    headers = await services.identity.rotating_headers(platform, include_referer=bool(platform))
    headers["Accept"] = "*/*"
    headers["Accept-Encoding"] = "identity"

    if platform in COOKIE_PLATFORMS:
        try:
            cookie = await services.cookies.get_best_cookie(platform, CookieTier.PUBLIC)
        except (RedisError, ValidationError, OSError) as e:
            logger.warning("Cookie pool unavailable for proxy (%s): %s", platform, e)
            cookie = None
        if cookie is not None:
            headers["Cookie"] = cookie.cookie_value.get_secret_value()
    return headers


@router.api_route("/v1/proxy", methods=["GET", "HEAD"])
async def proxy_media(
    request: Request,
    url: str | None = None,
    filename: str | None = None,
    platform: str | None = None,
    inline: str | None = None,
    head: str | None = None,
    services: Services = Depends(get_services),
) -> Response:
    """Stream a CDN file, forwarding Range for seeking."""
    if not url:
        return JSONResponse({"error": "URL is required"}, status_code=400)

    target = validate_proxy_url(url)
    if platform and platform not in PLATFORM_CONFIGS:
        platform = None
    headers = await _upstream_headers(services, platform)

    if head == "1" or request.method == "HEAD":
        size = await services.relay.head_size(target, headers)
        return Response(status_code=200, headers={"X-File-Size": str(size)})

    range_header = request.headers.get("range")
    if range_header:
        headers["Range"] = range_header

    try:
        upstream = await services.relay.open(target, headers)
    except asyncio.TimeoutError:
        logger.warning("Proxy upstream timed out: %s", target[:80])
        return JSONResponse({"error": "Upstream timed out"}, status_code=504)
    except aiohttp.ClientError as e:
        logger.warning("Proxy upstream failed: %s (%s)", target[:80], e)
        return JSONResponse({"error": "Upstream connection failed"}, status_code=502)

    if not 200 <= upstream.status < 300:
        upstream.close()
        logger.warning("Proxy upstream returned %d for %s", upstream.status, target[:80])
        return JSONResponse(
            {"error": f"Download failed: {upstream.status}"}, status_code=upstream.status,
        )

    out_headers = relay_headers(upstream.headers, filename or DEFAULT_FILENAME, inline == "1")
    logger.debug(
        "Relaying %s (%s bytes)", filename or DEFAULT_FILENAME, out_headers.get("Content-Length", "?"),
    )
    return StreamingResponse(
        upstream.iter_chunks(),
        status_code=206 if upstream.status == 206 else 200,
        headers=out_headers,
    )
