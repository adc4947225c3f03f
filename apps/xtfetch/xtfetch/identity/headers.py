"""Request header sets built from a browser profile."""

from __future__ import annotations

import asyncio
import random

from xtfetch.models.profile import BrowserProfile
from xtfetch.platforms import get_origin, get_referer

ACCEPT_HTML = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,"
    "image/avif,image/webp,image/apng,*/*;q=0.8"
)


def build_headers(
    profile: BrowserProfile,
    platform: str | None = None,
    cookie: str | None = None,
    include_referer: bool = True,
) -> dict[str, str]:
    """Full browser-like header set for one request.

    Sec-CH-* and Sec-Fetch-* are only sent for Chromium profiles; a Firefox
    UA carrying client hints is an obvious mismatch.
    """
    headers = {
        "User-Agent": profile.user_agent,
        "Accept": ACCEPT_HTML,
        "Accept-Language": profile.accept_language,
        "Accept-Encoding": "gzip, deflate, br",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "DNT": "1",
        "Upgrade-Insecure-Requests": "1",
    }

    if profile.is_chromium:
        if profile.sec_ch_ua:
            headers["Sec-Ch-Ua"] = profile.sec_ch_ua
        headers["Sec-Ch-Ua-Mobile"] = profile.sec_ch_ua_mobile
        if profile.sec_ch_ua_platform:
            headers["Sec-Ch-Ua-Platform"] = profile.sec_ch_ua_platform
        headers["Sec-Fetch-Dest"] = "document"
        headers["Sec-Fetch-Mode"] = "navigate"
        headers["Sec-Fetch-Site"] = "same-origin" if include_referer and platform else "none"
        headers["Sec-Fetch-User"] = "?1"

    if include_referer and platform:
        referer = get_referer(platform)
        if referer:
            headers["Referer"] = referer
            headers["Origin"] = get_origin(platform)

    if cookie:
        headers["Cookie"] = cookie

    return headers


def random_delay(min_ms: int = 500, max_ms: int = 2000, rng: random.Random | None = None) -> float:
    """Human-like pause length in seconds."""
    rng = rng or random
    return rng.uniform(min_ms, max_ms) / 1000


async def random_sleep(min_ms: int = 500, max_ms: int = 2000) -> None:
    await asyncio.sleep(random_delay(min_ms, max_ms))
