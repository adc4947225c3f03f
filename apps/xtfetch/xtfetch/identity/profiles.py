"""Built-in browser profiles with consistent fingerprint fields.

Used whenever the profile store is unavailable or empty. Each profile bundles
the User-Agent with the Sec-CH-UA client hints that browser actually sends.
Firefox and Safari send no client hints at all.
"""

from __future__ import annotations

from xtfetch.models.profile import SCOPE_ALL, BrowserProfile

STATIC_PREFIX = "static-"


def _chromium(
    key: str,
    user_agent: str,
    brand: str,
    version: str,
    os_name: str,
    priority: int,
) -> BrowserProfile:
    return BrowserProfile(
        id=STATIC_PREFIX + key,
        label=key,
        platform_scope=SCOPE_ALL,
        user_agent=user_agent,
        sec_ch_ua=f'"{brand}";v="{version}", "Chromium";v="{version}", "Not_A Brand";v="24"',
        sec_ch_ua_mobile="?0",
        sec_ch_ua_platform=f'"{os_name}"',
        accept_language="en-US,en;q=0.9",
        is_chromium=True,
        priority=priority,
    )


# ──────────────────────────────────────────────
# Chrome / Edge 142-143, Firefox 134, Safari 18.2
# ──────────────────────────────────────────────

STATIC_PROFILES: tuple[BrowserProfile, ...] = (
    _chromium(
        "chrome143-windows",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
        "Google Chrome", "143", "Windows", priority=10,
    ),
    _chromium(
        "chrome143-macos",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
        "Google Chrome", "143", "macOS", priority=8,
    ),
    _chromium(
        "chrome142-windows",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/142.0.0.0 Safari/537.36",
        "Google Chrome", "142", "Windows", priority=5,
    ),
    _chromium(
        "chrome143-linux",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36",
        "Google Chrome", "143", "Linux", priority=3,
    ),
    _chromium(
        "edge143-windows",
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36 Edg/143.0.0.0",
        "Microsoft Edge", "143", "Windows", priority=5,
    ),
    BrowserProfile(
        id=STATIC_PREFIX + "firefox134-windows",
        label="firefox134-windows",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:134.0) Gecko/20100101 Firefox/134.0",
        accept_language="en-US,en;q=0.5",
        is_chromium=False,
        priority=4,
    ),
    BrowserProfile(
        id=STATIC_PREFIX + "safari18-macos",
        label="safari18-macos",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.2 Safari/605.1.15",
        accept_language="en-US,en;q=0.9",
        is_chromium=False,
        priority=4,
    ),
)


def is_static(profile: BrowserProfile) -> bool:
    return profile.id.startswith(STATIC_PREFIX)
