"""Platform table: domain aliases, referer/origin, and the proxy CDN allow-list.

The CDN allow-list is the single trust boundary for the media proxy. Adding a
platform means adding its media host(s) to ``PROXY_CDN_DOMAINS``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import urlsplit


@dataclass(frozen=True)
class PlatformConfig:
    """Static description of a supported platform."""

    name: str
    domain: str                       # primary domain, used for Referer/Origin
    aliases: tuple[str, ...]          # hostnames recognised as this platform
    api_endpoints: dict[str, str] = field(default_factory=dict)


PLATFORM_CONFIGS: dict[str, PlatformConfig] = {
    "youtube": PlatformConfig(
        name="YouTube",
        domain="youtube.com",
        aliases=("youtube.com", "youtu.be", "music.youtube.com", "m.youtube.com"),
    ),
    "tiktok": PlatformConfig(
        name="TikTok",
        domain="tiktok.com",
        aliases=("tiktok.com", "vm.tiktok.com", "vt.tiktok.com", "m.tiktok.com"),
    ),
    "instagram": PlatformConfig(
        name="Instagram",
        domain="instagram.com",
        aliases=("instagram.com", "instagr.am", "ddinstagram.com", "ig.me"),
    ),
    "facebook": PlatformConfig(
        name="Facebook",
        domain="facebook.com",
        aliases=(
            "facebook.com", "fb.com", "fb.watch", "fb.me", "fb.gg",
            "m.facebook.com", "web.facebook.com", "l.facebook.com",
        ),
    ),
    "twitter": PlatformConfig(
        name="Twitter/X",
        domain="x.com",
        aliases=(
            "x.com", "twitter.com", "mobile.twitter.com", "mobile.x.com",
            "t.co", "fxtwitter.com", "vxtwitter.com", "fixupx.com",
        ),
        api_endpoints={"syndication": "https://cdn.syndication.twimg.com/tweet-result"},
    ),
    "weibo": PlatformConfig(
        name="Weibo",
        domain="weibo.com",
        aliases=("weibo.com", "weibo.cn", "m.weibo.cn", "video.weibo.com", "t.cn"),
        api_endpoints={"mobile": "https://m.weibo.cn/statuses/show"},
    ),
}

SUPPORTED_PLATFORMS: tuple[str, ...] = tuple(PLATFORM_CONFIGS)

# Guest surfaces do not expose YouTube extraction
GUEST_PLATFORMS: tuple[str, ...] = ("facebook", "instagram", "twitter", "tiktok", "weibo")

# Platforms that gate content behind login and keep a cookie pool
COOKIE_PLATFORMS: tuple[str, ...] = ("facebook", "instagram", "twitter", "weibo")

# Platforms that fingerprint on Sec-Ch-Ua; only Chromium identities are used
CHROMIUM_ONLY_PLATFORMS: frozenset[str] = frozenset({"facebook", "instagram"})

# Media CDN hosts the proxy may fetch from, keyed by platform
PROXY_CDN_DOMAINS: dict[str, tuple[str, ...]] = {
    "facebook": ("fbcdn.net",),
    "instagram": ("cdninstagram.com", "fbcdn.net"),
    "twitter": ("twimg.com", "video.twimg.com", "pbs.twimg.com"),
    "tiktok": ("tiktokcdn.com", "tiktokcdn-us.com", "muscdn.com", "byteoversea.com"),
    "weibo": ("sinaimg.cn", "weibocdn.com"),
    "youtube": ("googlevideo.com", "manifest.googlevideo.com", "ytimg.com", "ggpht.com"),
}

# Platforms whose CDN URLs work without going through the proxy
DIRECT_ACCESS_PLATFORMS: frozenset[str] = frozenset({"instagram", "facebook", "twitter", "tiktok"})


def allowed_proxy_domains() -> frozenset[str]:
    """Flattened CDN allow-list across all platforms."""
    return frozenset(d for domains in PROXY_CDN_DOMAINS.values() for d in domains)


def host_matches(hostname: str, domain: str) -> bool:
    """Exact or dot-suffix match (``a.fbcdn.net`` matches ``fbcdn.net``)."""
    hostname = hostname.rstrip(".").lower()
    return hostname == domain or hostname.endswith("." + domain)


def detect_platform(url: str) -> str | None:
    """Detect platform id from a URL using domain aliases."""
    try:
        hostname = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return None
    if not hostname:
        return None
    hostname = hostname.removeprefix("www.")
    for platform_id, config in PLATFORM_CONFIGS.items():
        if any(host_matches(hostname, alias) for alias in config.aliases):
            return platform_id
    return None


def get_referer(platform: str) -> str:
    config = PLATFORM_CONFIGS.get(platform)
    return f"https://www.{config.domain}/" if config else ""


def get_origin(platform: str) -> str:
    config = PLATFORM_CONFIGS.get(platform)
    return f"https://www.{config.domain}" if config else ""


def get_platform_name(platform: str) -> str:
    config = PLATFORM_CONFIGS.get(platform)
    return config.name if config else platform
