"""URL pipeline: normalize, detect, extract content ids, and screen input.

Input URL -> validate -> normalize -> detect platform -> content id.
Short-link resolution is left to the scrapers; ``needs_resolve`` only says
whether it is needed.
"""

from __future__ import annotations

import re
from typing import Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from xtfetch.platforms import PLATFORM_CONFIGS, PROXY_CDN_DOMAINS, detect_platform, host_matches

MAX_URL_LENGTH = 2000

TRACKING_PARAMS = frozenset({
    "fbclid", "igshid", "utm_source", "utm_medium", "utm_campaign", "utm_term",
    "utm_content", "s", "t", "ref", "ref_src", "ref_url", "__cft__", "__tn__",
    "wtsid", "_rdr", "rdid", "share_url", "app",
})

_MOBILE_HOSTS = (
    (re.compile(r"^(https?://)(?:m|mbasic|web)\.(facebook\.com)", re.I), r"\1www.\2"),
    (re.compile(r"^(https?://)mobile\.(twitter\.com|x\.com)", re.I), r"\1\2"),
)

SHORT_URL_PATTERNS: dict[str, re.Pattern[str]] = {
    "facebook": re.compile(r"fb\.watch|fb\.me|l\.facebook\.com|/share/", re.I),
    "instagram": re.compile(r"instagr\.am|ig\.me", re.I),
    "twitter": re.compile(r"t\.co/", re.I),
    "tiktok": re.compile(r"vm\.tiktok\.com|vt\.tiktok\.com", re.I),
    "weibo": re.compile(r"t\.cn/", re.I),
}

CONTENT_ID_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "twitter": (re.compile(r"status(?:es)?/(\d+)"),),
    "instagram": (re.compile(r"(?:/p/|/reels?/|/tv/)([A-Za-z0-9_-]+)"),),
    "facebook": (
        re.compile(r"/videos/(\d+)"),
        re.compile(r"/reel/(\d+)"),
        re.compile(r"/watch/?\?v=(\d+)"),
        re.compile(r"/v/(\d+)"),
        re.compile(r"/share/[vr]/(\d+)"),
        re.compile(r"story_fbid=(\d+)"),
        re.compile(r"/posts/([a-zA-Z0-9]+)"),
    ),
    "tiktok": (re.compile(r"/video/(\d+)"),),
    "weibo": (
        re.compile(r"/status/([A-Za-z0-9]+)"),
        re.compile(r"/detail/([A-Za-z0-9]+)"),
        re.compile(r"weibo\.com/\d+/([A-Za-z0-9]+)"),
    ),
    "youtube": (
        re.compile(r"[?&]v=([A-Za-z0-9_-]{11})"),
        re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})"),
        re.compile(r"/(?:shorts|embed|live)/([A-Za-z0-9_-]{11})"),
    ),
}

# Content that is only visible to logged-in sessions
COOKIE_REQUIRED_PATTERNS: dict[str, re.Pattern[str]] = {
    "instagram": re.compile(r"/stories/", re.I),
    "facebook": re.compile(r"/stories/|/groups/", re.I),
    "weibo": re.compile(r"."),
}

_BLOCKED_URL_PATTERNS = (
    re.compile(r"^https?://(10\.|172\.(1[6-9]|2\d|3[01])\.|192\.168\.|127\.|0\.)"),
    re.compile(r"localhost", re.I),
    re.compile(r"\.local(?:[:/]|$)", re.I),
)

ATTACK_PATTERNS = (
    re.compile(r"union\s+select", re.I),
    re.compile(r";\s*drop\s+table", re.I),
    re.compile(r"--\s*$"),
    re.compile(r"<script[\s>]", re.I),
    re.compile(r"javascript:", re.I),
    re.compile(r"on(error|load|click)\s*=", re.I),
    re.compile(r"\$\{.*\}"),
    re.compile(r"\{\{.*\}\}"),
)


def _social_domains() -> frozenset[str]:
    domains = {alias for config in PLATFORM_CONFIGS.values() for alias in config.aliases}
    domains.update(d for cdn in PROXY_CDN_DOMAINS.values() for d in cdn)
    return frozenset(domains)


SOCIAL_DOMAINS = _social_domains()


# ──────────────────────────────────────────────
# Normalization
# ──────────────────────────────────────────────

def clean_tracking_params(url: str) -> str:
    """Drop share/tracking query parameters (fbclid, utm_*, __cft__[...], ...)."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.query:
        return url
    kept = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if k not in TRACKING_PARAMS and not k.startswith("__cft__") and not k.startswith("utm_")
    ]
    return urlunsplit(parts._replace(query=urlencode(kept)))


def normalize_url(url: str) -> str:
    """Add a scheme, map mobile hosts to desktop, strip tracking params."""
    normalized = url.strip()
    if not re.match(r"^https?://", normalized, re.I):
        normalized = "https://" + normalized
    for pattern, replacement in _MOBILE_HOSTS:
        normalized = pattern.sub(replacement, normalized)
    return clean_tracking_params(normalized)


def normalize_for_cache(url: str) -> str:
    """Host + path of the normalized URL, lowercased, without query or trailing slash."""
    text = url.strip()
    try:
        parts = urlsplit(normalize_url(text))
    except ValueError:
        return text.lower()
    if not parts.hostname:
        return text.lower()
    return (parts.hostname + parts.path).lower().rstrip("/")


# ──────────────────────────────────────────────
# Assessment
# ──────────────────────────────────────────────

def extract_content_id(platform: str, url: str) -> str | None:
    for pattern in CONTENT_ID_PATTERNS.get(platform, ()):
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def needs_resolve(url: str, platform: str | None = None) -> bool:
    """Whether the URL is a short link that must be followed first."""
    if platform and platform in SHORT_URL_PATTERNS:
        return bool(SHORT_URL_PATTERNS[platform].search(url))
    return any(p.search(url) for p in SHORT_URL_PATTERNS.values())


def may_require_cookie(platform: str, url: str) -> bool:
    pattern = COOKIE_REQUIRED_PATTERNS.get(platform)
    return bool(pattern and pattern.search(url))


def is_valid_social_url(url: str | None) -> tuple[bool, str | None]:
    """Screen user input before any platform work. Returns (valid, error)."""
    if not url or not isinstance(url, str):
        return False, "URL is required"
    if len(url) > MAX_URL_LENGTH:
        return False, "URL too long"
    if not re.match(r"^https?://", url, re.I):
        return False, "Invalid URL protocol"
    if any(p.search(url) for p in _BLOCKED_URL_PATTERNS):
        return False, "Invalid URL"
    try:
        hostname = (urlsplit(url).hostname or "").lower()
    except ValueError:
        return False, "Invalid URL format"
    if not hostname:
        return False, "Invalid URL format"
    if not any(host_matches(hostname, domain) for domain in SOCIAL_DOMAINS):
        return False, "Unsupported platform"
    return True, None


def detect_attack_patterns(value: str | None) -> bool:
    """SQL/script/template injection markers in user input."""
    if not value:
        return False
    return any(p.search(value) for p in ATTACK_PATTERNS)


def get_client_ip(headers: Mapping[str, str], fallback: str = "unknown") -> str:
    """First X-Forwarded-For hop, then X-Real-IP."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return fallback


__all__ = [
    "clean_tracking_params",
    "detect_attack_patterns",
    "detect_platform",
    "extract_content_id",
    "get_client_ip",
    "is_valid_social_url",
    "may_require_cookie",
    "needs_resolve",
    "normalize_for_cache",
    "normalize_url",
]
