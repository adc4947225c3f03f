"""Cookie parsing for all platforms.

Accepts the formats admins paste in:
- "name=value; name2=value2" strings
- JSON array exported by browser extensions: [{"name": ..., "value": ..., "domain": ...}]
- a single {"name": ..., "value": ...} object

Everything is normalized to the header string format.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

# Domain fragments used to filter browser exports by platform
DOMAIN_PATTERNS: dict[str, tuple[str, ...]] = {
    "facebook": ("facebook.com", "fb.com"),
    "instagram": ("instagram.com",),
    "weibo": ("weibo.com", "weibo.cn"),
    "twitter": ("twitter.com", "x.com"),
}

# Cookie names a session needs to be usable
REQUIRED_COOKIES: dict[str, tuple[str, ...]] = {
    "facebook": ("c_user", "xs"),
    "instagram": ("sessionid",),
    "weibo": ("SUB",),
    "twitter": ("auth_token",),
}

_USER_ID_NAMES: dict[str, str] = {
    "facebook": "c_user",
    "instagram": "ds_user_id",
    "twitter": "twid",
    "weibo": "SUB",
}

_USER_ID_PATTERNS: dict[str, re.Pattern[str]] = {
    "facebook": re.compile(r"c_user=(\d+)"),
    "instagram": re.compile(r"ds_user_id=(\d+)"),
    "twitter": re.compile(r"twid=u%3D(\d+)"),
    "weibo": re.compile(r"SUB=([^;]+)"),
}


@dataclass
class CookieValidation:
    valid: bool
    missing: list[str] = field(default_factory=list)
    user_id: str | None = None
    pair_count: int = 0


def _domain_matches(domain: str, platform: str) -> bool:
    domain = domain.lower().lstrip(".")
    return any(domain == p or domain.endswith("." + p) for p in DOMAIN_PATTERNS[platform])


def _extract_pairs(items: list[Any], platform: str | None) -> list[tuple[str, str]]:
    pairs = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name, value = item.get("name"), item.get("value")
        if not name or not value:
            continue
        domain = item.get("domain")
        if platform in DOMAIN_PATTERNS and domain and not _domain_matches(domain, platform):
            continue
        pairs.append((str(name), str(value)))
    return pairs


def parse_cookie(raw: Any, platform: str | None = None) -> str | None:
    """Parse cookie input in any supported format to "name=value; ..." form.

    Returns None when the input holds no usable pairs.
    """
    if not raw:
        return None

    pairs: list[tuple[str, str]] = []
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if not text.startswith("["):
            return text
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(parsed, list):
            pairs = _extract_pairs(parsed, platform)
    elif isinstance(raw, list):
        pairs = _extract_pairs(raw, platform)
    elif isinstance(raw, dict):
        pairs = _extract_pairs([raw], None)

    if not pairs:
        return None
    return "; ".join(f"{name}={value}" for name, value in pairs)


def cookie_names(cookie: str) -> dict[str, str]:
    """Split a cookie header string into a name -> value dict."""
    result = {}
    for part in cookie.split(";"):
        name, sep, value = part.strip().partition("=")
        if sep and name:
            result[name] = value
    return result


def extract_user_id(cookie: str, platform: str) -> str | None:
    """Extract the account id embedded in a session cookie."""
    text = cookie.strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            key = _USER_ID_NAMES.get(platform)
            for item in parsed:
                if isinstance(item, dict) and item.get("name") == key:
                    return item.get("value") or None
            return None

    pattern = _USER_ID_PATTERNS.get(platform)
    if pattern is None:
        return None
    match = pattern.search(text)
    return match.group(1) if match else None


def validate_cookie(cookie: str, platform: str) -> CookieValidation:
    """Check that a parsed cookie string carries the platform's session cookies."""
    names = cookie_names(cookie)
    missing = [n for n in REQUIRED_COOKIES.get(platform, ()) if n not in names]
    return CookieValidation(
        valid=not missing,
        missing=missing,
        user_id=extract_user_id(cookie, platform),
        pair_count=len(names),
    )


def mask_cookie(cookie: str | None) -> str:
    """Mask a cookie value for logs and API output. Only the length survives."""
    if not cookie:
        return ""
    return f"***[{len(cookie)} chars]"
