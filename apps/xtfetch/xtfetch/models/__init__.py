"""Data models for xtfetch."""

from xtfetch.models.cookies import CookieRecord, CookieStatus, CookieTier
from xtfetch.models.media import CacheEntry, MediaFormat, MediaType
from xtfetch.models.profile import SCOPE_ALL, BrowserProfile

__all__ = [
    "BrowserProfile",
    "CacheEntry",
    "CookieRecord",
    "CookieStatus",
    "CookieTier",
    "MediaFormat",
    "MediaType",
    "SCOPE_ALL",
]
