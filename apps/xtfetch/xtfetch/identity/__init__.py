"""Browser identity rotation."""

from xtfetch.identity.headers import build_headers, random_delay, random_sleep
from xtfetch.identity.pool import BrowserIdentityPool
from xtfetch.identity.profiles import STATIC_PROFILES
from xtfetch.identity.selection import filter_candidates, select_weighted

__all__ = [
    "BrowserIdentityPool",
    "STATIC_PROFILES",
    "build_headers",
    "filter_candidates",
    "random_delay",
    "random_sleep",
    "select_weighted",
]
