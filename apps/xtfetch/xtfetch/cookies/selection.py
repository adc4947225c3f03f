"""Cookie pool selection rules and status transitions.

Pure functions over CookieRecord lists, no storage access. CookiePoolService
loads records from Redis and delegates every decision here.

Selection runs SELECTION_RULES in order (short-circuit), then ranks the
survivors by fewest uses this hour and least recent use. A private-tier
request falls back to the public tier before giving up.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Callable, Iterable

from xtfetch.models.cookies import CookieRecord, CookieStatus, CookieTier

HOUR = timedelta(hours=1)
ERROR_THRESHOLD = 3
COOLDOWN = timedelta(minutes=30)

CookieRule = Callable[[CookieRecord, datetime], bool]

TIER_FALLBACK: dict[CookieTier, tuple[CookieTier, ...]] = {
    CookieTier.PRIVATE: (CookieTier.PRIVATE, CookieTier.PUBLIC),
    CookieTier.PUBLIC: (CookieTier.PUBLIC,),
}

_AUTH_REJECTED = re.compile(
    r"login|checkpoint|verification|session expired|unauthori[sz]ed|\b401\b|\b403\b",
    re.IGNORECASE,
)
_RATE_LIMITED = re.compile(r"rate.?limit|too many requests|\b429\b", re.IGNORECASE)


# ──────────────────────────────────────────────
# Rules
# ──────────────────────────────────────────────

def is_enabled(cookie: CookieRecord, now: datetime) -> bool:
    return cookie.enabled


def is_not_disabled(cookie: CookieRecord, now: datetime) -> bool:
    return cookie.status != CookieStatus.DISABLED


def is_healthy_or_cooled_down(cookie: CookieRecord, now: datetime) -> bool:
    """Healthy, or in a cooldown that has already elapsed."""
    if cookie.cooldown_until and cookie.cooldown_until > now:
        return False
    if cookie.status == CookieStatus.HEALTHY:
        return True
    return cookie.status == CookieStatus.COOLDOWN and cookie.cooldown_until is not None


def is_under_hourly_cap(cookie: CookieRecord, now: datetime) -> bool:
    return uses_in_current_hour(cookie, now) < cookie.max_uses_per_hour


SELECTION_RULES: tuple[CookieRule, ...] = (
    is_enabled,
    is_not_disabled,
    is_healthy_or_cooled_down,
    is_under_hourly_cap,
)


def uses_in_current_hour(cookie: CookieRecord, now: datetime) -> int:
    if cookie.hour_window_start is None or now - cookie.hour_window_start >= HOUR:
        return 0
    return cookie.uses_this_hour


def is_selectable(
    cookie: CookieRecord,
    now: datetime,
    rules: tuple[CookieRule, ...] = SELECTION_RULES,
) -> bool:
    return all(rule(cookie, now) for rule in rules)


# ──────────────────────────────────────────────
# Selection
# ──────────────────────────────────────────────

def pick_best(cookies: Iterable[CookieRecord], now: datetime) -> CookieRecord | None:
    """Least used (this hour), then least recently used, selectable cookie."""
    candidates = [c for c in cookies if is_selectable(c, now)]
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda c: (uses_in_current_hour(c, now), c.last_used_at or datetime.min),
    )


def select_cookie(
    cookies: Iterable[CookieRecord],
    tier: CookieTier,
    now: datetime,
) -> CookieRecord | None:
    """Best cookie for the tier, falling back along TIER_FALLBACK."""
    pool = list(cookies)
    for candidate_tier in TIER_FALLBACK[tier]:
        best = pick_best((c for c in pool if c.tier == candidate_tier), now)
        if best is not None:
            return best
    return None


# ──────────────────────────────────────────────
# Transitions
# ──────────────────────────────────────────────

def apply_usage(cookie: CookieRecord, now: datetime) -> CookieRecord:
    """Record a checkout: bump counters and lift an elapsed cooldown."""
    if cookie.hour_window_start is None or now - cookie.hour_window_start >= HOUR:
        cookie.hour_window_start = now
        cookie.uses_this_hour = 0
    cookie.uses_this_hour += 1
    cookie.use_count += 1
    cookie.last_used_at = now
    if cookie.status == CookieStatus.COOLDOWN:
        cookie.status = CookieStatus.HEALTHY
        cookie.cooldown_until = None
    return cookie


def classify_error(error: str | None) -> str:
    """Map a scraper error message to "expired", "rate_limited" or "error"."""
    if not error:
        return "error"
    if _AUTH_REJECTED.search(error):
        return "expired"
    if _RATE_LIMITED.search(error):
        return "rate_limited"
    return "error"


def apply_success(cookie: CookieRecord, now: datetime) -> CookieRecord:
    cookie.success_count += 1
    cookie.error_count = max(0, cookie.error_count - 1)
    cookie.last_error = None
    if cookie.status == CookieStatus.COOLDOWN:
        cookie.status = CookieStatus.HEALTHY
        cookie.cooldown_until = None
    return cookie


def apply_failure(cookie: CookieRecord, error: str | None, now: datetime) -> CookieRecord:
    """Demote a cookie after a failed use. Disabled and expired are terminal."""
    cookie.error_count += 1
    cookie.last_error = (error or "Request failed")[:200]
    if cookie.status in (CookieStatus.DISABLED, CookieStatus.EXPIRED):
        return cookie

    kind = classify_error(error)
    if kind == "expired":
        cookie.status = CookieStatus.EXPIRED
        cookie.cooldown_until = None
    elif kind == "rate_limited" or cookie.error_count >= ERROR_THRESHOLD:
        cookie.status = CookieStatus.COOLDOWN
        cookie.cooldown_until = now + COOLDOWN
    return cookie


def apply_disable(cookie: CookieRecord) -> CookieRecord:
    cookie.status = CookieStatus.DISABLED
    cookie.enabled = False
    cookie.cooldown_until = None
    return cookie
