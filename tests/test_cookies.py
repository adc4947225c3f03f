from datetime import datetime, timedelta

import pytest

from conftest import make_cookie
from xtfetch.cookies.parser import extract_user_id, mask_cookie, parse_cookie, validate_cookie
from xtfetch.cookies.selection import (
    COOLDOWN,
    apply_disable,
    apply_failure,
    apply_success,
    apply_usage,
    classify_error,
    select_cookie,
)
from xtfetch.models.cookies import CookieRecord, CookieStatus, CookieTier
from xtfetch.services.cookies_service import CookiePoolService

NOW = datetime(2026, 1, 15, 12, 0, 0)


# ──────────────────────────────────────────────
# Parser
# ──────────────────────────────────────────────

def test_parse_cookie_accepts_browser_export_and_filters_domain():
    export = [
        {"name": "c_user", "value": "42", "domain": ".facebook.com"},
        {"name": "xs", "value": "token", "domain": ".facebook.com"},
        {"name": "tracker", "value": "x", "domain": ".ads.example.com"},
    ]
    assert parse_cookie(export, "facebook") == "c_user=42; xs=token"


def test_parse_cookie_passes_header_strings_through():
    assert parse_cookie("  sessionid=abc; ds_user_id=9 ") == "sessionid=abc; ds_user_id=9"
    assert parse_cookie("") is None
    assert parse_cookie([{"name": "x"}]) is None


def test_validate_cookie_reports_missing_names():
    check = validate_cookie("c_user=42", "facebook")
    assert not check.valid
    assert check.missing == ["xs"]
    assert check.user_id == "42"


def test_extract_user_id_per_platform():
    assert extract_user_id("twid=u%3D1234; auth_token=x", "twitter") == "1234"
    assert extract_user_id("ds_user_id=77; sessionid=s", "instagram") == "77"
    assert extract_user_id("SUB=abc", "tiktok") is None


def test_mask_cookie_hides_value():
    masked = mask_cookie("c_user=100012345; xs=secret")
    assert "secret" not in masked
    assert masked == "***[27 chars]"


# ──────────────────────────────────────────────
# Selection rules
# ──────────────────────────────────────────────

def test_private_request_falls_back_to_public():
    public = make_cookie(tier=CookieTier.PUBLIC)
    assert select_cookie([public], CookieTier.PRIVATE, NOW) is public


def test_public_request_never_uses_private():
    private = make_cookie(tier=CookieTier.PRIVATE)
    assert select_cookie([private], CookieTier.PUBLIC, NOW) is None


def test_private_tier_preferred_when_available():
    public = make_cookie(tier=CookieTier.PUBLIC)
    private = make_cookie(tier=CookieTier.PRIVATE)
    assert select_cookie([public, private], CookieTier.PRIVATE, NOW) is private


def test_least_used_this_hour_wins():
    busy = make_cookie(hour_window_start=NOW - timedelta(minutes=5), uses_this_hour=4)
    idle = make_cookie(hour_window_start=NOW - timedelta(minutes=5), uses_this_hour=1)
    assert select_cookie([busy, idle], CookieTier.PUBLIC, NOW) is idle


def test_hourly_cap_excludes_until_window_rolls_over():
    capped = make_cookie(
        max_uses_per_hour=2,
        uses_this_hour=2,
        hour_window_start=NOW - timedelta(minutes=10),
    )
    assert select_cookie([capped], CookieTier.PUBLIC, NOW) is None
    assert select_cookie([capped], CookieTier.PUBLIC, NOW + timedelta(minutes=51)) is capped


def test_active_cooldown_excluded_and_elapsed_cooldown_promoted():
    cooling = make_cookie(status=CookieStatus.COOLDOWN, cooldown_until=NOW + timedelta(minutes=5))
    assert select_cookie([cooling], CookieTier.PUBLIC, NOW) is None

    later = NOW + timedelta(minutes=6)
    picked = select_cookie([cooling], CookieTier.PUBLIC, later)
    assert picked is cooling
    apply_usage(picked, later)
    assert picked.status == CookieStatus.HEALTHY
    assert picked.cooldown_until is None


def test_expired_and_disabled_never_selected():
    expired = make_cookie(status=CookieStatus.EXPIRED)
    disabled = apply_disable(make_cookie())
    assert select_cookie([expired, disabled], CookieTier.PRIVATE, NOW) is None


def test_apply_usage_resets_hour_window():
    cookie = make_cookie(uses_this_hour=9, hour_window_start=NOW - timedelta(hours=2))
    apply_usage(cookie, NOW)
    assert cookie.uses_this_hour == 1
    assert cookie.hour_window_start == NOW
    assert cookie.use_count == 1
    assert cookie.last_used_at == NOW


@pytest.mark.parametrize(
    "message, kind",
    [
        ("Login required", "expired"),
        ("checkpoint", "expired"),
        ("HTTP 401", "expired"),
        ("Rate limit reached", "rate_limited"),
        ("429 Too Many Requests", "rate_limited"),
        ("socket hang up", "error"),
        (None, "error"),
    ],
)
def test_classify_error(message, kind):
    assert classify_error(message) == kind


def test_failure_transitions():
    expired = apply_failure(make_cookie(), "login required", NOW)
    assert expired.status == CookieStatus.EXPIRED

    limited = apply_failure(make_cookie(), "rate limited", NOW)
    assert limited.status == CookieStatus.COOLDOWN
    assert limited.cooldown_until == NOW + COOLDOWN

    flaky = make_cookie()
    for _ in range(2):
        apply_failure(flaky, "timeout", NOW)
    assert flaky.status == CookieStatus.HEALTHY
    apply_failure(flaky, "timeout", NOW)
    assert flaky.status == CookieStatus.COOLDOWN


def test_disabled_is_terminal():
    cookie = apply_disable(make_cookie())
    apply_failure(cookie, "rate limited", NOW)
    apply_success(cookie, NOW)
    assert cookie.status == CookieStatus.DISABLED
    assert not cookie.enabled


def test_expired_is_terminal_for_late_failures():
    cookie = apply_failure(make_cookie(), "session expired", NOW)
    apply_failure(cookie, "429 too many requests", NOW)
    for _ in range(3):
        apply_failure(cookie, "timeout", NOW)
    assert cookie.status == CookieStatus.EXPIRED
    assert cookie.cooldown_until is None
    assert cookie.error_count == 5
    assert select_cookie([cookie], CookieTier.PRIVATE, NOW + COOLDOWN * 2) is None


def test_success_clears_cooldown_and_decays_errors():
    cookie = make_cookie(status=CookieStatus.COOLDOWN, error_count=3, last_error="x")
    apply_success(cookie, NOW)
    assert cookie.status == CookieStatus.HEALTHY
    assert cookie.error_count == 2
    assert cookie.last_error is None


# ──────────────────────────────────────────────
# Model serialization
# ──────────────────────────────────────────────

def test_public_view_masks_value_but_storage_keeps_it():
    cookie = make_cookie()
    assert cookie.public_view()["cookie_value"] == "***[30 chars]"
    restored = CookieRecord.model_validate_json(cookie.to_storage_json())
    assert restored.cookie_value.get_secret_value() == "c_user=100012345; xs=abc%3Adef"
    assert "abc%3Adef" not in repr(cookie)


# ──────────────────────────────────────────────
# Service (fakeredis)
# ──────────────────────────────────────────────

@pytest.fixture
def pool(redis_client, date_clock):
    return CookiePoolService(redis_client, clock=date_clock)


async def test_add_and_checkout_updates_counters(pool):
    added = await pool.add_cookie("facebook", "c_user=555; xs=t", label="main")
    assert added.user_id == "555"

    checked = await pool.get_best_cookie("facebook")
    assert checked.id == added.id
    assert checked.uses_this_hour == 1

    stored = await pool.get_cookie(added.id)
    assert stored.use_count == 1
    assert stored.cookie_value.get_secret_value() == "c_user=555; xs=t"


async def test_checkout_round_robins(pool):
    first = await pool.add_cookie("instagram", "sessionid=a")
    second = await pool.add_cookie("instagram", "sessionid=b")
    picks = {(await pool.get_best_cookie("instagram")).id for _ in range(2)}
    assert picks == {first.id, second.id}


async def test_private_checkout_falls_back_to_public(pool):
    public = await pool.add_cookie("twitter", "auth_token=x", tier=CookieTier.PUBLIC)
    picked = await pool.get_best_cookie("twitter", CookieTier.PRIVATE)
    assert picked.id == public.id
    assert await pool.get_best_cookie("weibo") is None


async def test_record_outcome_cools_down_and_recovers(pool, date_clock):
    cookie = await pool.add_cookie("facebook", "c_user=1; xs=2")
    failed = await pool.record_outcome(cookie.id, False, "429 Too Many Requests")
    assert failed.status == CookieStatus.COOLDOWN
    assert await pool.get_best_cookie("facebook") is None

    date_clock.advance(minutes=31)
    recovered = await pool.get_best_cookie("facebook")
    assert recovered.id == cookie.id
    assert recovered.status == CookieStatus.HEALTHY


async def test_record_outcome_unknown_cookie(pool):
    assert await pool.record_outcome("missing", True) is None


async def test_update_disable_delete(pool):
    cookie = await pool.add_cookie("facebook", "c_user=1; xs=2")

    updated = await pool.update_cookie(cookie.id, {"label": "renamed", "cookie_value": "c_user=9; xs=3"})
    assert updated.label == "renamed"
    assert updated.user_id == "9"

    disabled = await pool.disable(cookie.id)
    assert disabled.status == CookieStatus.DISABLED
    assert await pool.get_best_cookie("facebook") is None

    assert await pool.delete_cookie(cookie.id)
    assert await pool.get_cookie(cookie.id) is None
    assert not await pool.delete_cookie(cookie.id)


async def test_status_summary(pool):
    await pool.add_cookie("facebook", "c_user=1; xs=2")
    expired = await pool.add_cookie("instagram", "sessionid=a")
    await pool.record_outcome(expired.id, False, "login required")

    summary = await pool.status_summary()
    assert summary["facebook"] == {"available": True, "healthyCount": 1}
    assert summary["instagram"] == {"available": False, "healthyCount": 0}
    assert summary["weibo"] == {"available": False, "healthyCount": 0}

    stats = await pool.pool_stats(["instagram"])
    assert stats["instagram"]["expired"] == 1
    assert stats["instagram"]["total"] == 1
