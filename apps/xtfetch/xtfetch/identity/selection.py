"""Candidate filtering and weighted "avoid last" selection for browser profiles."""

from __future__ import annotations

import random
from typing import Sequence

from xtfetch.models.profile import SCOPE_ALL, BrowserProfile


def filter_candidates(
    profiles: Sequence[BrowserProfile],
    platform: str | None = None,
    chromium_only: bool = False,
) -> list[BrowserProfile]:
    """Enabled profiles for a platform.

    Platform-scoped profiles win over "all"-scoped ones; the "all" scope is
    only used when no scoped profile survives the chromium filter.
    """
    enabled = [p for p in profiles if p.enabled]
    stages = []
    if platform:
        stages.append([p for p in enabled if p.platform_scope == platform])
    stages.append([p for p in enabled if p.platform_scope == SCOPE_ALL])

    for stage in stages:
        if chromium_only:
            stage = [p for p in stage if p.is_chromium]
        if stage:
            return stage
    return []


def select_weighted(
    candidates: Sequence[BrowserProfile],
    exclude_id: str | None = None,
    rng: random.Random | None = None,
) -> BrowserProfile:
    """Pick a profile with probability proportional to priority.

    The profile with ``exclude_id`` is skipped unless nothing else is left.
    When every remaining weight is zero the pick is uniform.
    """
    if not candidates:
        raise ValueError("select_weighted() needs at least one candidate")

    rng = rng or random
    pool = [p for p in candidates if p.id != exclude_id] or list(candidates)
    weights = [p.priority for p in pool]
    if sum(weights) <= 0:
        return rng.choice(pool)
    return rng.choices(pool, weights=weights, k=1)[0]
