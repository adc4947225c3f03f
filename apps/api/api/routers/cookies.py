"""Cookie pool admin endpoints.

CRUD over the pool kept by CookiePoolService:
  cookies:pool:{id} -> CookieRecord JSON (raw value only inside Redis)
  cookies:index:{platform} -> Set of cookie IDs for that platform

Responses always carry the masked cookie value.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.deps import Services, get_services, require_admin
from xtfetch.cookies.parser import parse_cookie, validate_cookie
from xtfetch.models.cookies import CookieRecord, CookieStatus, CookieTier
from xtfetch.platforms import COOKIE_PLATFORMS

router = APIRouter(tags=["cookies"], dependencies=[Depends(require_admin)])


class CookieCreate(BaseModel):
    """Request body for adding a cookie. ``cookie`` may be a header string or a browser export."""

    platform: str
    cookie: str | list[dict[str, Any]] | dict[str, Any]
    tier: CookieTier = CookieTier.PUBLIC
    label: str | None = None
    max_uses_per_hour: int = Field(default=60, ge=1)


class CookieUpdate(BaseModel):
    cookie: str | list[dict[str, Any]] | dict[str, Any] | None = None
    tier: CookieTier | None = None
    label: str | None = None
    status: CookieStatus | None = None
    enabled: bool | None = None
    max_uses_per_hour: int | None = Field(default=None, ge=1)


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def _parse_or_400(raw: Any, platform: str) -> str:
    cookie = parse_cookie(raw, platform)
    if not cookie:
        raise HTTPException(status_code=400, detail="No cookie pairs found")
    check = validate_cookie(cookie, platform)
    if not check.valid:
        raise HTTPException(
            status_code=400,
            detail=f"Missing required cookies for {platform}: {', '.join(check.missing)}",
        )
    return cookie


async def _get_cookie(services: Services, cookie_id: str) -> CookieRecord:
    cookie = await services.cookies.get_cookie(cookie_id)
    if cookie is None:
        raise HTTPException(status_code=404, detail="Cookie not found")
    return cookie


# ──────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────

@router.get("/admin/cookies")
async def list_cookies(platform: str | None = None, services: Services = Depends(get_services)) -> list[dict]:
    """List pooled cookies, optionally filtered by platform."""
    return [c.public_view() for c in await services.cookies.list_cookies(platform)]


@router.get("/admin/cookies/stats")
async def cookie_stats(services: Services = Depends(get_services)) -> dict:
    return await services.cookies.pool_stats()


@router.post("/admin/cookies")
async def create_cookie(body: CookieCreate, services: Services = Depends(get_services)) -> dict:
    """Add a cookie to the pool."""
    if body.platform not in COOKIE_PLATFORMS:
        raise HTTPException(status_code=400, detail=f"{body.platform} does not use a cookie pool")
    value = _parse_or_400(body.cookie, body.platform)
    cookie = await services.cookies.add_cookie(
        body.platform, value, tier=body.tier, label=body.label,
        max_uses_per_hour=body.max_uses_per_hour,
    )
    return cookie.public_view()


@router.get("/admin/cookies/{cookie_id}")
async def get_cookie(cookie_id: str, services: Services = Depends(get_services)) -> dict:
    return (await _get_cookie(services, cookie_id)).public_view()


@router.patch("/admin/cookies/{cookie_id}")
async def update_cookie(cookie_id: str, body: CookieUpdate, services: Services = Depends(get_services)) -> dict:
    """Update label, tier, status, limits or the cookie value itself."""
    existing = await _get_cookie(services, cookie_id)
    changes = body.model_dump(exclude_none=True, exclude={"cookie"})
    if body.cookie is not None:
        changes["cookie_value"] = _parse_or_400(body.cookie, existing.platform)
    updated = await services.cookies.update_cookie(cookie_id, changes)
    if updated is None:
        raise HTTPException(status_code=404, detail="Cookie not found")
    return updated.public_view()


@router.post("/admin/cookies/{cookie_id}/disable")
async def disable_cookie(cookie_id: str, services: Services = Depends(get_services)) -> dict:
    cookie = await services.cookies.disable(cookie_id)
    if cookie is None:
        raise HTTPException(status_code=404, detail="Cookie not found")
    return cookie.public_view()


@router.delete("/admin/cookies/{cookie_id}")
async def delete_cookie(cookie_id: str, services: Services = Depends(get_services)) -> dict:
    """Remove a cookie from the pool."""
    if not await services.cookies.delete_cookie(cookie_id):
        raise HTTPException(status_code=404, detail="Cookie not found")
    return {"deleted": cookie_id}
