"""Browser profile admin endpoints.

  profiles:pool:{id} -> BrowserProfile JSON
  profiles:index -> Set of profile IDs

The identity pool caches profiles briefly; every write invalidates that cache.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.deps import Services, get_services, require_admin
from xtfetch.identity.profiles import STATIC_PROFILES
from xtfetch.models.profile import SCOPE_ALL, BrowserProfile
from xtfetch.platforms import SUPPORTED_PLATFORMS

router = APIRouter(tags=["profiles"], dependencies=[Depends(require_admin)])


class ProfileCreate(BaseModel):
    label: str = ""
    platform_scope: str = SCOPE_ALL
    user_agent: str
    sec_ch_ua: str | None = None
    sec_ch_ua_mobile: str = "?0"
    sec_ch_ua_platform: str | None = None
    accept_language: str = "en-US,en;q=0.9"
    is_chromium: bool = False
    priority: int = Field(default=5, ge=0)
    enabled: bool = True


class ProfileUpdate(BaseModel):
    label: str | None = None
    platform_scope: str | None = None
    user_agent: str | None = None
    sec_ch_ua: str | None = None
    sec_ch_ua_mobile: str | None = None
    sec_ch_ua_platform: str | None = None
    accept_language: str | None = None
    is_chromium: bool | None = None
    priority: int | None = Field(default=None, ge=0)
    enabled: bool | None = None


def _check_scope(scope: str | None) -> None:
    if scope is not None and scope != SCOPE_ALL and scope not in SUPPORTED_PLATFORMS:
        raise HTTPException(status_code=400, detail=f"Unknown platform scope: {scope}")


@router.get("/admin/profiles")
async def list_profiles(services: Services = Depends(get_services)) -> dict:
    """Stored profiles plus the built-in fallback set."""
    stored = await services.profiles.list_profiles()
    return {
        "profiles": [p.model_dump(mode="json") for p in stored],
        "static": [p.model_dump(mode="json") for p in STATIC_PROFILES],
        "lastSelected": services.identity.last_profile_id,
    }


@router.post("/admin/profiles")
async def create_profile(body: ProfileCreate, services: Services = Depends(get_services)) -> dict:
    _check_scope(body.platform_scope)
    profile = await services.profiles.save(BrowserProfile(**body.model_dump()))
    services.identity.invalidate()
    return profile.model_dump(mode="json")


@router.patch("/admin/profiles/{profile_id}")
async def update_profile(profile_id: str, body: ProfileUpdate, services: Services = Depends(get_services)) -> dict:
    profile = await services.profiles.get(profile_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    _check_scope(body.platform_scope)
    updated = profile.model_copy(update=body.model_dump(exclude_none=True))
    updated = BrowserProfile.model_validate(updated.model_dump())
    await services.profiles.save(updated)
    services.identity.invalidate()
    return updated.model_dump(mode="json")


@router.delete("/admin/profiles/{profile_id}")
async def delete_profile(profile_id: str, services: Services = Depends(get_services)) -> dict:
    if not await services.profiles.delete(profile_id):
        raise HTTPException(status_code=404, detail="Profile not found")
    services.identity.invalidate()
    return {"deleted": profile_id}
