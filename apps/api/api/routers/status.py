"""Public service status endpoints."""

import logging

from fastapi import APIRouter, Depends
from pydantic import ValidationError
from redis.exceptions import RedisError

from api.deps import Services, get_services
from xtfetch.platforms import COOKIE_PLATFORMS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["status"])


@router.get("/status/cookies")
async def cookie_status(services: Services = Depends(get_services)) -> dict:
    """Whether each platform has a usable pooled cookie. Never exposes values."""
    try:
        data = await services.cookies.status_summary(COOKIE_PLATFORMS)
    except (RedisError, ValidationError, OSError) as e:
        logger.warning("Cookie status unavailable: %s", e)
        data = {p: {"available": False, "healthyCount": 0} for p in COOKIE_PLATFORMS}
    return {"success": True, "data": data}
