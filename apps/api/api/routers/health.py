"""Health check endpoints."""

from fastapi import APIRouter, Depends
from redis.exceptions import RedisError

from api.deps import Services, get_services

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(services: Services = Depends(get_services)) -> dict:
    """Liveness plus Redis and backend reachability."""
    try:
        redis_ok = bool(await services.redis.ping())
    except (RedisError, OSError):
        redis_ok = False
    return {
        "status": "ok",
        "redis": redis_ok,
        "backend": services.client.backend_status(),
        "scrapers": services.registry.platforms(),
    }
