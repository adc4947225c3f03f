"""FastAPI application."""

import logging
from contextlib import asynccontextmanager

import aiohttp
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.deps import close_deps, init_deps
from api.routers import cookies, health, playground, profiles, proxy, status
from xtfetch.config.settings import get_settings
from xtfetch.http.errors import (
    ApiError,
    OfflineError,
    PlatformBusy,
    RateLimitExceeded,
    RequestTimeoutError,
    SSRFRejected,
)

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_deps(getattr(app.state, "services", None))
    yield
    await close_deps()


app = FastAPI(
    title="XTFetch API",
    description="Media extraction relay: identity rotation, cookie pool, media proxy",
    version="0.1.0",
    lifespan=lifespan,
)


# ──────────────────────────────────────────────
# Error mapping
# ──────────────────────────────────────────────

@app.exception_handler(SSRFRejected)
async def ssrf_rejected_handler(request: Request, exc: SSRFRejected) -> JSONResponse:
    return JSONResponse({"error": "URL not allowed", "reason": exc.reason}, status_code=403)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    rate_limit = {"remaining": 0, "resetIn": exc.reset_in}
    if exc.limit is not None:
        rate_limit["limit"] = exc.limit
    return JSONResponse(
        {"success": False, "error": str(exc), "rateLimit": rate_limit},
        status_code=429,
        headers={"Retry-After": str(exc.reset_in)},
    )


@app.exception_handler(RequestTimeoutError)
async def timeout_handler(request: Request, exc: RequestTimeoutError) -> JSONResponse:
    return JSONResponse({"success": False, "error": str(exc)}, status_code=504)


@app.exception_handler(OfflineError)
async def offline_handler(request: Request, exc: OfflineError) -> JSONResponse:
    return JSONResponse({"success": False, "error": str(exc)}, status_code=503)


@app.exception_handler(PlatformBusy)
async def platform_busy_handler(request: Request, exc: PlatformBusy) -> JSONResponse:
    return JSONResponse({"success": False, "error": str(exc)}, status_code=503)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse({"success": False, "error": str(exc)}, status_code=exc.status)


@app.exception_handler(aiohttp.ClientError)
async def upstream_error_handler(request: Request, exc: aiohttp.ClientError) -> JSONResponse:
    logger.warning("Upstream request failed on %s: %s", request.url.path, exc)
    return JSONResponse({"success": False, "error": "Upstream request failed"}, status_code=502)


app.include_router(health.router)
app.include_router(health.router, prefix="/api")
app.include_router(proxy.router, prefix="/api")
app.include_router(playground.router, prefix="/api")
app.include_router(status.router, prefix="/api")
app.include_router(cookies.router, prefix="/api")
app.include_router(profiles.router, prefix="/api")
