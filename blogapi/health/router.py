"""Health check endpoints."""

import redis.asyncio as redis
from fastapi import APIRouter, Request, Response, status

from blogapi.config import Settings, get_settings
from blogapi.core.database import check_database


router = APIRouter(prefix="/health", tags=["health"])


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request, response: Response) -> dict[str, object]:
    """Readiness probe - checks the database and, when configured, Redis.

    The database is required (503 when unreachable); Redis is optional and
    only reported.
    """
    settings = _settings(request)
    state = request.app.state

    engine = getattr(state, "engine", None)
    database_ok = engine is not None and await check_database(engine)

    redis_client = getattr(state, "redis", None)
    if redis_client is None:
        cache_status = "disabled"
    else:
        try:
            await redis_client.ping()
            cache_status = "ok"
        except redis.RedisError:
            cache_status = "error"

    if not database_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "ready" if database_ok else "unavailable",
        "environment": settings.environment,
        "checks": {
            "database": "ok" if database_ok else "error",
            "cache": cache_status,
        },
    }


@router.get("")
async def health(request: Request) -> dict[str, str]:
    """General health check endpoint."""
    settings = _settings(request)
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
