"""Health check endpoints."""

from fastapi import APIRouter, Request

from src.config import get_settings
from src.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check - reports if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness check - reports which backing services are wired.

    Playback sessions need the progress store; Redis only adds the
    cross-worker notification relay and the unlock flags.
    """
    settings = get_settings()
    progress_ready = getattr(request.app.state, "progress_store", None) is not None
    return {
        "status": "ready" if progress_ready else "degraded",
        "environment": settings.environment,
        "progress_store": progress_ready,
        "redis": get_redis() is not None,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
