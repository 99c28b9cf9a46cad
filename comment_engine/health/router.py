"""Health check endpoints."""

from fastapi import APIRouter, Request

from comment_engine.config import get_settings
from comment_engine.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, str | bool]:
    """Readiness probe - checks if the comment services are wired."""
    settings = get_settings()
    return {
        "status": "ready",
        "environment": settings.environment,
        "debug": settings.debug,
        "storage_backend": settings.storage_backend,
        "redis": get_redis() is not None,
        "services": getattr(request.app.state, "comment_service", None) is not None,
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
