"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter, HTTPException
import structlog

from journal.core.config import settings
from journal.persistence.cache import check_cache_health
from journal.persistence.database import check_database_health

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        System health status including transcript database and state cache.
    """
    db_health = await check_database_health()
    cache_health = await check_cache_health()

    components = {"database": db_health, "cache": cache_health}
    overall_status = (
        "healthy"
        if all(c["status"] == "healthy" for c in components.values())
        else "unhealthy"
    )

    return {
        "status": overall_status,
        "version": "0.1.0",
        "debug": settings.debug,
        "components": components,
    }


@router.get("/health/live")
async def liveness():
    """
    Kubernetes-style liveness probe.

    Returns 200 if the application is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness():
    """
    Kubernetes-style readiness probe.

    Returns 200 once the state cache answers; the transcript database is
    best-effort and does not gate readiness.
    """
    cache_health = await check_cache_health()

    if cache_health["status"] != "healthy":
        raise HTTPException(status_code=503, detail="Conversation state cache not ready")

    return {"status": "ready"}
