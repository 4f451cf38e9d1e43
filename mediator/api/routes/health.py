"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter, HTTPException
import structlog

from mediator.core.config import mediator_config, settings
from mediator.persistence.database import check_database_health

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        System health status including database connectivity.
    """
    db_health = await check_database_health()

    overall_status = "healthy" if db_health["status"] == "healthy" else "unhealthy"

    return {
        "status": overall_status,
        "version": "0.1.0",
        "debug": settings.debug,
        "stage_detection": mediator_config.stages.detection,
        "safety_fail_open": mediator_config.safety.fail_open,
        "components": {"database": db_health},
    }


@router.get("/health/live")
async def liveness():
    """Liveness probe. Returns 200 if the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness():
    """Readiness probe. Returns 503 until the database answers."""
    db_health = await check_database_health()

    if db_health["status"] != "healthy":
        raise HTTPException(status_code=503, detail="Database not ready")

    return {"status": "ready"}
