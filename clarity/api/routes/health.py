"""
Health check endpoints.

Provides system health information for monitoring.
"""

from fastapi import APIRouter, HTTPException
import structlog

from clarity import __version__
from clarity.api.dependencies import ContentRepoDep, RetryPolicyDep
from clarity.core.config import settings

log = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(content: ContentRepoDep, policy: RetryPolicyDep):
    """
    Health check endpoint.

    Returns:
        Overall status plus content and error-log components. Fallback mode
        counts as degraded, not unhealthy: journeys still run on generic
        content.
    """
    error_stats = policy.error_stats()

    if not policy.is_healthy():
        overall_status = "unhealthy"
    elif content.fallback_mode:
        overall_status = "degraded"
    else:
        overall_status = "healthy"

    return {
        "status": overall_status,
        "version": __version__,
        "debug": settings.debug,
        "components": {
            "content": {
                "loaded": content.is_loaded,
                "fallback_mode": content.fallback_mode,
            },
            "errors": error_stats,
        },
    }


@router.get("/health/live")
async def liveness():
    """Returns 200 if the application is running."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness(content: ContentRepoDep):
    """Returns 200 once the content index (real or fallback) is loaded."""
    if not content.is_loaded:
        raise HTTPException(status_code=503, detail="Content index not loaded")
    return {"status": "ready", "fallback_mode": content.fallback_mode}
