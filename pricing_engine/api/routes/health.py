"""Health check endpoints."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Request, Response

from pricing_engine import __version__

router = APIRouter()
logger = structlog.get_logger()

# Track startup time
_startup_time = datetime.now(timezone.utc)


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if the service is running.
    """
    now = datetime.now(timezone.utc)
    return {
        "status": "healthy",
        "service": "pricing-engine",
        "version": __version__,
        "timestamp": now.isoformat(),
        "uptime_seconds": (now - _startup_time).total_seconds(),
    }


@router.get("/ready")
async def readiness_check(request: Request, response: Response):
    """
    Readiness check endpoint.
    Verifies Redis is reachable and the record store client is configured.
    """
    checks = {
        "redis": False,
        "record_store": getattr(request.app.state, "quote_service", None) is not None,
    }

    redis = getattr(request.app.state, "redis", None)
    if redis is not None:
        try:
            await redis.ping()
            checks["redis"] = True
        except Exception as e:
            logger.warning("Redis health check failed", error=str(e))

    all_healthy = all(checks.values())
    if not all_healthy:
        response.status_code = 503

    return {"status": "ready" if all_healthy else "not_ready", "checks": checks}
