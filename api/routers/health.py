# WORKFLOW: Health check endpoints for monitoring and operational status.
# Used by: Load balancers, monitoring systems, operational dashboards
# Endpoints:
# 1. /healthz - Basic health check (always returns healthy)
# 2. /readyz - Readiness check (database connectivity, upload workers)
# 3. /livez - Liveness check for the container runtime
#
# Health flow: Health check request -> Service status check -> Health response

from fastapi import APIRouter, Request
import logging
from datetime import datetime, timezone

from db.session import check_db_connection
from core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/healthz")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Health status of the API
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": settings.version,
        "environment": settings.environment
    }


@router.get("/readyz")
def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Checks the database connection and, when in-process workers are
    configured, that they are alive.
    """
    checks = {
        "database": check_db_connection(),
    }

    if settings.run_workers:
        worker = getattr(request.app.state, "worker", None)
        checks["workers"] = bool(worker and worker.running)

    is_ready = all(checks.values())

    return {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
        "version": settings.version
    }


@router.get("/livez")
async def liveness_check():
    """
    Liveness check endpoint.
    """
    return {
        "status": "alive",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
