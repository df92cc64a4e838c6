"""Health Checks — liveness, and readiness of the database and change feed.

Invariants:
    - GET /health/ answers 200 whenever the process serves requests
    - GET /health/ready answers 503 until the database responds and the lifespan
      has installed the change feed

Design Decisions:
    - db_manager read through the module at call time: it is assigned in the lifespan,
      after this module is imported
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

import app.infrastructure.database as database

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])

SERVICE_NAME = "slotswap-api"
SERVICE_VERSION = "1.0.0"


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """Database round trip plus change feed presence."""
    manager = database.db_manager
    database_ok = bool(manager) and await manager.health_check()
    feed = getattr(request.app.state, "change_feed", None)
    checks = {
        "database": "healthy" if database_ok else "unavailable",
        "change_feed": "healthy" if feed is not None else "unavailable",
    }
    if not database_ok or feed is None:
        logger.warning("Readiness check failed", extra={"path": request.url.path})
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "checks": checks},
        )
    return {
        "status": "ready",
        "checks": checks,
        "subscribers": feed.subscriber_count,
    }
