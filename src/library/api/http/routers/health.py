"""Health check endpoints router for monitoring service availability."""

import time
from typing import Any

from fastapi import APIRouter, Depends
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse

from src.library.api.http.deps import (
    get_database_service,
    get_event_publisher,
    get_redis_service,
)
from src.library.core.services import DbSessionService, EventPublisher, RedisService
from src.library.entities._base import utcnow
from src.library.runtime.context import get_config

router = APIRouter(prefix="/health", tags=["health"])

_started_at = time.monotonic()


@router.get("")
async def health(
    database: DbSessionService = Depends(get_database_service),
) -> dict[str, Any]:
    """Liveness check with process uptime and database connectivity.

    Always answers 200 while the process is running; a lost database only
    shows up as ``"database": "disconnected"``.
    """
    db_healthy = await run_in_threadpool(database.health_check)
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "uptime": round(time.monotonic() - _started_at, 3),
        "database": "connected" if db_healthy else "disconnected",
    }


@router.get("/ready", response_model=None)
async def readiness(
    database: DbSessionService = Depends(get_database_service),
    redis_service: RedisService = Depends(get_redis_service),
    publisher: EventPublisher = Depends(get_event_publisher),
) -> dict[str, Any] | JSONResponse:
    """Readiness check across service dependencies.

    Returns 200 if the database is reachable, 503 otherwise. Cache and
    event publishing are reported but never block readiness.
    """
    config = get_config()

    checks = {}
    all_healthy = True

    # Database health check
    try:
        db_healthy = await run_in_threadpool(database.health_check)
        checks["database"] = {
            "status": "healthy" if db_healthy else "unhealthy",
            "type": database.backend,
        }
        if not db_healthy:
            all_healthy = False
    except Exception as e:
        checks["database"] = {
            "status": "unhealthy",
            "error": str(e),
        }
        all_healthy = False

    # Redis backs the list cache; losing it only costs cache hits
    if redis_service.is_enabled:
        redis_healthy = await redis_service.health_check()
        checks["cache"] = {
            "status": "healthy" if redis_healthy else "degraded",
            "enabled": config.cache.enabled,
        }
    else:
        checks["cache"] = {
            "status": "disabled",
            "note": "List queries always hit the database",
        }

    checks["events"] = {
        "status": "healthy" if publisher.is_available() else "disabled",
        "exchange": config.events.exchange,
    }

    response = {
        "status": "ready" if all_healthy else "not_ready",
        "environment": config.app.environment,
        "checks": checks,
    }

    if not all_healthy:
        return JSONResponse(
            status_code=503,
            content=response,
        )

    return response
