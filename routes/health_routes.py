"""
Health check endpoint.

GET /health checks MongoDB and Redis connectivity and the mail worker.
Rules:
- MongoDB failure → "unhealthy" (503): codes cannot be stored without it.
- Redis failure or absence → "degraded" (200): throttling falls back to MongoDB.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        db = request.app.state.db
        await db.client.admin.command("ping")
        checks["mongodb"] = "ok"
    except Exception as e:
        log.error("health_mongodb_failed", error=str(e), error_type=type(e).__name__)
        checks["mongodb"] = "error"
        overall = "unhealthy"

    redis = request.app.state.redis
    if redis is None:
        checks["redis"] = "not_configured"
        if overall == "healthy":
            overall = "degraded"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as e:
            log.warning("health_redis_failed", error=str(e), error_type=type(e).__name__)
            checks["redis"] = "error"
            if overall == "healthy":
                overall = "degraded"

    mailer = getattr(request.app.state, "mailer", None)
    checks["mail_worker"] = "ok" if mailer is not None and mailer.running else "stopped"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content={"status": overall, "checks": checks},
    )
