"""
Health check endpoints with database pool monitoring.
"""

import time

from fastapi import APIRouter, Request

from syncbot.config import settings
from syncbot.db.pool import db_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "weekly-sync-bot"}


@router.get("/readyz")
async def readyz(request: Request):
    """Readiness check: database pool, configuration and weekly sync wiring."""
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)

        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if is_healthy:
            checks["database"].update(
                {
                    "pool_size": db_health.get("pool_size", 0),
                    "pool_available": db_health.get("pool_available", 0),
                    "connection_time_ms": db_health.get("connection_time_ms", 0),
                }
            )
        else:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
            if "error_type" in db_health:
                checks["database"]["error_type"] = db_health["error_type"]

        overall_ok = overall_ok and is_healthy

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    # 2) Configuration
    config_issues = []
    if settings.WEEKLY_SYNC_ENABLED:
        if not settings.SLACK_BOT_TOKEN:
            config_issues.append("SLACK_BOT_TOKEN not set")
        if not settings.OPENAI_API_KEY:
            config_issues.append("OPENAI_API_KEY not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    # 3) Weekly sync scheduler
    container = getattr(request.app.state, "weekly_sync", None)
    checks["weekly_sync"] = {
        "enabled": settings.WEEKLY_SYNC_ENABLED,
        "running": bool(container and container.scheduler.is_running),
    }

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
