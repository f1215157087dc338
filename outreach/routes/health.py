# outreach/routes/health.py
"""
Health check endpoints with database pool and local cache backend monitoring.
"""

import time

from fastapi import APIRouter

from outreach.config import settings
from outreach.db.pool import db_health_check
from outreach.services.infrastructure.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "outreach-crm"}


@router.get("/readyz")
async def readyz():
    """Readiness check across the database pool and the local cache backend."""
    checks = {}
    overall_ok = True

    # 1) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {"ok": is_healthy, "latency_ms": round((time.time() - t0) * 1000, 1)}

        if "pool_stats" in db_health:
            checks["database"].update(db_health["pool_stats"])
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        overall_ok = overall_ok and is_healthy

    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    # 2) Local cache backend (Redis only when configured)
    if settings.uses_redis_cache():
        t0 = time.time()
        redis_ok = await fast_redis.ping()
        checks["local_cache"] = {
            "ok": redis_ok,
            "backend": "redis",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and redis_ok
    else:
        checks["local_cache"] = {"ok": True, "backend": "memory"}

    # 3) Configuration
    config_issues = []
    if not settings.SUPABASE_DB_URL:
        config_issues.append("SUPABASE_DB_URL not set")
    if settings.uses_redis_cache() and not settings.REDIS_URL:
        config_issues.append("REDIS_URL not set")
    if not settings.INBOUND_OWNER_USER_ID:
        config_issues.append("INBOUND_OWNER_USER_ID not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
