"""Health check endpoint.

Learn: Reports the database and Redis separately, plus how many live
streams this process is holding. Redis is optional, so a missing pool
is reported as "disabled" rather than an error.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from issuetracker import __version__
from issuetracker.db import engine as db_engine
from issuetracker.db.redis import get_redis
from issuetracker.realtime.registry import ConnectionRegistry, get_registry

router = APIRouter()


@router.get("/health")
async def health_check(registry: ConnectionRegistry = Depends(get_registry)):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        redis = get_redis()
    except RuntimeError:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"

    status = "healthy" if checks["database"] == "ok" and checks["redis"] in ("ok", "disabled") else "degraded"

    return {
        "status": status,
        **checks,
        "realtime": {
            "connected_users": len(registry.connected_users()),
            "open_streams": len(registry),
        },
    }
