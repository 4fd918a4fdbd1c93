"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running and the
database is reachable. Redis is only checked when the login rate
limiter is configured to use it.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from stratdash import __version__
from stratdash.config import settings
from stratdash.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    if settings.rate_limit_backend == "redis":
        limiter = request.app.state.login_limiter
        try:
            await limiter.redis.ping()
            checks["redis"] = "ok"
        except Exception as e:
            checks["redis"] = f"error: {e}"

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks}
