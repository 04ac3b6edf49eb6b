"""Health check endpoint.

Learn: Reports the database (required) and Redis (optional, only used for
rate limiting). A missing Redis degrades the status but the identity
endpoints keep working.
"""

from fastapi import APIRouter
from sqlalchemy import text

from bearer_identity import __version__
from bearer_identity.config import settings
from bearer_identity.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check():
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        from redis.asyncio import from_url

        r = from_url(settings.redis_url)
        await r.ping()
        await r.aclose()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    if checks["database"] != "ok":
        status = "unhealthy"
    elif checks["redis"] != "ok":
        status = "degraded"
    else:
        status = "healthy"

    return {"status": status, **checks}
