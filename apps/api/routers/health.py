"""
Health check endpoints.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
import redis.asyncio as redis

from config import settings
from database import get_engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request, bind: AsyncEngine = Depends(get_engine)):
    """
    Health check endpoint.
    Returns overall system health status.
    """
    stores = getattr(request.app.state, "stores", None)
    health_status = {
        "status": "healthy",
        "api": "up",
        "store_backend": stores.backend if stores else "uninitialized",
        "database": "unknown",
        "redis": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    # Check database connection
    if stores is None or stores.backend == "database":
        try:
            async with bind.connect() as conn:
                await conn.execute(text("SELECT 1"))
            health_status["database"] = "up"
        except Exception as e:
            health_status["database"] = f"down: {str(e)}"
            health_status["status"] = "degraded"
    else:
        health_status["database"] = "not used"

    # Check Redis connection
    try:
        r = redis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        health_status["redis"] = "up"
    except Exception as e:
        health_status["redis"] = f"down: {str(e)}"

    return health_status


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Kubernetes-style readiness probe."""
    if getattr(request.app.state, "stores", None) is None:
        return JSONResponse(
            status_code=503,
            content={"ready": False, "missing": ["stores"]},
        )
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes-style liveness probe."""
    return {"alive": True}
