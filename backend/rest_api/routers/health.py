"""
Health check router.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.logging import rest_api_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.infrastructure.events import get_event_circuit_breaker, ping_redis

router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "order-engine",
        "environment": settings.environment,
    }


@router.get("/detailed")
async def health_check_detailed(db: AsyncSession = Depends(get_db)):
    """Database and Redis connectivity plus event publisher state."""
    checks: dict[str, dict] = {}
    healthy = True

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = {"status": "healthy"}
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        checks["database"] = {"status": "unhealthy", "error": str(e)}
        healthy = False

    try:
        await ping_redis()
        checks["redis"] = {"status": "healthy"}
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        checks["redis"] = {"status": "unhealthy", "error": str(e)}
        healthy = False

    checks["event_circuit_breaker"] = get_event_circuit_breaker().get_stats()

    body = {"status": "healthy" if healthy else "unhealthy", "checks": checks}
    return JSONResponse(status_code=200 if healthy else 503, content=body)
