"""
Startup/shutdown for the API process: logging, schema, pending deliveries, Redis pool.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.config.logging import rest_api_logger as logger, setup_logging
from shared.config.settings import settings
from shared.infrastructure.db import engine
from shared.infrastructure.events import close_redis_pool
from rest_api.models import Base
from rest_api.services.background import drain_background


def check_settings() -> None:
    """Log every settings problem; refuse to start production with any."""
    problems = settings.validate_production_settings()
    for problem in problems:
        logger.error("Configuration error", error=problem)
    if problems and settings.environment == "production":
        raise RuntimeError("Refusing to start: " + "; ".join(problems))


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    check_settings()
    logger.info(
        "Order engine starting",
        environment=settings.environment,
        auto_fire_lowest_course=settings.auto_fire_lowest_course,
        store_max_attempts=settings.store_max_attempts,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield
    finally:
        await drain_background(timeout=settings.shutdown_drain_seconds)
        await engine.dispose()
        await close_redis_pool()
        logger.info("Order engine stopped")
