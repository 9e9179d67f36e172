"""
Database configuration and session management.
Uses the SQLAlchemy 2.0 asyncio extension: every store call is awaited.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from shared.config.settings import settings


def build_engine(url: str | None = None) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite (tests, local demos) shares one connection through StaticPool so an
    in-memory database survives across sessions.
    """
    url = url or settings.database_url
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=settings.database_echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(
        url,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=10,
        max_overflow=15,
        pool_timeout=30,  # Wait max 30s for connection from pool
        pool_recycle=1800,  # Recycle connections after 30 minutes
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; objects stay readable after commit."""
    return async_sessionmaker(bind=bind, autoflush=False, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/tables")
        async def list_tables(db: AsyncSession = Depends(get_db)):
            ...

    The session is automatically closed after the request completes.
    """
    async with SessionLocal() as db:
        yield db

