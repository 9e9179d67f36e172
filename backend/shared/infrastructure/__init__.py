"""
Infrastructure: async database sessions, the store retry policy, Redis events.
"""

from shared.infrastructure.db import SessionLocal, build_engine, build_session_factory, engine, get_db
from shared.infrastructure.events import close_redis_pool, get_redis_pool, publish_change, publish_event
from shared.infrastructure.retry import RetryConfig, is_transient, run_with_retry

__all__ = [
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "engine",
    "get_db",
    "close_redis_pool",
    "get_redis_pool",
    "publish_change",
    "publish_event",
    "RetryConfig",
    "is_transient",
    "run_with_retry",
]
