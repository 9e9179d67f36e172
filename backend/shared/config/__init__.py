"""
Configuration: environment settings, structured logging, domain constants.
"""

from shared.config.constants import (
    Courses,
    ItemType,
    Limits,
    OrderItemStatus,
    PaymentStatus,
    Roles,
    SessionStatus,
    TableStatus,
    TaskStatus,
)
from shared.config.logging import bind_log_context, get_logger, setup_logging
from shared.config.settings import get_settings, settings

__all__ = [
    "Courses",
    "ItemType",
    "Limits",
    "OrderItemStatus",
    "PaymentStatus",
    "Roles",
    "SessionStatus",
    "TableStatus",
    "TaskStatus",
    "bind_log_context",
    "get_logger",
    "setup_logging",
    "get_settings",
    "settings",
]
