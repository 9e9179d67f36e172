"""
Common utilities shared across routers.
"""

from .deps import (
    StaffContext,
    get_staff_context,
    get_notifier,
    get_receipt_sink,
    get_change_publisher,
    get_store,
    get_engine_options,
    get_restaurant_engine,
    get_session_engine,
    get_order_engine,
    get_table_session_engine,
)
from .views import order_state

__all__ = [
    "StaffContext",
    "get_staff_context",
    "get_notifier",
    "get_receipt_sink",
    "get_change_publisher",
    "get_store",
    "get_engine_options",
    "get_restaurant_engine",
    "get_session_engine",
    "get_order_engine",
    "get_table_session_engine",
    "order_state",
]
