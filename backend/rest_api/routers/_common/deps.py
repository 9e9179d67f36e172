"""
Request-scoped dependencies shared by the routers.

Staff identity comes from request headers set by the terminal:
    X-Restaurant-Id  (required)
    X-Staff-Id
    X-Staff-Name

Usage:
    @router.post("/sessions/{session_id}/items")
    async def add_item(body: AddItemRequest, engine: OrderEngine = Depends(get_session_engine)):
        ...
"""

from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.logging import bind_log_context
from shared.infrastructure.db import get_db
from rest_api.repositories import ChangePublisher, OrderStore, publish_to_change_feed
from rest_api.services.domain import OrderEngine, StaleReferenceError
from rest_api.services.notifications import Notifier, RedisNotifier
from rest_api.services.receipts import ReceiptSink, RedisReceiptSink


@dataclass
class StaffContext:
    """Who is acting, for which restaurant."""

    restaurant_id: int
    staff_id: int | None = None
    staff_name: str | None = None


async def get_staff_context(
    x_restaurant_id: int = Header(..., description="Restaurant the terminal belongs to"),
    x_staff_id: int | None = Header(default=None),
    x_staff_name: str | None = Header(default=None),
) -> StaffContext:
    bind_log_context(restaurant_id=x_restaurant_id, staff_id=x_staff_id)
    return StaffContext(
        restaurant_id=x_restaurant_id,
        staff_id=x_staff_id,
        staff_name=x_staff_name,
    )


# =============================================================================
# Collaborators (overridden in tests)
# =============================================================================


def get_notifier() -> Notifier | None:
    return RedisNotifier()


def get_receipt_sink() -> ReceiptSink | None:
    return RedisReceiptSink()


def get_change_publisher() -> ChangePublisher | None:
    return publish_to_change_feed


async def get_store(
    db: AsyncSession = Depends(get_db),
    change_publisher: ChangePublisher | None = Depends(get_change_publisher),
) -> OrderStore:
    return OrderStore(db, change_publisher=change_publisher)


def get_engine_options(
    notifier: Notifier | None = Depends(get_notifier),
    receipt_sink: ReceiptSink | None = Depends(get_receipt_sink),
) -> dict[str, Any]:
    return {"notifier": notifier, "receipt_sink": receipt_sink}


# =============================================================================
# Engines
# =============================================================================


def get_restaurant_engine(
    store: OrderStore = Depends(get_store),
    staff: StaffContext = Depends(get_staff_context),
    options: dict[str, Any] = Depends(get_engine_options),
) -> OrderEngine:
    """Engine not bound to a session: table actions, counter sales, boards."""
    return OrderEngine.for_restaurant(
        store,
        restaurant_id=staff.restaurant_id,
        staff_id=staff.staff_id,
        staff_name=staff.staff_name,
        **options,
    )


async def get_session_engine(
    session_id: int,
    store: OrderStore = Depends(get_store),
    staff: StaffContext = Depends(get_staff_context),
    options: dict[str, Any] = Depends(get_engine_options),
) -> OrderEngine:
    """Engine bound to the table session in the path."""
    return await OrderEngine.for_session(
        store,
        session_id,
        restaurant_id=staff.restaurant_id,
        staff_id=staff.staff_id,
        staff_name=staff.staff_name,
        **options,
    )


async def get_order_engine(
    order_id: int,
    store: OrderStore = Depends(get_store),
    staff: StaffContext = Depends(get_staff_context),
    options: dict[str, Any] = Depends(get_engine_options),
) -> OrderEngine:
    """Engine bound to the order in the path (counter sales)."""
    return await OrderEngine.for_order(
        store,
        order_id,
        restaurant_id=staff.restaurant_id,
        staff_id=staff.staff_id,
        staff_name=staff.staff_name,
        **options,
    )


async def get_table_session_engine(
    table_id: int,
    store: OrderStore = Depends(get_store),
    staff: StaffContext = Depends(get_staff_context),
    options: dict[str, Any] = Depends(get_engine_options),
) -> OrderEngine:
    """Engine bound to the open session of the table in the path."""
    session = await store.read(
        "find table session", lambda s: s.sessions.find_active_for_table(table_id)
    )
    if session is None or session.restaurant_id != staff.restaurant_id:
        raise StaleReferenceError("Open session for table", table_id)
    return await OrderEngine.for_session(
        store,
        session.id,
        restaurant_id=staff.restaurant_id,
        staff_id=staff.staff_id,
        staff_name=staff.staff_name,
        **options,
    )
