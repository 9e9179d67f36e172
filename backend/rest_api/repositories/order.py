"""
Order repositories: orders, order_items, order_item_modifiers.
"""

from typing import Sequence

from sqlalchemy import Select, select
from sqlalchemy.orm import selectinload

from shared.config.constants import OrderStatus, StoreTable
from rest_api.models import Order, OrderItem, OrderItemModifier
from .base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Data access for Order rows."""

    table_name = StoreTable.ORDERS

    @property
    def model(self) -> type[Order]:
        return Order

    async def find_open_for_session(self, session_id: int) -> Order | None:
        """The non-served order of a table session, if any."""
        query = (
            select(Order)
            .where(Order.session_id == session_id, Order.status == OrderStatus.PENDING)
            .order_by(Order.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return await self._scalar(query)


class OrderItemRepository(BaseRepository[OrderItem]):
    """Data access for OrderItem rows, modifiers always eager-loaded."""

    table_name = StoreTable.ORDER_ITEMS

    @property
    def model(self) -> type[OrderItem]:
        return OrderItem

    def _base_query(self) -> Select:
        return select(OrderItem).options(selectinload(OrderItem.modifiers))

    async def find_by_order(self, order_id: int, *, fresh: bool = False) -> Sequence[OrderItem]:
        return await self.find_by(OrderItem.order_id == order_id, fresh=fresh)


class OrderItemModifierRepository(BaseRepository[OrderItemModifier]):
    """Data access for OrderItemModifier rows."""

    table_name = StoreTable.ORDER_ITEM_MODIFIERS

    @property
    def model(self) -> type[OrderItemModifier]:
        return OrderItemModifier

    async def delete_for_item(self, order_item_id: int) -> int:
        return await self.delete_where(OrderItemModifier.order_item_id == order_item_id)
