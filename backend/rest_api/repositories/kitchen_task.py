"""
Kitchen task repository.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import select, update

from shared.config.constants import ChangeEvent, StoreTable, TaskStatus
from rest_api.models import (
    KitchenTask,
    MenuItem,
    Order,
    OrderItem,
    RestaurantTable,
    TableSession,
    utcnow,
)
from .base import BaseRepository


@dataclass
class BoardRow:
    """A task joined with what a kitchen/bar display shows."""

    task: KitchenTask
    item_name: str
    item_type: str
    course: int
    note: str | None
    preparation_minutes: int | None
    table_label: str | None
    waiter_id: int | None


class KitchenTaskRepository(BaseRepository[KitchenTask]):
    """Data access for KitchenTask rows."""

    table_name = StoreTable.KITCHEN_TASKS

    @property
    def model(self) -> type[KitchenTask]:
        return KitchenTask

    async def get_for_restaurant(self, task_id: int, restaurant_id: int) -> KitchenTask | None:
        """The task, only when its order belongs to `restaurant_id`."""
        query = (
            select(KitchenTask)
            .join(Order, KitchenTask.order_id == Order.id)
            .where(KitchenTask.id == task_id, Order.restaurant_id == restaurant_id)
        )
        return await self._scalar(query)

    async def find_by_item(self, order_item_id: int) -> Sequence[KitchenTask]:
        return await self.find_by(KitchenTask.order_item_id == order_item_id)

    async def find_by_order(self, order_id: int, *, fresh: bool = False) -> Sequence[KitchenTask]:
        return await self.find_by(KitchenTask.order_id == order_id, fresh=fresh)

    async def count_started_for_item(self, order_item_id: int) -> int:
        """Tasks a station has already acted on (anything but pending)."""
        return await self.count(
            KitchenTask.order_item_id == order_item_id,
            KitchenTask.status != TaskStatus.PENDING,
        )

    async def find_latest_pending(self, order_item_id: int) -> KitchenTask | None:
        """Most recently created pending task for an item."""
        query = (
            select(KitchenTask)
            .where(
                KitchenTask.order_item_id == order_item_id,
                KitchenTask.status == TaskStatus.PENDING,
            )
            .order_by(KitchenTask.created_at.desc(), KitchenTask.id.desc())
            .limit(1)
        )
        return await self._scalar(query)

    async def delete_for_item(self, order_item_id: int) -> int:
        return await self.delete_where(KitchenTask.order_item_id == order_item_id)

    async def touch_for_item(self, order_item_id: int, at: datetime | None = None) -> int:
        """Bump updated_at on every task of an item."""
        await self._db.flush()
        result = await self._db.execute(
            update(KitchenTask)
            .where(KitchenTask.order_item_id == order_item_id)
            .values(updated_at=at or utcnow())
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            self._tracker.record(self.table_name, ChangeEvent.UPDATE)
        return result.rowcount or 0

    async def find_board(
        self,
        restaurant_id: int,
        item_types: Sequence[str],
        statuses: Sequence[str] = tuple(TaskStatus.ACTIVE),
    ) -> list[BoardRow]:
        """Live tasks of a restaurant for the given item types, oldest first."""
        await self._db.flush()
        query = (
            select(
                KitchenTask,
                OrderItem.name,
                OrderItem.type,
                OrderItem.course,
                OrderItem.note,
                MenuItem.preparation_minutes,
                RestaurantTable.label,
                TableSession.waiter_id,
            )
            .join(OrderItem, KitchenTask.order_item_id == OrderItem.id)
            .join(Order, KitchenTask.order_id == Order.id)
            .join(MenuItem, KitchenTask.menu_item_id == MenuItem.id)
            .outerjoin(TableSession, Order.session_id == TableSession.id)
            .outerjoin(RestaurantTable, TableSession.table_id == RestaurantTable.id)
            .where(
                Order.restaurant_id == restaurant_id,
                OrderItem.type.in_(list(item_types)),
                KitchenTask.status.in_(list(statuses)),
            )
            .order_by(KitchenTask.created_at, KitchenTask.id)
        )
        result = await self._db.execute(query)
        return [BoardRow(*row) for row in result.all()]
