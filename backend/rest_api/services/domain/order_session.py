"""
OrderSession: the explicit context threaded through every engine operation.

One OrderSession is built per active table interaction (or counter sale)
and passed by reference. It holds the local mirror of the order, its line
items and preparation tasks, the derived totals and the tender fields.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from itertools import count
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from shared.config.constants import (
    Courses,
    ItemType,
    OrderItemStatus,
    PaymentStatus,
    TaskStatus,
)
from .errors import MissingContextError, StaleReferenceError

TEMP_ID_PREFIX = "temp-"
_temp_ids = count(1)

ItemId = int | str


def new_temp_id() -> str:
    """Client-side id used until the store assigns a real one."""
    return f"{TEMP_ID_PREFIX}{next(_temp_ids)}"


def is_temp_id(value: ItemId | None) -> bool:
    return isinstance(value, str) and value.startswith(TEMP_ID_PREFIX)


class ModifierView(BaseModel):
    """A modifier as selected on a line item."""

    model_config = ConfigDict(from_attributes=True)

    modifier_id: int
    name: str
    price_adjustment_cents: int = 0


class LineItem(BaseModel):
    """Local mirror of an OrderItem row."""

    model_config = ConfigDict(from_attributes=True)

    id: ItemId
    order_id: int | None = None
    menu_item_id: int
    name: str
    quantity: int = 1
    unit_price_cents: int
    sum_price_cents: int
    type: str = ItemType.FOOD
    course: int = Courses.MAIN
    is_started: bool = False
    status: str = OrderItemStatus.PENDING
    payment_status: str = PaymentStatus.PENDING
    note: str | None = None
    modifiers: list[ModifierView] = Field(default_factory=list)
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def is_drink(self) -> bool:
        return self.type == ItemType.DRINK or self.course == Courses.DRINKS

    @property
    def is_prepared(self) -> bool:
        """Only food and drink lines go to kitchen/bar."""
        return self.type in ItemType.PREPARED

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderItemStatus.CANCELLED

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def is_unmodified(self) -> bool:
        return not self.modifiers and self.note is None

    def set_quantity(self, quantity: int) -> None:
        self.quantity = quantity
        self.sum_price_cents = self.unit_price_cents * quantity


class TaskView(BaseModel):
    """Local mirror of a KitchenTask row."""

    model_config = ConfigDict(from_attributes=True)

    id: ItemId
    order_id: int | None = None
    order_item_id: ItemId
    menu_item_id: int
    status: str = TaskStatus.PENDING
    prepared_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderView(BaseModel):
    """Local mirror of an Order row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    restaurant_id: int
    session_id: int | None = None
    staff_id: int | None = None
    status: str
    total_cents: int = 0
    tip_cents: int = 0
    is_counter: bool = False
    created_at: datetime | None = None


class OrderSession(BaseModel):
    """
    Context for one active table interaction.

    `mutation_lock` serialises local mutations and re-fetches for this
    context, so a quantity decrease always sees the result of a prior
    increase and a realtime re-fetch never lands in the middle of an
    optimistic update.
    """

    restaurant_id: int | None = None
    staff_id: int | None = None
    staff_name: str | None = None
    table_id: int | None = None
    table_label: str | None = None
    session_id: int | None = None
    session_status: str | None = None
    waiter_id: int | None = None
    guests: int = 1
    is_counter: bool = False

    order: OrderView | None = None
    items: list[LineItem] = Field(default_factory=list)
    tasks: list[TaskView] = Field(default_factory=list)

    total_cents: int = 0
    total_qty: int = 0
    remaining_cents: int = 0
    tip_cents: int = 0
    cash_cents: int = 0
    card_cents: int = 0
    selected_course: int | None = None

    _mutation_lock: asyncio.Lock = PrivateAttr(default_factory=asyncio.Lock)

    @property
    def mutation_lock(self) -> asyncio.Lock:
        return self._mutation_lock

    # ------------------------------------------------------------------
    # Context checks
    # ------------------------------------------------------------------

    def require_context(self) -> int:
        """Restaurant id, or MissingContextError when there is nothing to attach to."""
        if self.restaurant_id is None:
            raise MissingContextError("No active restaurant")
        if self.session_id is None and not self.is_counter:
            raise MissingContextError("No active table session")
        return self.restaurant_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_item(self, item_id: ItemId) -> LineItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def require_item(self, item_id: ItemId) -> LineItem:
        item = self.find_item(item_id)
        if item is None:
            raise StaleReferenceError("Order item", item_id)
        return item

    def tasks_for(self, item_id: ItemId) -> list[TaskView]:
        return [task for task in self.tasks if task.order_item_id == item_id]

    def active_items(self) -> list[LineItem]:
        return [item for item in self.items if not item.is_cancelled]

    def unpaid_items(self) -> list[LineItem]:
        return [item for item in self.items if not item.is_cancelled and not item.is_paid]

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def recompute_totals(self) -> None:
        """Totals over non-cancelled lines; remaining also skips paid lines."""
        active = self.active_items()
        self.total_cents = sum(item.sum_price_cents for item in active)
        self.total_qty = sum(item.quantity for item in active)
        self.remaining_cents = sum(item.sum_price_cents for item in active if not item.is_paid)

    def replace_id(self, temp_id: ItemId, real_id: int) -> None:
        """Swap a temporary line id (and its tasks' references) for the server id."""
        for item in self.items:
            if item.id == temp_id:
                item.id = real_id
        for task in self.tasks:
            if task.order_item_id == temp_id:
                task.order_item_id = real_id

    def load(self, items: Iterable[LineItem], tasks: Iterable[TaskView]) -> None:
        self.items = list(items)
        self.tasks = list(tasks)
        self.recompute_totals()

    def reset_order_state(self) -> None:
        """Back to an empty cart once the order is settled."""
        self.order = None
        self.items = []
        self.tasks = []
        self.total_cents = 0
        self.total_qty = 0
        self.remaining_cents = 0
        self.tip_cents = 0
        self.cash_cents = 0
        self.card_cents = 0
        self.selected_course = None
