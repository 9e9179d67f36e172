"""
Preparation Task Dispatcher.

One kitchen task per physical unit of a released food/drink line. The
dispatcher grows and shrinks that set as quantities change, drives the
per-task status flow (pending -> preparing -> ready -> served) and derives
SLA signals for kitchen and bar boards.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable

from shared.config.constants import (
    BAR_ROLES,
    KITCHEN_ROLES,
    TASK_TRANSITIONS,
    ItemType,
    OrderItemStatus,
    Priority,
    SlaStatus,
    Station,
    TaskStatus,
)
from shared.config.logging import kitchen_logger as logger
from shared.config.settings import settings
from rest_api.models import KitchenTask, OrderItem, as_utc, utcnow
from rest_api.repositories import OrderStore
from rest_api.services.notifications import Notification, Notifier, notify_in_background
from .errors import (
    InvalidTransitionError,
    ItemInPreparationError,
    StaleReferenceError,
)
from .order_session import LineItem, OrderSession, TaskView, new_temp_id


def classify_sla(
    last_change: datetime,
    target_minutes: int,
    *,
    now: datetime | None = None,
    warning_minutes: int | None = None,
) -> str:
    """
    Compare time since the last status change with the target.

    overdue once elapsed >= target; near_deadline within the final
    `warning_minutes` (settings.sla_warning_minutes by default).
    """
    now = now or utcnow()
    warning = settings.sla_warning_minutes if warning_minutes is None else warning_minutes
    elapsed = (as_utc(now) - as_utc(last_change)).total_seconds() / 60
    if elapsed >= target_minutes:
        return SlaStatus.OVERDUE
    if elapsed >= target_minutes - warning:
        return SlaStatus.NEAR_DEADLINE
    return SlaStatus.ON_TIME


def roles_for(item_type: str) -> list[str]:
    return BAR_ROLES if item_type == ItemType.DRINK else KITCHEN_ROLES


@dataclass
class BoardTask:
    """A task as a kitchen/bar display shows it."""

    task_id: int
    order_id: int
    order_item_id: int
    menu_item_id: int
    item_name: str
    course: int
    note: str | None
    table_label: str | None
    status: str
    prepared_by: int | None
    created_at: datetime
    updated_at: datetime
    elapsed_minutes: float
    target_minutes: int
    sla: str


# =============================================================================
# Two-phase transitions
# =============================================================================


class ProposalState(Enum):
    PENDING = "pending"
    APPLYING = "applying"
    APPLIED = "applied"
    CANCELLED = "cancelled"
    DECLINED = "declined"
    FAILED = "failed"


class TransitionProposal:
    """
    Cancellable handle for one proposed task transition.

    confirm() and the timeout both end in the same apply call; cancel()
    drops the proposal; decline() discards a pending task instead.
    """

    def __init__(
        self,
        task_id: int,
        next_status: str,
        apply: Callable[[], Awaitable[TaskView]],
        decline: Callable[[], Awaitable[None]],
        timeout: float,
    ):
        self.task_id = task_id
        self.next_status = next_status
        self.timeout = timeout
        self.state = ProposalState.PENDING
        self._apply = apply
        self._decline = decline
        self._done = asyncio.Event()
        self._result: TaskView | None = None
        self._error: BaseException | None = None
        self._timer = asyncio.get_running_loop().create_task(self._expire())

    async def _expire(self) -> None:
        await asyncio.sleep(self.timeout)
        try:
            await self._resolve()
        except Exception as e:
            logger.error(
                "Auto-applied transition failed",
                task_id=self.task_id,
                next_status=self.next_status,
                error=str(e),
            )

    def _stop_timer(self) -> None:
        if self.state is ProposalState.PENDING and not self._timer.done():
            self._timer.cancel()

    async def _resolve(self) -> TaskView | None:
        if self.state is not ProposalState.PENDING:
            return await self.wait()
        self.state = ProposalState.APPLYING
        try:
            self._result = await self._apply()
        except BaseException as e:
            self.state = ProposalState.FAILED
            self._error = e
            self._done.set()
            raise
        self.state = ProposalState.APPLIED
        self._done.set()
        return self._result

    async def confirm(self) -> TaskView | None:
        self._stop_timer()
        return await self._resolve()

    def cancel(self) -> None:
        if self.state is not ProposalState.PENDING:
            return
        self._stop_timer()
        self.state = ProposalState.CANCELLED
        self._done.set()

    async def decline(self) -> None:
        """Discard the task instead of starting it. Only for pending tasks."""
        if self.next_status != TaskStatus.PREPARING:
            raise InvalidTransitionError("kitchen task", self.next_status, "declined")
        if self.state is not ProposalState.PENDING:
            return
        self._stop_timer()
        self.state = ProposalState.DECLINED
        try:
            await self._decline()
        finally:
            self._done.set()

    async def wait(self) -> TaskView | None:
        """Result once applied; None if cancelled or declined."""
        await self._done.wait()
        if self._error is not None:
            raise self._error
        return self._result


# =============================================================================
# Dispatcher
# =============================================================================


class PreparationTaskDispatcher:
    """
    Kitchen task lifecycle.

    The `release_item` / `retract_one_unit` / `delete_all_tasks_for` helpers
    run inside an OrderStore unit of work. The `mirror_*` helpers keep an
    OrderSession's local task list in step for optimistic updates.
    """

    def __init__(
        self,
        store: OrderStore,
        notifier: Notifier | None = None,
        *,
        confirm_timeout: float | None = None,
    ):
        self._store = store
        self._notifier = notifier
        self._confirm_timeout = (
            settings.task_confirm_timeout_seconds if confirm_timeout is None else confirm_timeout
        )

    # ------------------------------------------------------------------
    # Store-side expansion / contraction (inside a unit of work)
    # ------------------------------------------------------------------

    async def release_item(self, item: OrderItem, units: int | None = None) -> list[KitchenTask]:
        """
        Create pending tasks for a released item.

        With `units`, exactly that many are added (a quantity increase on an
        already released line); declined tasks stay declined. Without it the
        item is topped up to one task per unit.
        """
        if item.type not in ItemType.PREPARED:
            raise ValueError(f"Item type '{item.type}' is not prepared by kitchen or bar")
        if await self._store.items.get(item.id) is None:
            raise StaleReferenceError("Order item", item.id)

        if units is None:
            existing = await self._store.tasks.count(KitchenTask.order_item_id == item.id)
            missing = item.quantity - existing
        else:
            missing = units
        if missing <= 0:
            return []

        tasks = [
            KitchenTask(
                order_id=item.order_id,
                order_item_id=item.id,
                menu_item_id=item.menu_item_id,
                status=TaskStatus.PENDING,
            )
            for _ in range(missing)
        ]
        await self._store.tasks.add_all(tasks)
        logger.info("Tasks created", order_item_id=item.id, count=missing)
        return tasks

    async def retract_one_unit(self, order_item_id: int) -> KitchenTask:
        """Delete the most recent pending task; started tasks are never touched."""
        task = await self._store.tasks.find_latest_pending(order_item_id)
        if task is None:
            raise ItemInPreparationError("Every unit of this item is already in preparation")
        await self._store.tasks.delete_by_id(task.id)
        return task

    async def delete_all_tasks_for(self, order_item_id: int) -> int:
        return await self._store.tasks.delete_for_item(order_item_id)

    # ------------------------------------------------------------------
    # Local mirror
    # ------------------------------------------------------------------

    @staticmethod
    def mirror_release(ctx: OrderSession, line: LineItem, units: int | None = None) -> None:
        missing = line.quantity - len(ctx.tasks_for(line.id)) if units is None else units
        now = utcnow()
        for _ in range(max(missing, 0)):
            ctx.tasks.append(
                TaskView(
                    id=new_temp_id(),
                    order_id=line.order_id,
                    order_item_id=line.id,
                    menu_item_id=line.menu_item_id,
                    created_at=now,
                    updated_at=now,
                )
            )

    @staticmethod
    def mirror_retract(ctx: OrderSession, line: LineItem) -> None:
        pending = [t for t in ctx.tasks_for(line.id) if t.status == TaskStatus.PENDING]
        if pending:
            ctx.tasks.remove(pending[-1])

    @staticmethod
    def mirror_delete(ctx: OrderSession, line: LineItem) -> None:
        ctx.tasks = [t for t in ctx.tasks if t.order_item_id != line.id]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def notify_release(
        self,
        *,
        restaurant_id: int,
        actor_id: int | None,
        table_label: str | None,
        item_name: str,
        item_type: str,
        units: int,
    ) -> None:
        """One notification per release event, not per task."""
        notify_in_background(
            self._notifier,
            Notification(
                restaurant_id=restaurant_id,
                actor_id=actor_id,
                title="New Order",
                message=f"Table {table_label or '?'}: {item_name} (x{units})",
                priority=Priority.HIGH,
                roles=roles_for(item_type),
            ),
        )

    # ------------------------------------------------------------------
    # Station side: transitions
    # ------------------------------------------------------------------

    async def apply_transition(
        self,
        task_id: int,
        next_status: str,
        *,
        restaurant_id: int,
        actor_id: int | None = None,
    ) -> TaskView:
        """Advance one task one step; the single path for confirm and timeout."""

        async def unit(store: OrderStore) -> tuple[TaskView, str, int | None]:
            task = await store.tasks.get_for_restaurant(task_id, restaurant_id)
            if task is None:
                raise StaleReferenceError("Kitchen task", task_id)
            if TASK_TRANSITIONS.get(task.status) != next_status:
                raise InvalidTransitionError("kitchen task", task.status, next_status)

            values: dict = {"status": next_status, "updated_at": utcnow()}
            if next_status == TaskStatus.PREPARING:
                values["prepared_by"] = actor_id
            store.tasks.update(task, **values)

            item = await store.items.get(task.order_item_id)
            item_name = item.name if item else ""
            if item is not None:
                await self._sync_item_status(store, item, next_status)

            waiter_id = None
            if next_status == TaskStatus.READY:
                waiter_id = await self._waiter_for_order(store, task.order_id)
            return TaskView.model_validate(task), item_name, waiter_id

        view, item_name, waiter_id = await self._store.run(
            "advance task", unit, restaurant_id=restaurant_id
        )
        logger.info("Task advanced", task_id=task_id, status=next_status, actor_id=actor_id)

        if next_status == TaskStatus.READY and waiter_id:
            notify_in_background(
                self._notifier,
                Notification(
                    restaurant_id=restaurant_id,
                    actor_id=actor_id,
                    title="Order Ready",
                    message=f"{item_name} is ready to serve",
                    priority=Priority.HIGH,
                    user_ids=[waiter_id],
                ),
            )
        return view

    def propose_transition(
        self,
        task_id: int,
        next_status: str,
        *,
        restaurant_id: int,
        actor_id: int | None = None,
        timeout: float | None = None,
    ) -> TransitionProposal:
        """Start a confirmation window that auto-applies when it runs out."""
        return TransitionProposal(
            task_id,
            next_status,
            apply=lambda: self.apply_transition(
                task_id, next_status, restaurant_id=restaurant_id, actor_id=actor_id
            ),
            decline=lambda: self.decline_task(task_id, restaurant_id=restaurant_id),
            timeout=self._confirm_timeout if timeout is None else timeout,
        )

    async def decline_task(self, task_id: int, *, restaurant_id: int) -> None:
        """Discard a pending task. The order item itself stays."""

        async def unit(store: OrderStore) -> None:
            task = await store.tasks.get_for_restaurant(task_id, restaurant_id)
            if task is None:
                raise StaleReferenceError("Kitchen task", task_id)
            if task.status != TaskStatus.PENDING:
                raise InvalidTransitionError("kitchen task", task.status, "declined")
            await store.tasks.delete_by_id(task_id)

        await self._store.run("decline task", unit, restaurant_id=restaurant_id)
        logger.info("Task declined", task_id=task_id)

    async def _sync_item_status(self, store: OrderStore, item: OrderItem, next_status: str) -> None:
        if next_status == TaskStatus.PREPARING:
            if item.status == OrderItemStatus.PENDING:
                store.items.update(item, status=OrderItemStatus.PREPARING)
            return

        tasks = await store.tasks.find_by_item(item.id)
        statuses = {t.status for t in tasks}
        if next_status == TaskStatus.READY and statuses <= {TaskStatus.READY, TaskStatus.SERVED}:
            store.items.update(item, status=OrderItemStatus.READY)
        elif next_status == TaskStatus.SERVED and statuses == {TaskStatus.SERVED}:
            store.items.update(item, status=OrderItemStatus.SERVED)

    async def _waiter_for_order(self, store: OrderStore, order_id: int) -> int | None:
        order = await store.orders.get(order_id)
        if order is None or order.session_id is None:
            return None
        session = await store.sessions.get(order.session_id)
        return session.waiter_id if session else None

    # ------------------------------------------------------------------
    # Boards
    # ------------------------------------------------------------------

    async def board(
        self,
        restaurant_id: int,
        station: str,
        *,
        now: datetime | None = None,
    ) -> list[BoardTask]:
        """Live tasks for one station with SLA classification, oldest first."""
        item_types = Station.ITEM_TYPES[station]
        rows = await self._store.read(
            "kitchen board",
            lambda store: store.tasks.find_board(restaurant_id, item_types),
        )
        now = as_utc(now or utcnow())
        board = []
        for row in rows:
            task = row.task
            target = row.preparation_minutes or settings.default_preparation_minutes
            last_change = as_utc(task.updated_at or task.created_at)
            board.append(
                BoardTask(
                    task_id=task.id,
                    order_id=task.order_id,
                    order_item_id=task.order_item_id,
                    menu_item_id=task.menu_item_id,
                    item_name=row.item_name,
                    course=row.course,
                    note=row.note,
                    table_label=row.table_label,
                    status=task.status,
                    prepared_by=task.prepared_by,
                    created_at=as_utc(task.created_at),
                    updated_at=last_change,
                    elapsed_minutes=round((now - last_change).total_seconds() / 60, 1),
                    target_minutes=target,
                    sla=classify_sla(last_change, target, now=now),
                )
            )
        return board
