"""
OrderEngine: the orchestrator that owns every component for one OrderSession.

The components never import each other's concrete classes where a cycle
would appear: the table state machine receives the order aggregate as its
OrderCreator, the payment engine receives the state machine as its
SessionCloser.

Every public mutation runs under `ctx.mutation_lock`, so mutations and
re-fetches for the same context never interleave.
"""

from __future__ import annotations

import functools
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar

from shared.config.constants import Courses, OrderStatus, SessionStatus
from shared.config.logging import orders_logger as logger
from rest_api.repositories import OrderStore
from rest_api.services.notifications import Notifier
from rest_api.services.receipts import ReceiptSink
from .billing_service import PaymentReconciliationEngine, Quote, SessionCloser, SettlementResult
from .course_firing import CourseFiringController
from .errors import MissingContextError, OrderValidationError, StaleReferenceError
from .optimistic import OptimisticUpdateManager
from .order_service import OrderAggregate
from .order_session import ItemId, LineItem, OrderSession, OrderView, TaskView
from .table_session_service import OrderCreator, TableSessionStateMachine
from .task_dispatcher import BoardTask, PreparationTaskDispatcher, TransitionProposal

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

# Reconciliation scopes
SCOPE_ORDER = "order"
SCOPE_SESSION = "session"


def serialized(method: F) -> F:
    """Run an engine method while holding the context's mutation lock."""

    @functools.wraps(method)
    async def wrapper(self: "OrderEngine", *args: Any, **kwargs: Any) -> Any:
        async with self.ctx.mutation_lock:
            return await method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class OrderEngine:
    """
    Entry point used by UI event handlers (and the HTTP routers).

    Usage:
        store = OrderStore(db)
        engine = await OrderEngine.for_session(store, session_id, restaurant_id=1, staff_id=7)
        await engine.add_item(menu_item_id=12)
        await engine.fire_course(2)
    """

    def __init__(
        self,
        ctx: OrderSession,
        store: OrderStore,
        *,
        notifier: Notifier | None = None,
        receipt_sink: ReceiptSink | None = None,
        confirm_timeout: float | None = None,
        auto_fire_lowest: bool | None = None,
    ):
        self.ctx = ctx
        self.store = store
        self.optimistic = OptimisticUpdateManager(ctx, self._refresh)
        self.dispatcher = PreparationTaskDispatcher(
            store, notifier, confirm_timeout=confirm_timeout
        )
        self.courses = CourseFiringController(
            ctx,
            store,
            self.optimistic,
            self.dispatcher,
            notifier,
            auto_fire_lowest=auto_fire_lowest,
        )
        self.orders = OrderAggregate(ctx, store, self.optimistic, self.dispatcher, self.courses)
        order_creator: OrderCreator = self.orders
        self.tables = TableSessionStateMachine(ctx, store, order_creator)
        session_closer: SessionCloser = self.tables
        self.billing = PaymentReconciliationEngine(
            ctx,
            store,
            self.optimistic,
            self.dispatcher,
            session_closer,
            receipt_sink=receipt_sink,
            notifier=notifier,
        )

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    async def for_session(
        cls,
        store: OrderStore,
        session_id: int,
        *,
        restaurant_id: int,
        staff_id: int | None = None,
        staff_name: str | None = None,
        **options: Any,
    ) -> "OrderEngine":
        """Bind to an open (or billed) table session and load its order."""

        async def unit(s: OrderStore):
            session = await s.sessions.get(session_id, fresh=True)
            table = await s.tables.get(session.table_id) if session else None
            return session, table

        session, table = await store.read("load session", unit)
        if session is None or session.restaurant_id != restaurant_id:
            raise StaleReferenceError("Table session", session_id)
        if session.status == SessionStatus.CLOSE:
            raise StaleReferenceError("Table session", session_id)

        ctx = OrderSession(
            restaurant_id=restaurant_id,
            staff_id=staff_id,
            staff_name=staff_name,
            table_id=session.table_id,
            table_label=table.label if table else None,
            session_id=session.id,
            session_status=session.status,
            waiter_id=session.waiter_id,
            guests=session.guests,
        )
        engine = cls(ctx, store, **options)
        await engine.refresh()
        return engine

    @classmethod
    async def for_order(
        cls,
        store: OrderStore,
        order_id: int,
        *,
        restaurant_id: int,
        staff_id: int | None = None,
        staff_name: str | None = None,
        **options: Any,
    ) -> "OrderEngine":
        """Bind to an order: its table session, or the counter sale it belongs to."""
        order = await store.read("load order", lambda s: s.orders.get(order_id, fresh=True))
        if order is None or order.restaurant_id != restaurant_id:
            raise StaleReferenceError("Order", order_id)
        if order.status == OrderStatus.SERVED:
            raise StaleReferenceError("Order", order_id)
        if order.session_id is not None:
            return await cls.for_session(
                store,
                order.session_id,
                restaurant_id=restaurant_id,
                staff_id=staff_id,
                staff_name=staff_name,
                **options,
            )

        ctx = OrderSession(
            restaurant_id=restaurant_id,
            staff_id=staff_id,
            staff_name=staff_name,
            is_counter=True,
            order=OrderView.model_validate(order),
        )
        engine = cls(ctx, store, **options)
        await engine.refresh()
        return engine

    @classmethod
    def for_restaurant(
        cls,
        store: OrderStore,
        *,
        restaurant_id: int,
        staff_id: int | None = None,
        staff_name: str | None = None,
        **options: Any,
    ) -> "OrderEngine":
        """Unbound engine for table actions and counter sales."""
        ctx = OrderSession(restaurant_id=restaurant_id, staff_id=staff_id, staff_name=staff_name)
        return cls(ctx, store, **options)

    # =========================================================================
    # Re-fetch
    # =========================================================================

    async def _refresh(self) -> None:
        """
        Reload the order, its lines and tasks from the store and recompute.

        Callers hold the mutation lock. The recomputed total is written back
        to the order row when it differs.
        """
        ctx = self.ctx
        order_id = ctx.order.id if ctx.order else None
        session_id = ctx.session_id

        async def unit(store: OrderStore):
            session = await store.sessions.get(session_id, fresh=True) if session_id else None
            if order_id is not None:
                order = await store.orders.get(order_id, fresh=True)
            elif session is not None and session.status in SessionStatus.ACTIVE:
                order = await store.orders.find_open_for_session(session.id)
            else:
                order = None
            items = await store.items.find_by_order(order.id, fresh=True) if order else []
            tasks = await store.tasks.find_by_order(order.id, fresh=True) if order else []
            return session, order, items, tasks

        session, order, items, tasks = await self.store.read("refresh order", unit)

        if session_id is not None:
            if session is None or session.status == SessionStatus.CLOSE:
                logger.info("Session closed elsewhere", session_id=session_id)
                ctx.reset_order_state()
                ctx.session_id = None
                ctx.session_status = SessionStatus.CLOSE
                return
            ctx.session_status = session.status
            ctx.table_id = session.table_id
            ctx.guests = session.guests

        if order is None or order.status == OrderStatus.SERVED:
            ctx.reset_order_state()
            return

        ctx.order = OrderView.model_validate(order)
        ctx.load(
            (LineItem.model_validate(item) for item in items),
            (TaskView.model_validate(task) for task in tasks),
        )
        if order.total_cents != ctx.total_cents:
            await self._write_back_total(order.id, ctx.total_cents)

    async def _write_back_total(self, order_id: int, total_cents: int) -> None:
        async def unit(store: OrderStore) -> None:
            order = await store.orders.get(order_id)
            if order is not None and order.total_cents != total_cents:
                store.orders.update(order, total_cents=total_cents)

        await self.store.run("write back total", unit, restaurant_id=self.ctx.restaurant_id)
        if self.ctx.order is not None:
            self.ctx.order.total_cents = total_cents

    @serialized
    async def refresh(self) -> None:
        await self._refresh()

    @serialized
    async def reconcile(self, scopes: Iterable[str] = (SCOPE_ORDER,)) -> None:
        """Re-fetch after a change notification; the payload itself is never trusted."""
        logger.debug("Reconciling", scopes=sorted(set(scopes)), session_id=self.ctx.session_id)
        await self._refresh()

    # =========================================================================
    # Order Aggregate
    # =========================================================================

    @serialized
    async def open_counter_order(self) -> OrderView:
        """Start an over-the-counter order with no table session."""
        ctx = self.ctx
        if ctx.session_id is not None:
            raise OrderValidationError("This terminal is serving a table")
        ctx.is_counter = True
        return await self.orders.ensure_order()

    @serialized
    async def add_item(
        self,
        menu_item_id: int,
        modifier_ids: Sequence[int] = (),
        *,
        course: int | None = None,
        quantity: int = 1,
    ) -> LineItem:
        return await self.orders.add_or_increment_item(
            menu_item_id, modifier_ids, course=course, quantity=quantity
        )

    @serialized
    async def change_quantity(self, item_id: ItemId, delta: int) -> LineItem:
        return await self.orders.change_quantity(item_id, delta)

    @serialized
    async def remove_item(self, item_id: ItemId) -> None:
        await self.orders.remove_item(item_id)

    @serialized
    async def annotate_note(self, item_id: ItemId, text: str | None) -> LineItem:
        return await self.orders.annotate_note(item_id, text)

    @serialized
    async def reorder_item(self, item_id: ItemId, quantity: int = 1) -> LineItem:
        return await self.orders.reorder_item(item_id, quantity)

    @serialized
    async def repeat_round(self) -> list[LineItem]:
        return await self.orders.repeat_round()

    # =========================================================================
    # Courses
    # =========================================================================

    def select_course(self, course: int | None) -> None:
        """Course applied to the next items added without an explicit one."""
        if course is not None and course not in Courses.ALL:
            raise OrderValidationError(f"Unknown course {course}")
        self.ctx.selected_course = course

    @serialized
    async def fire_course(self, course: int) -> int:
        return await self.courses.fire_course(course)

    # =========================================================================
    # Payments
    # =========================================================================

    def quote_full(self) -> Quote:
        return self.billing.quote_full()

    def quote_partial(self, item_ids: Iterable[ItemId]) -> Quote:
        return self.billing.quote_partial(item_ids)

    def quote_equal_split(self, guests: int) -> Quote:
        return self.billing.quote_equal_split(guests)

    def set_tip(self, tip_cents: int) -> None:
        self.billing.set_tip(tip_cents)

    @serialized
    async def settle(
        self,
        cash_cents: int = 0,
        card_cents: int = 0,
        scope: Quote | None = None,
    ) -> SettlementResult:
        return await self.billing.settle(cash_cents, card_cents, scope)

    @serialized
    async def void_item(self, item_id: ItemId, reason: str) -> LineItem:
        return await self.billing.void_item(item_id, reason)

    @serialized
    async def comp_item(self, item_id: ItemId, reason: str) -> LineItem:
        return await self.billing.comp_item(item_id, reason)

    # =========================================================================
    # Tables
    # =========================================================================

    @serialized
    async def reserve_table(self, table_id: int):
        return await self.tables.reserve(table_id)

    @serialized
    async def cancel_reservation(self, table_id: int):
        return await self.tables.cancel_reservation(table_id)

    @serialized
    async def occupy_table(
        self,
        table_id: int,
        *,
        guests: int = 1,
        waiter_id: int | None = None,
        waiter_name: str | None = None,
    ):
        return await self.tables.occupy(
            table_id, guests=guests, waiter_id=waiter_id, waiter_name=waiter_name
        )

    @serialized
    async def print_bill(self):
        return await self.tables.print_bill()

    @serialized
    async def force_close(self, table_id: int | None = None) -> None:
        await self.tables.force_close(table_id)

    @serialized
    async def transfer_table(self, destination_table_id: int):
        return await self.tables.transfer(destination_table_id)

    # =========================================================================
    # Kitchen / bar
    # =========================================================================

    def _restaurant(self) -> int:
        if self.ctx.restaurant_id is None:
            raise MissingContextError("No active restaurant")
        return self.ctx.restaurant_id

    def propose_task_transition(
        self, task_id: int, next_status: str, *, timeout: float | None = None
    ) -> TransitionProposal:
        return self.dispatcher.propose_transition(
            task_id,
            next_status,
            restaurant_id=self._restaurant(),
            actor_id=self.ctx.staff_id,
            timeout=timeout,
        )

    async def advance_task(self, task_id: int, next_status: str) -> TaskView:
        return await self.dispatcher.apply_transition(
            task_id, next_status, restaurant_id=self._restaurant(), actor_id=self.ctx.staff_id
        )

    async def decline_task(self, task_id: int) -> None:
        await self.dispatcher.decline_task(task_id, restaurant_id=self._restaurant())

    async def board(self, station: str, *, now: datetime | None = None) -> list[BoardTask]:
        return await self.dispatcher.board(self._restaurant(), station, now=now)
