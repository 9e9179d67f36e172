"""
Table Session State Machine.

    available -> reserved -> occupied -> (billed) -> close
    reserved -> available            (cancel reservation)
    occupied -> available            (force close)

A table is occupied exactly while it has an open or billed session. Closing
stamps closed_at and frees the table; it happens on full settlement or on
an explicit force close.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol, TypeVar

from shared.config.constants import (
    TABLE_TRANSITIONS,
    Limits,
    SessionStatus,
    TableStatus,
)
from shared.config.logging import tables_logger as logger
from rest_api.models import Order, RestaurantTable, TableSession, utcnow
from rest_api.repositories import OrderStore
from .errors import (
    InvalidTransitionError,
    MissingContextError,
    OrderEngineError,
    OrderValidationError,
    PersistenceError,
    StaleReferenceError,
    TableStateError,
)
from .order_session import OrderSession, OrderView

T = TypeVar("T")


class OrderCreator(Protocol):
    """Creates an empty order inside the caller's unit of work."""

    async def create_order(
        self,
        store: OrderStore,
        *,
        restaurant_id: int,
        session_id: int | None,
        staff_id: int | None,
        is_counter: bool = False,
    ) -> Order: ...


def check_table_transition(table: RestaurantTable, to_status: str) -> None:
    if to_status not in TABLE_TRANSITIONS.get(table.status, []):
        raise InvalidTransitionError("table", table.status, to_status)


class TableSessionStateMachine:
    """
    Table and session lifecycle for one OrderSession.

    Also the engine's SessionCloser: payment settlement closes the session
    through `close_session` inside its own unit of work.
    """

    def __init__(self, ctx: OrderSession, store: OrderStore, order_creator: OrderCreator):
        self._ctx = ctx
        self._store = store
        self._order_creator = order_creator

    async def _run(self, label: str, unit: Callable[[OrderStore], Awaitable[T]]) -> T:
        restaurant_id = self._require_restaurant()
        try:
            return await self._store.run(label, unit, restaurant_id=restaurant_id)
        except OrderEngineError:
            raise
        except Exception as e:
            logger.warning("Table operation failed", operation=label, error=str(e))
            raise PersistenceError(label) from e

    def _require_restaurant(self) -> int:
        if self._ctx.restaurant_id is None:
            raise MissingContextError("No active restaurant")
        return self._ctx.restaurant_id

    async def _load_table(self, store: OrderStore, table_id: int) -> RestaurantTable:
        table = await store.tables.get(table_id)
        if table is None or table.restaurant_id != self._ctx.restaurant_id:
            raise StaleReferenceError("Table", table_id)
        return table

    # =========================================================================
    # Reservation
    # =========================================================================

    async def reserve(self, table_id: int) -> RestaurantTable:
        async def unit(store: OrderStore) -> RestaurantTable:
            table = await self._load_table(store, table_id)
            check_table_transition(table, TableStatus.RESERVED)
            return store.tables.update(table, status=TableStatus.RESERVED)

        table = await self._run("reserve table", unit)
        logger.info("Table reserved", table_id=table_id)
        return table

    async def cancel_reservation(self, table_id: int) -> RestaurantTable:
        async def unit(store: OrderStore) -> RestaurantTable:
            table = await self._load_table(store, table_id)
            if table.status != TableStatus.RESERVED:
                raise InvalidTransitionError("table", table.status, TableStatus.AVAILABLE)
            return store.tables.update(table, status=TableStatus.AVAILABLE)

        table = await self._run("cancel reservation", unit)
        logger.info("Reservation cancelled", table_id=table_id)
        return table

    # =========================================================================
    # Occupancy
    # =========================================================================

    async def occupy(
        self,
        table_id: int,
        *,
        guests: int = 1,
        waiter_id: int | None = None,
        waiter_name: str | None = None,
    ) -> TableSession:
        """
        Seat a reserved table: session and empty order in one unit of work.

        Binds the OrderSession to the new session and order.
        """
        ctx = self._ctx
        restaurant_id = self._require_restaurant()
        if not 1 <= guests <= Limits.MAX_GUESTS:
            raise OrderValidationError(f"Guests must be between 1 and {Limits.MAX_GUESTS}")
        waiter_id = waiter_id if waiter_id is not None else ctx.staff_id
        if waiter_id is None:
            raise OrderValidationError("A waiter is required to open a table")
        waiter_name = waiter_name if waiter_name is not None else ctx.staff_name

        async def unit(store: OrderStore) -> tuple[RestaurantTable, TableSession, Order]:
            table = await self._load_table(store, table_id)
            check_table_transition(table, TableStatus.OCCUPIED)
            if await store.sessions.find_active_for_table(table.id) is not None:
                raise TableStateError(f"Table {table.label} already has an open session")

            session = await store.sessions.add(
                TableSession(
                    restaurant_id=restaurant_id,
                    table_id=table.id,
                    waiter_id=waiter_id,
                    waiter_name=waiter_name,
                    guests=guests,
                    status=SessionStatus.OPEN,
                    opened_at=utcnow(),
                )
            )
            order = await self._order_creator.create_order(
                store,
                restaurant_id=restaurant_id,
                session_id=session.id,
                staff_id=waiter_id,
            )
            store.tables.update(table, status=TableStatus.OCCUPIED)
            return table, session, order

        table, session, order = await self._run("occupy table", unit)

        ctx.table_id = table.id
        ctx.table_label = table.label
        ctx.session_id = session.id
        ctx.session_status = session.status
        ctx.waiter_id = session.waiter_id
        ctx.guests = session.guests
        ctx.is_counter = False
        ctx.reset_order_state()
        ctx.order = OrderView.model_validate(order)
        logger.info(
            "Table occupied",
            table_id=table.id,
            session_id=session.id,
            order_id=order.id,
            guests=guests,
        )
        return session

    async def print_bill(self) -> TableSession:
        """Mark the session billed; checkout is allowed from here on."""
        ctx = self._ctx
        session_id = self._require_session()

        async def unit(store: OrderStore) -> TableSession:
            session = await store.sessions.get(session_id)
            if session is None or session.status == SessionStatus.CLOSE:
                raise StaleReferenceError("Table session", session_id)
            if session.status == SessionStatus.OPEN:
                store.sessions.update(session, status=SessionStatus.BILLED)
            return session

        session = await self._run("print bill", unit)
        ctx.session_status = session.status
        logger.info("Bill printed", session_id=session_id)
        return session

    def _require_session(self) -> int:
        if self._ctx.session_id is None:
            raise TableStateError("No open session for this table")
        return self._ctx.session_id

    # =========================================================================
    # Closing
    # =========================================================================

    async def close_session(self, store: OrderStore, session_id: int) -> None:
        """Close inside the caller's unit of work and free the table."""
        session = await store.sessions.get(session_id)
        if session is None:
            raise StaleReferenceError("Table session", session_id)
        if session.status == SessionStatus.CLOSE:
            return
        store.sessions.update(session, status=SessionStatus.CLOSE, closed_at=utcnow())
        table = await store.tables.get(session.table_id)
        if table is not None:
            store.tables.update(table, status=TableStatus.AVAILABLE)

    async def force_close(self, table_id: int | None = None) -> None:
        """Close the table's active session without payment."""
        ctx = self._ctx
        table_id = table_id if table_id is not None else ctx.table_id
        if table_id is None:
            raise TableStateError("No table selected")

        async def unit(store: OrderStore) -> int:
            table = await self._load_table(store, table_id)
            session = await store.sessions.find_active_for_table(table.id)
            if session is None:
                if table.status != TableStatus.OCCUPIED:
                    raise InvalidTransitionError("table", table.status, TableStatus.AVAILABLE)
                store.tables.update(table, status=TableStatus.AVAILABLE)
                return 0
            await self.close_session(store, session.id)
            return session.id

        session_id = await self._run("force close", unit)
        if ctx.table_id == table_id:
            ctx.reset_order_state()
            ctx.session_id = None
            ctx.session_status = SessionStatus.CLOSE
        logger.info("Table force-closed", table_id=table_id, session_id=session_id or None)

    # =========================================================================
    # Transfer
    # =========================================================================

    async def transfer(self, destination_table_id: int) -> TableSession:
        """Move the active session to an available table."""
        ctx = self._ctx
        session_id = self._require_session()
        if destination_table_id == ctx.table_id:
            raise TableStateError("Destination is the current table")

        async def unit(store: OrderStore) -> tuple[TableSession, RestaurantTable]:
            session = await store.sessions.get(session_id)
            if session is None or session.status == SessionStatus.CLOSE:
                raise StaleReferenceError("Table session", session_id)
            destination = await self._load_table(store, destination_table_id)
            if destination.status != TableStatus.AVAILABLE:
                raise TableStateError(f"Table {destination.label} is not available")
            if await store.sessions.find_active_for_table(destination.id) is not None:
                raise TableStateError(f"Table {destination.label} already has an open session")

            source = await store.tables.get(session.table_id)
            if source is not None:
                store.tables.update(source, status=TableStatus.AVAILABLE)
            store.tables.update(destination, status=TableStatus.OCCUPIED)
            store.sessions.update(session, table_id=destination.id)
            return session, destination

        session, destination = await self._run("transfer table", unit)
        source_table_id = ctx.table_id
        ctx.table_id = destination.id
        ctx.table_label = destination.label
        logger.info(
            "Table transferred",
            session_id=session.id,
            from_table_id=source_table_id,
            to_table_id=destination.id,
        )
        return session
