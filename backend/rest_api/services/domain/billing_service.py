"""
Payment Reconciliation Engine.

Quotes (full, by item, equal split) over the unpaid, non-cancelled lines,
settlement against cash + card tender, void and comp. A settlement that
leaves nothing unpaid closes the order and its table session.
"""

from __future__ import annotations

from typing import Iterable, Literal, Protocol, Sequence

from pydantic import BaseModel, Field

from shared.config.constants import (
    COMP_NOTE_PREFIX,
    Limits,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
    Priority,
    SessionStatus,
    VOID_NOTE_PREFIX,
)
from shared.config.logging import billing_logger as logger
from shared.utils.money import format_cents, split_evenly
from rest_api.models import OrderItem, utcnow
from rest_api.repositories import OrderStore
from rest_api.services.notifications import Notification, Notifier, notify_in_background
from rest_api.services.receipts import Receipt, ReceiptLine, ReceiptSink, emit_in_background
from .errors import (
    CheckoutBlockedError,
    InsufficientPaymentError,
    OrderValidationError,
    StaleReferenceError,
)
from .optimistic import OptimisticUpdateManager
from .order_session import ItemId, LineItem, OrderSession, is_temp_id
from .task_dispatcher import PreparationTaskDispatcher, roles_for

QuoteMode = Literal["full", "partial", "split"]


class SessionCloser(Protocol):
    """Closes a table session inside the caller's unit of work."""

    async def close_session(self, store: OrderStore, session_id: int) -> None: ...


class Quote(BaseModel):
    """Amount due for one settlement scope."""

    mode: QuoteMode
    due_cents: int
    item_ids: list[int] = Field(default_factory=list)
    guests: int | None = None
    remaining_cents: int = 0


class SettlementResult(BaseModel):
    quote: Quote
    tendered_cents: int
    change_cents: int
    paid_item_ids: list[int]
    fully_settled: bool
    receipt: Receipt


def tag_note(note: str | None, prefix: str, reason: str) -> str:
    """Append a '[PREFIX: reason]' tag to a line note."""
    tag = f"[{prefix}: {reason}]"
    return f"{note} {tag}" if note else tag


class PaymentReconciliationEngine:
    """
    Payments for the order held by an OrderSession.

    All amounts are integer cents; comparisons are therefore exact at two
    decimals.
    """

    def __init__(
        self,
        ctx: OrderSession,
        store: OrderStore,
        optimistic: OptimisticUpdateManager,
        dispatcher: PreparationTaskDispatcher,
        session_closer: SessionCloser,
        receipt_sink: ReceiptSink | None = None,
        notifier: Notifier | None = None,
    ):
        self._ctx = ctx
        self._store = store
        self._optimistic = optimistic
        self._dispatcher = dispatcher
        self._session_closer = session_closer
        self._receipt_sink = receipt_sink
        self._notifier = notifier

    # =========================================================================
    # Quotes
    # =========================================================================

    def _eligible(self) -> list[LineItem]:
        return [line for line in self._ctx.unpaid_items() if not is_temp_id(line.id)]

    def quote_full(self) -> Quote:
        lines = self._eligible()
        due = sum(line.sum_price_cents for line in lines)
        return Quote(
            mode="full",
            due_cents=due,
            item_ids=[line.id for line in lines],
            remaining_cents=self._ctx.remaining_cents,
        )

    def quote_partial(self, item_ids: Iterable[ItemId]) -> Quote:
        """Due for the selected lines; ids that are not unpaid lines are ignored."""
        wanted = set(item_ids)
        lines = [line for line in self._eligible() if line.id in wanted]
        return Quote(
            mode="partial",
            due_cents=sum(line.sum_price_cents for line in lines),
            item_ids=[line.id for line in lines],
            remaining_cents=self._ctx.remaining_cents,
        )

    def quote_equal_split(self, guests: int) -> Quote:
        """One guest's share of everything unpaid. Marks nothing on settle."""
        guests = max(guests, 1)
        unpaid = sum(line.sum_price_cents for line in self._eligible())
        return Quote(
            mode="split",
            due_cents=split_evenly(unpaid, guests),
            guests=guests,
            remaining_cents=self._ctx.remaining_cents,
        )

    def requote(self, quote: Quote) -> Quote:
        """The same scope priced against the current lines."""
        if quote.mode == "partial":
            return self.quote_partial(quote.item_ids)
        if quote.mode == "split":
            return self.quote_equal_split(quote.guests or 1)
        return self.quote_full()

    # =========================================================================
    # Tender
    # =========================================================================

    def set_tip(self, tip_cents: int) -> None:
        """Tip accumulated on the client; written to the order on full settlement."""
        if tip_cents < 0:
            raise OrderValidationError("Tip cannot be negative")
        self._ctx.tip_cents = tip_cents

    def _check_checkout_allowed(self) -> None:
        ctx = self._ctx
        if ctx.order is None:
            raise OrderValidationError("There is no order to pay")
        if ctx.is_counter or ctx.order.is_counter:
            return
        if ctx.session_status != SessionStatus.BILLED:
            raise CheckoutBlockedError("Print the bill before taking payment")

    async def settle(
        self,
        cash_cents: int = 0,
        card_cents: int = 0,
        scope: Quote | None = None,
    ) -> SettlementResult:
        """
        Take payment for `scope` (the full bill by default).

        Raises InsufficientPaymentError, with nothing applied, when
        cash + card is below the amount due.
        """
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        self._check_checkout_allowed()
        if cash_cents < 0 or card_cents < 0:
            raise OrderValidationError("Tendered amounts cannot be negative")

        quote = self.requote(scope) if scope is not None else self.quote_full()
        if quote.mode != "split" and not quote.item_ids:
            raise OrderValidationError("Nothing left to pay")
        if quote.mode == "split" and not self._eligible():
            raise OrderValidationError("Nothing left to pay")

        tendered = cash_cents + card_cents
        if tendered < quote.due_cents:
            logger.info(
                "Payment rejected",
                order_id=ctx.order.id,
                due_cents=quote.due_cents,
                tendered_cents=tendered,
            )
            raise InsufficientPaymentError(quote.due_cents - tendered)

        order_id = ctx.order.id
        session_id = ctx.session_id
        tip_cents = ctx.tip_cents
        paying_ids = set(quote.item_ids)
        paying = [line for line in ctx.items if line.id in paying_ids]
        receipt = self._build_receipt(
            paying if quote.mode != "split" else self._eligible(),
            quote.due_cents,
            cash_cents,
            card_cents,
        )
        completed_at = utcnow()

        def mutate_local() -> None:
            for line in paying:
                line.payment_status = PaymentStatus.COMPLETED
                line.completed_at = completed_at

        async def persist() -> bool:
            async def unit(store: OrderStore) -> bool:
                rows: Sequence[OrderItem] = await store.items.get_many(quote.item_ids)
                if len(rows) != len(quote.item_ids):
                    raise StaleReferenceError("Order item")
                for row in rows:
                    if row.status == OrderItemStatus.CANCELLED:
                        raise StaleReferenceError("Order item", row.id)
                    if row.payment_status == PaymentStatus.COMPLETED:
                        raise OrderValidationError(f"'{row.name}' is already paid")
                    store.items.update(
                        row, payment_status=PaymentStatus.COMPLETED, completed_at=completed_at
                    )
                return await self._close_if_settled(store, order_id, session_id, tip_cents)

            return await self._store.run("settle payment", unit, restaurant_id=restaurant_id)

        fully_settled = await self._optimistic.with_optimistic_update(
            mutate_local, persist, label="settle payment"
        )
        ctx.cash_cents = cash_cents
        ctx.card_cents = card_cents

        logger.info(
            "Payment settled",
            order_id=order_id,
            mode=quote.mode,
            due_cents=quote.due_cents,
            tendered_cents=tendered,
            change_cents=receipt.change_cents,
            fully_settled=fully_settled,
        )
        emit_in_background(self._receipt_sink, restaurant_id, receipt)

        if fully_settled:
            ctx.reset_order_state()
            if session_id is not None:
                ctx.session_id = None
                ctx.session_status = SessionStatus.CLOSE

        return SettlementResult(
            quote=quote,
            tendered_cents=tendered,
            change_cents=receipt.change_cents,
            paid_item_ids=list(quote.item_ids),
            fully_settled=fully_settled,
            receipt=receipt,
        )

    async def _close_if_settled(
        self,
        store: OrderStore,
        order_id: int,
        session_id: int | None,
        tip_cents: int,
    ) -> bool:
        rows = await store.items.find_by_order(order_id)
        active = [row for row in rows if row.status != OrderItemStatus.CANCELLED]
        if not active or any(row.payment_status != PaymentStatus.COMPLETED for row in active):
            return False

        order = await store.orders.get(order_id)
        if order is None:
            raise StaleReferenceError("Order", order_id)
        store.orders.update(
            order,
            status=OrderStatus.SERVED,
            tip_cents=order.tip_cents + tip_cents,
            total_cents=sum(row.sum_price_cents for row in active),
        )
        if session_id is not None:
            await self._session_closer.close_session(store, session_id)
        return True

    def _build_receipt(
        self,
        lines: Sequence[LineItem],
        due_cents: int,
        cash_cents: int,
        card_cents: int,
    ) -> Receipt:
        ctx = self._ctx
        return Receipt(
            order_id=ctx.order.id,
            staff_name=ctx.staff_name,
            table_label=ctx.table_label,
            total_qty=sum(line.quantity for line in lines),
            total_cents=due_cents,
            items=[
                ReceiptLine(
                    name=line.name,
                    unit_price_cents=line.unit_price_cents,
                    quantity=line.quantity,
                    modifiers=[m.name for m in line.modifiers],
                    note=line.note,
                )
                for line in lines
            ],
            cash_cents=cash_cents,
            card_cents=card_cents,
            change_cents=cash_cents + card_cents - due_cents,
        )

    # =========================================================================
    # Void / comp
    # =========================================================================

    def _adjustable_line(self, item_id: ItemId, reason: str) -> tuple[LineItem, str]:
        reason = (reason or "").strip()
        if not reason:
            raise OrderValidationError("A reason is required")
        if len(reason) > Limits.MAX_REASON_LENGTH:
            raise OrderValidationError(f"Reason exceeds {Limits.MAX_REASON_LENGTH} characters")
        line = self._ctx.require_item(item_id)
        if is_temp_id(line.id):
            raise StaleReferenceError("Order item", item_id)
        if line.is_cancelled:
            raise OrderValidationError(f"'{line.name}' is already voided")
        if line.is_paid:
            raise OrderValidationError(f"'{line.name}' is already paid")
        return line, reason

    async def void_item(self, item_id: ItemId, reason: str) -> LineItem:
        """Cancel a line: out of every total, tasks deleted."""
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        line, reason = self._adjustable_line(item_id, reason)
        note = tag_note(line.note, VOID_NOTE_PREFIX, reason)

        def mutate_local() -> None:
            line.status = OrderItemStatus.CANCELLED
            line.note = note
            self._dispatcher.mirror_delete(ctx, line)

        async def persist() -> None:
            async def unit(store: OrderStore) -> None:
                row = await store.items.get(line.id)
                if row is None:
                    raise StaleReferenceError("Order item", line.id)
                store.items.update(row, status=OrderItemStatus.CANCELLED, note=note)
                await self._dispatcher.delete_all_tasks_for(row.id)

            await self._store.run("void item", unit, restaurant_id=restaurant_id)

        await self._optimistic.with_optimistic_update(mutate_local, persist, label="void item")
        logger.info("Item voided", order_item_id=line.id, reason=reason)
        self._notify_adjustment(line, "Item Voided", reason)
        return ctx.find_item(line.id) or line

    async def comp_item(self, item_id: ItemId, reason: str) -> LineItem:
        """Make a line free while it stays on the bill and the boards."""
        ctx = self._ctx
        restaurant_id = ctx.require_context()
        line, reason = self._adjustable_line(item_id, reason)
        note = tag_note(line.note, COMP_NOTE_PREFIX, reason)
        previous_cents = line.sum_price_cents

        def mutate_local() -> None:
            line.unit_price_cents = 0
            line.sum_price_cents = 0
            line.note = note

        async def persist() -> None:
            async def unit(store: OrderStore) -> None:
                row = await store.items.get(line.id)
                if row is None:
                    raise StaleReferenceError("Order item", line.id)
                store.items.update(row, unit_price_cents=0, sum_price_cents=0, note=note)
                await store.tasks.touch_for_item(row.id)

            await self._store.run("comp item", unit, restaurant_id=restaurant_id)

        await self._optimistic.with_optimistic_update(mutate_local, persist, label="comp item")
        logger.info(
            "Item comped",
            order_item_id=line.id,
            reason=reason,
            amount=format_cents(previous_cents),
        )
        self._notify_adjustment(line, "Item Comped", reason)
        return ctx.find_item(line.id) or line

    def _notify_adjustment(self, line: LineItem, title: str, reason: str) -> None:
        ctx = self._ctx
        notify_in_background(
            self._notifier,
            Notification(
                restaurant_id=ctx.restaurant_id,
                actor_id=ctx.staff_id,
                title=title,
                message=f"Table {ctx.table_label or '?'}: {line.name} ({reason})",
                priority=Priority.HIGH,
                roles=roles_for(line.type),
            ),
        )
