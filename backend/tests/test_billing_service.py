"""
Tests for payment reconciliation: quotes, settlement, void and comp.
"""

from types import SimpleNamespace

import pytest

from rest_api.models import MenuItem, RestaurantTable, TableSession
from rest_api.services.background import drain_background
from rest_api.services.domain import (
    CheckoutBlockedError,
    InsufficientPaymentError,
    OrderValidationError,
    StaleReferenceError,
)
from rest_api.services.domain.billing_service import tag_note
from shared.config.constants import (
    Courses,
    ItemType,
    KITCHEN_ROLES,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
    SessionStatus,
    TableStatus,
)
from tests.conftest import RESTAURANT_ID


@pytest.fixture
async def bill(table_engine, db_session):
    """T1 with two lines, A = 10.00 and B = 5.00, bill printed."""
    a = MenuItem(
        restaurant_id=RESTAURANT_ID, name="Item A", price_cents=1000,
        type=ItemType.FOOD, course=Courses.STARTER,
    )
    b = MenuItem(
        restaurant_id=RESTAURANT_ID, name="Item B", price_cents=500,
        type=ItemType.DRINK, course=Courses.DRINKS,
    )
    db_session.add_all([a, b])
    await db_session.commit()

    line_a = await table_engine.add_item(a.id)
    line_b = await table_engine.add_item(b.id)
    await table_engine.print_bill()
    return SimpleNamespace(engine=table_engine, a=line_a.id, b=line_b.id)


async def session_row(store, engine_or_id):
    session_id = engine_or_id if isinstance(engine_or_id, int) else engine_or_id.ctx.session_id
    return await store.sessions.get(session_id, fresh=True)


class TestQuotes:
    async def test_full_quote_covers_unpaid_lines(self, bill):
        quote = bill.engine.quote_full()

        assert quote.due_cents == 1500
        assert sorted(quote.item_ids) == sorted([bill.a, bill.b])

    async def test_partial_quote_ignores_unknown_ids(self, bill):
        quote = bill.engine.quote_partial([bill.a, 999])

        assert quote.due_cents == 1000
        assert quote.item_ids == [bill.a]

    async def test_equal_split_rounds_half_up(self, bill):
        assert bill.engine.quote_equal_split(2).due_cents == 750
        assert bill.engine.quote_equal_split(4).due_cents == 375
        assert bill.engine.quote_equal_split(0).due_cents == 1500

    async def test_negative_tip_is_rejected(self, bill):
        with pytest.raises(OrderValidationError):
            bill.engine.set_tip(-1)


class TestSettle:
    """Settlement against cash + card tender."""

    async def test_short_payment_is_rejected_without_change(self, bill, store, receipt_sink):
        """settle(cash=5.00) against 10.00 due is short by 5.00 and applies nothing."""
        scope = bill.engine.quote_partial([bill.a])
        before = bill.engine.ctx.model_dump()

        with pytest.raises(InsufficientPaymentError) as exc_info:
            await bill.engine.settle(cash_cents=500, card_cents=0, scope=scope)

        assert exc_info.value.short_by_cents == 500
        assert "short by 5.00" in str(exc_info.value)
        assert bill.engine.ctx.model_dump() == before
        row = await store.items.get(bill.a, fresh=True)
        assert row.payment_status == PaymentStatus.PENDING
        assert receipt_sink.receipts == []

    async def test_split_by_item_keeps_session_open(self, bill, store):
        """Paying A (10.00) leaves B (5.00) unpaid and the session open."""
        scope = bill.engine.quote_partial([bill.a])
        assert scope.due_cents == 1000

        result = await bill.engine.settle(cash_cents=1000, card_cents=0, scope=scope)

        assert result.fully_settled is False
        assert result.change_cents == 0
        row = await store.items.get(bill.a, fresh=True)
        assert row.payment_status == PaymentStatus.COMPLETED
        assert row.completed_at is not None
        assert bill.engine.ctx.remaining_cents == 500
        assert bill.engine.ctx.total_cents == 1500
        assert (await session_row(store, bill)).status == SessionStatus.BILLED

    async def test_full_settlement_closes_session_and_frees_table(self, bill, store):
        """Paying the last unpaid line serves the order, closes the session, frees the table."""
        session_id = bill.engine.ctx.session_id
        order_id = bill.engine.ctx.order.id
        table_id = bill.engine.ctx.table_id
        await bill.engine.settle(
            cash_cents=1000, scope=bill.engine.quote_partial([bill.a])
        )

        result = await bill.engine.settle(
            cash_cents=500, scope=bill.engine.quote_partial([bill.b])
        )

        assert result.fully_settled is True
        order = await store.orders.get(order_id, fresh=True)
        assert order.status == OrderStatus.SERVED
        session = await session_row(store, session_id)
        assert session.status == SessionStatus.CLOSE
        assert session.closed_at is not None
        table = await store.tables.get(table_id, fresh=True)
        assert table.status == TableStatus.AVAILABLE
        assert bill.engine.ctx.order is None
        assert bill.engine.ctx.items == []
        assert bill.engine.ctx.session_status == SessionStatus.CLOSE

    async def test_change_and_receipt(self, bill, receipt_sink):
        bill.engine.set_tip(200)

        result = await bill.engine.settle(cash_cents=1000, card_cents=1000)
        await drain_background()

        assert result.change_cents == 500
        receipt = receipt_sink.receipts[0]
        assert receipt.total_cents == 1500
        assert receipt.total_qty == 2
        assert receipt.cash_cents == 1000
        assert receipt.card_cents == 1000
        assert receipt.change_cents == 500
        assert receipt.table_label == "T1"
        assert receipt.staff_name == "Ana"
        assert [line.name for line in receipt.items] == ["Item A", "Item B"]

    async def test_tip_is_written_on_full_settlement(self, bill, store):
        order_id = bill.engine.ctx.order.id
        bill.engine.set_tip(300)

        await bill.engine.settle(card_cents=1500)

        order = await store.orders.get(order_id, fresh=True)
        assert order.tip_cents == 300
        assert order.total_cents == 1500

    async def test_equal_split_marks_nothing(self, bill, store):
        scope = bill.engine.quote_equal_split(3)

        result = await bill.engine.settle(cash_cents=500, scope=scope)

        assert result.quote.due_cents == 500
        assert result.paid_item_ids == []
        assert result.fully_settled is False
        row = await store.items.get(bill.a, fresh=True)
        assert row.payment_status == PaymentStatus.PENDING

    async def test_checkout_blocked_until_bill_printed(self, table_engine, menu):
        await table_engine.add_item(menu["soup"])

        with pytest.raises(CheckoutBlockedError):
            await table_engine.settle(cash_cents=450)

    async def test_nothing_left_to_pay(self, table_engine):
        await table_engine.print_bill()

        with pytest.raises(OrderValidationError):
            await table_engine.settle(cash_cents=100)

    async def test_receipt_failure_does_not_undo_payment(self, bill, store, receipt_sink):
        async def broken(restaurant_id, receipt):
            raise ConnectionError("printer offline")

        receipt_sink.emit = broken
        order_id = bill.engine.ctx.order.id

        result = await bill.engine.settle(cash_cents=1500)

        assert result.fully_settled is True
        assert (await store.orders.get(order_id, fresh=True)).status == OrderStatus.SERVED

    async def test_counter_order_settles_without_bill(self, counter_engine, store, menu):
        order_id = counter_engine.ctx.order.id
        await counter_engine.add_item(menu["wine"])

        result = await counter_engine.settle(cash_cents=1000)

        assert result.fully_settled is True
        assert result.change_cents == 300
        assert (await store.orders.get(order_id, fresh=True)).status == OrderStatus.SERVED
        assert await store.sessions.count() == 0


class TestVoidAndComp:
    """Void removes a line from totals; comp zeroes its price."""

    async def test_comp_zeroes_price_and_touches_tasks(self, bill, store):
        item_a = bill.a
        tasks_before = await store.tasks.find_by(
            store.tasks.model.order_item_id == item_a, fresh=True
        )
        stamps_before = {t.id: t.updated_at for t in tasks_before}

        comped = await bill.engine.comp_item(item_a, "manager override")

        row = await store.items.get(item_a, fresh=True)
        assert row.unit_price_cents == 0
        assert row.sum_price_cents == 0
        assert row.status == OrderItemStatus.PENDING
        assert row.note == "[COMP: manager override]"
        assert comped.sum_price_cents == 0
        tasks_after = await store.tasks.find_by(
            store.tasks.model.order_item_id == item_a, fresh=True
        )
        assert [t.id for t in tasks_after] == list(stamps_before)
        assert all(t.updated_at >= stamps_before[t.id] for t in tasks_after)
        assert bill.engine.ctx.total_cents == 500

    async def test_void_cancels_line_and_deletes_tasks(self, bill, store):
        item_b = bill.b

        await bill.engine.void_item(item_b, "spilled")

        row = await store.items.get(item_b, fresh=True)
        assert row.status == OrderItemStatus.CANCELLED
        assert row.note == "[VOID: spilled]"
        assert await store.tasks.find_by_item(item_b) == []
        assert bill.engine.ctx.total_cents == 1000
        assert bill.engine.ctx.remaining_cents == 1000
        assert bill.engine.quote_full().item_ids == [bill.a]

    async def test_voided_line_cannot_be_changed_again(self, bill):
        await bill.engine.void_item(bill.b, "spilled")

        with pytest.raises(OrderValidationError):
            await bill.engine.comp_item(bill.b, "again")

    async def test_reason_is_required(self, bill):
        with pytest.raises(OrderValidationError):
            await bill.engine.void_item(bill.a, "   ")

    async def test_paid_line_cannot_be_voided(self, bill):
        await bill.engine.settle(
            cash_cents=1000, scope=bill.engine.quote_partial([bill.a])
        )

        with pytest.raises(OrderValidationError):
            await bill.engine.void_item(bill.a, "too late")

    async def test_void_of_unknown_line_is_stale(self, bill):
        with pytest.raises(StaleReferenceError):
            await bill.engine.void_item(4242, "ghost")

    async def test_void_notifies_station(self, table_engine, menu, notifier):
        soup = await table_engine.add_item(menu["soup"])
        await drain_background()
        notifier.sent.clear()

        await table_engine.void_item(soup.id, "wrong table")
        await drain_background()

        assert notifier.titles() == ["Item Voided"]
        assert notifier.sent[0].roles == KITCHEN_ROLES

    def test_tag_note_appends(self):
        assert tag_note(None, "VOID", "x") == "[VOID: x]"
        assert tag_note("no salt", "COMP", "vip") == "no salt [COMP: vip]"


class TestSessionClosedElsewhere:
    async def test_refresh_after_remote_close_clears_order(self, table_engine, store, db_session):
        session = await db_session.get(TableSession, table_engine.ctx.session_id)
        session.status = SessionStatus.CLOSE
        table = await db_session.get(RestaurantTable, table_engine.ctx.table_id)
        table.status = TableStatus.AVAILABLE
        await db_session.commit()

        await table_engine.refresh()

        assert table_engine.ctx.order is None
        assert table_engine.ctx.session_id is None
        assert table_engine.ctx.session_status == SessionStatus.CLOSE
