"""
Tests for change-feed reconciliation.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from rest_api.services.domain import OrderEngine
from rest_api.services.domain.engine import SCOPE_ORDER, SCOPE_SESSION
from rest_api.services.realtime import Reconciler
from shared.config.constants import StoreTable
from shared.infrastructure.events import STORE_CHANGED
from tests.conftest import RESTAURANT_ID


@pytest.fixture
def engine():
    return SimpleNamespace(
        ctx=SimpleNamespace(restaurant_id=1, session_id=5),
        reconcile=AsyncMock(),
    )


@pytest.fixture
def reconciler(engine):
    return Reconciler(engine, queue_size=10)


def change(table, restaurant_id=1, event="update", type=STORE_CHANGED):
    return {
        "type": type,
        "restaurant_id": restaurant_id,
        "entity": {"table": table, "event": event},
    }


class TestIntake:
    def test_duplicate_scope_is_coalesced(self, reconciler):
        assert reconciler.on_change(StoreTable.ORDER_ITEMS) is True
        assert reconciler.on_change(StoreTable.KITCHEN_TASKS) is False
        assert reconciler.on_change(StoreTable.TABLE_SESSIONS) is True

        assert reconciler.pending_scopes == {SCOPE_ORDER, SCOPE_SESSION}

    def test_unknown_table_is_ignored(self, reconciler):
        assert reconciler.on_change("menu_items") is False
        assert reconciler.pending_scopes == set()

    def test_full_queue_drops_change(self, engine):
        reconciler = Reconciler(engine, queue_size=1)
        reconciler.on_change(StoreTable.ORDERS)

        assert reconciler.on_change(StoreTable.RESTAURANT_TABLES) is False
        assert reconciler.pending_scopes == {SCOPE_ORDER}

    async def test_handle_message_filters_restaurant_and_type(self, reconciler):
        await reconciler.handle_message(change(StoreTable.ORDERS, restaurant_id=2))
        await reconciler.handle_message(change(StoreTable.ORDERS, type="STAFF_NOTIFICATION"))
        await reconciler.handle_message({"type": STORE_CHANGED, "restaurant_id": 1, "entity": {}})
        assert reconciler.pending_scopes == set()

        await reconciler.handle_message(change(StoreTable.ORDERS))
        assert reconciler.pending_scopes == {SCOPE_ORDER}


class TestDrain:
    async def test_one_refetch_per_drain(self, reconciler, engine):
        reconciler.on_change(StoreTable.ORDER_ITEMS)
        reconciler.on_change(StoreTable.TABLE_SESSIONS)

        drained = await reconciler.drain_once()

        assert drained == 2
        engine.reconcile.assert_awaited_once_with({SCOPE_ORDER, SCOPE_SESSION})
        assert reconciler.pending_scopes == set()

    async def test_nothing_queued(self, reconciler, engine):
        assert await reconciler.drain_once() == 0
        engine.reconcile.assert_not_awaited()

    async def test_scope_requeues_after_drain(self, reconciler, engine):
        reconciler.on_change(StoreTable.ORDERS)
        await reconciler.drain_once()

        assert reconciler.on_change(StoreTable.ORDERS) is True
        assert await reconciler.drain_pending() == 1
        assert engine.reconcile.await_count == 2

    async def test_refetch_failure_is_logged_not_raised(self, reconciler, engine):
        engine.reconcile.side_effect = ConnectionError("store down")
        reconciler.on_change(StoreTable.ORDERS)

        assert await reconciler.drain_once() == 1
        assert reconciler.pending_scopes == set()


class TestLifecycle:
    async def test_run_loop_drains_changes(self, reconciler, engine):
        await reconciler.start(subscribe=False)
        try:
            reconciler.on_change(StoreTable.ORDER_ITEMS)
            for _ in range(50):
                if engine.reconcile.await_count:
                    break
                await asyncio.sleep(0.01)
        finally:
            await reconciler.stop()

        engine.reconcile.assert_awaited_once_with({SCOPE_ORDER})

    async def test_stop_is_idempotent(self, reconciler):
        await reconciler.start(subscribe=False)
        await reconciler.stop()
        await reconciler.stop()


class TestEngineReconcile:
    async def test_reconcile_picks_up_other_terminal_writes(self, table_engine, store, menu):
        other = await OrderEngine.for_session(
            store, table_engine.ctx.session_id, restaurant_id=RESTAURANT_ID
        )
        await other.add_item(menu["soup"])
        reconciler = Reconciler(table_engine)

        reconciler.on_change(StoreTable.ORDER_ITEMS)
        await reconciler.drain_once()

        assert [item.name for item in table_engine.ctx.items] == ["Soup"]
        assert table_engine.ctx.total_cents == 450
