"""
Tests for optimistic update and rollback.
"""

from unittest.mock import AsyncMock, patch

import pytest

from rest_api.services.domain import (
    LineItem,
    OrderEngine,
    OrderSession,
    OrderValidationError,
    PersistenceError,
    StaleReferenceError,
)
from rest_api.services.domain.optimistic import OptimisticUpdateManager, Snapshot
from tests.conftest import RESTAURANT_ID


def make_ctx() -> OrderSession:
    ctx = OrderSession(restaurant_id=RESTAURANT_ID, session_id=1)
    ctx.load(
        [
            LineItem(id=1, menu_item_id=10, name="Soup", quantity=2,
                     unit_price_cents=450, sum_price_cents=900),
        ],
        [],
    )
    return ctx


def bump(ctx: OrderSession):
    def mutate() -> None:
        ctx.items[0].set_quantity(5)

    return mutate


class TestSnapshot:
    def test_restore_is_deep(self):
        ctx = make_ctx()
        snapshot = Snapshot.capture(ctx)

        ctx.items[0].set_quantity(9)
        ctx.recompute_totals()
        snapshot.restore(ctx)

        assert ctx.items[0].quantity == 2
        assert ctx.total_cents == 900


class TestOptimisticUpdateManager:
    async def test_success_applies_and_refetches(self):
        ctx = make_ctx()
        refetch = AsyncMock()
        manager = OptimisticUpdateManager(ctx, refetch)

        result = await manager.with_optimistic_update(
            bump(ctx), AsyncMock(return_value=7), label="bump"
        )

        assert result == 7
        assert ctx.total_cents == 2250
        refetch.assert_awaited_once()

    async def test_on_success_runs_before_refetch(self):
        ctx = make_ctx()
        calls = []

        async def refetch():
            calls.append("refetch")

        manager = OptimisticUpdateManager(ctx, refetch)
        await manager.with_optimistic_update(
            bump(ctx),
            AsyncMock(return_value=3),
            label="bump",
            on_success=lambda result: calls.append(("success", result)),
        )

        assert calls == [("success", 3), "refetch"]

    async def test_store_failure_restores_byte_equal_state(self):
        ctx = make_ctx()
        before = ctx.model_dump()
        refetch = AsyncMock()
        manager = OptimisticUpdateManager(ctx, refetch)

        with pytest.raises(PersistenceError) as exc_info:
            await manager.with_optimistic_update(
                bump(ctx), AsyncMock(side_effect=RuntimeError("db down")), label="bump"
            )

        assert ctx.model_dump() == before
        assert exc_info.value.operation == "bump"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        refetch.assert_not_awaited()

    async def test_domain_error_is_reraised_unchanged(self):
        ctx = make_ctx()
        before = ctx.model_dump()
        manager = OptimisticUpdateManager(ctx, AsyncMock())

        with pytest.raises(OrderValidationError):
            await manager.with_optimistic_update(
                bump(ctx),
                AsyncMock(side_effect=OrderValidationError("nope")),
                label="bump",
            )

        assert ctx.model_dump() == before

    async def test_stale_reference_restores_then_refetches(self):
        ctx = make_ctx()
        refetch = AsyncMock()
        manager = OptimisticUpdateManager(ctx, refetch)

        with pytest.raises(StaleReferenceError):
            await manager.with_optimistic_update(
                bump(ctx),
                AsyncMock(side_effect=StaleReferenceError("Order item", 1)),
                label="bump",
            )

        assert ctx.items[0].quantity == 2
        refetch.assert_awaited_once()

    async def test_refetch_failure_does_not_undo_committed_write(self):
        ctx = make_ctx()
        manager = OptimisticUpdateManager(ctx, AsyncMock(side_effect=ConnectionError("gone")))

        result = await manager.with_optimistic_update(
            bump(ctx), AsyncMock(return_value="ok"), label="bump"
        )

        assert result == "ok"
        assert ctx.items[0].quantity == 5


class TestEngineRollback:
    """Store failures surface as PersistenceError with nothing applied."""

    async def test_failed_add_reverts_local_state(self, table_engine, store, menu):
        await table_engine.add_item(menu["soup"])
        before = table_engine.ctx.model_dump()

        with patch.object(store, "run", AsyncMock(side_effect=RuntimeError("db down"))):
            with pytest.raises(PersistenceError):
                await table_engine.add_item(menu["wine"])

        assert table_engine.ctx.model_dump() == before

    async def test_failed_increment_reverts_local_state(self, table_engine, store, menu):
        soup = await table_engine.add_item(menu["soup"])
        before = table_engine.ctx.model_dump()

        with patch.object(store, "run", AsyncMock(side_effect=RuntimeError("db down"))):
            with pytest.raises(PersistenceError):
                await table_engine.change_quantity(soup.id, 1)

        assert table_engine.ctx.model_dump() == before
        assert (await store.items.get(soup.id, fresh=True)).quantity == 1

    async def test_line_removed_elsewhere_is_refetched(self, table_engine, store, menu):
        soup = await table_engine.add_item(menu["soup"])
        other = await OrderEngine.for_session(
            store, table_engine.ctx.session_id, restaurant_id=RESTAURANT_ID
        )
        await other.remove_item(soup.id)

        with pytest.raises(StaleReferenceError):
            await table_engine.change_quantity(soup.id, 1)

        assert table_engine.ctx.find_item(soup.id) is None
        assert table_engine.ctx.total_cents == 0
