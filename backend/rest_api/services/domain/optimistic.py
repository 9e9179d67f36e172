"""
Optimistic update & rollback.

Local state changes first so the UI reacts with zero latency; the store
write follows. On success the order is re-fetched to pick up server-side
values. On failure the pre-mutation snapshot is restored in full.
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from pydantic import BaseModel

from shared.config.logging import get_logger
from .errors import OrderEngineError, PersistenceError, StaleReferenceError
from .order_session import LineItem, OrderSession, TaskView

logger = get_logger(__name__)

T = TypeVar("T")


class Snapshot(BaseModel):
    """Everything a rollback restores."""

    items: list[LineItem]
    tasks: list[TaskView]
    total_cents: int
    total_qty: int
    remaining_cents: int

    @classmethod
    def capture(cls, ctx: OrderSession) -> "Snapshot":
        return cls(
            items=[item.model_copy(deep=True) for item in ctx.items],
            tasks=[task.model_copy(deep=True) for task in ctx.tasks],
            total_cents=ctx.total_cents,
            total_qty=ctx.total_qty,
            remaining_cents=ctx.remaining_cents,
        )

    def restore(self, ctx: OrderSession) -> None:
        ctx.items = [item.model_copy(deep=True) for item in self.items]
        ctx.tasks = [task.model_copy(deep=True) for task in self.tasks]
        ctx.total_cents = self.total_cents
        ctx.total_qty = self.total_qty
        ctx.remaining_cents = self.remaining_cents


class OptimisticUpdateManager:
    """
    The single writer path for an OrderSession's item list.

    Callers must already hold `ctx.mutation_lock`.
    """

    def __init__(self, ctx: OrderSession, refetch: Callable[[], Awaitable[None]]):
        self._ctx = ctx
        self._refetch = refetch

    async def with_optimistic_update(
        self,
        mutate_local: Callable[[], None],
        persist: Callable[[], Awaitable[T]],
        *,
        label: str,
        on_success: Callable[[T], None] | None = None,
    ) -> T:
        """
        Apply `mutate_local`, then await `persist`.

        `on_success` receives the persist result (e.g. to swap a temporary
        id for the server id) before the reconciling re-fetch.

        Raises:
            PersistenceError: store failure, snapshot restored.
            StaleReferenceError: the target vanished, snapshot restored and
                local state re-fetched.
            OrderEngineError: any domain error raised inside persist, after
                the snapshot is restored.
        """
        ctx = self._ctx
        snapshot = Snapshot.capture(ctx)

        mutate_local()
        ctx.recompute_totals()

        try:
            result = await persist()
        except StaleReferenceError:
            snapshot.restore(ctx)
            logger.warning("Stale reference, refreshing", operation=label)
            await self._reconcile(label)
            raise
        except OrderEngineError:
            snapshot.restore(ctx)
            raise
        except Exception as e:
            snapshot.restore(ctx)
            logger.warning("Optimistic update rolled back", operation=label, error=str(e))
            raise PersistenceError(label) from e

        if on_success is not None:
            on_success(result)
        await self._reconcile(label)
        return result

    async def _reconcile(self, label: str) -> None:
        # Write already committed; the next change event re-syncs
        try:
            await self._refetch()
        except Exception as e:
            logger.error("Re-fetch after write failed", operation=label, error=str(e))
