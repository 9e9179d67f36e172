"""
Change-feed reconciliation.

Store change notifications are level-triggered "something changed" signals.
Each one becomes an Invalidation on a queue; a single drain loop turns the
queued invalidations into one engine re-fetch. Duplicate pending
invalidations of the same scope are coalesced, and the re-fetch runs under
the OrderSession mutation lock so it never lands inside an optimistic update.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shared.config.constants import StoreTable
from shared.config.logging import bind_log_context, realtime_logger as logger
from shared.config.settings import settings
from shared.infrastructure.events import (
    STORE_CHANGED,
    channel_restaurant_changes,
    run_subscriber,
)
from rest_api.services.domain.engine import SCOPE_ORDER, SCOPE_SESSION

if TYPE_CHECKING:
    from rest_api.services.domain.engine import OrderEngine


TABLE_SCOPES: dict[str, str] = {
    StoreTable.ORDERS: SCOPE_ORDER,
    StoreTable.ORDER_ITEMS: SCOPE_ORDER,
    StoreTable.ORDER_ITEM_MODIFIERS: SCOPE_ORDER,
    StoreTable.KITCHEN_TASKS: SCOPE_ORDER,
    StoreTable.TABLE_SESSIONS: SCOPE_SESSION,
    StoreTable.RESTAURANT_TABLES: SCOPE_SESSION,
}


@dataclass(frozen=True)
class Invalidation:
    """Re-fetch request for one scope of an OrderSession."""

    scope: str
    table: str | None = None


class Reconciler:
    """
    Queue + drain loop in front of `OrderEngine.reconcile`.

    Usage:
        reconciler = Reconciler(engine)
        await reconciler.start()          # drain loop + Redis subscription
        ...
        await reconciler.stop()
    """

    def __init__(self, engine: "OrderEngine", *, queue_size: int | None = None):
        self._engine = engine
        self._queue: asyncio.Queue[Invalidation] = asyncio.Queue(
            maxsize=queue_size or settings.reconcile_queue_size
        )
        self._pending: set[str] = set()
        self._tasks: list[asyncio.Task] = []
        self._running = False

    @property
    def pending_scopes(self) -> set[str]:
        return set(self._pending)

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def on_change(self, table: str, event: str = "*") -> bool:
        """
        Enqueue an invalidation for a store change. Returns False when the
        change was coalesced into a pending one or dropped.
        """
        scope = TABLE_SCOPES.get(table)
        if scope is None:
            logger.debug("Ignoring change for unknown table", table=table, change=event)
            return False
        if scope in self._pending:
            return False
        try:
            self._queue.put_nowait(Invalidation(scope=scope, table=table))
        except asyncio.QueueFull:
            logger.warning("Reconcile queue full, change dropped", table=table)
            return False
        self._pending.add(scope)
        return True

    async def handle_message(self, data: dict[str, Any]) -> None:
        """Subscriber callback for the restaurant change feed."""
        if data.get("type") != STORE_CHANGED:
            return
        if data.get("restaurant_id") != self._engine.ctx.restaurant_id:
            return
        entity = data.get("entity") or {}
        table = entity.get("table")
        if not isinstance(table, str):
            logger.warning("Change event without table", event=data)
            return
        self.on_change(table, entity.get("event", "*"))

    # ------------------------------------------------------------------
    # Drain
    # ------------------------------------------------------------------

    def _take_all(self) -> list[Invalidation]:
        taken = []
        while True:
            try:
                taken.append(self._queue.get_nowait())
            except asyncio.QueueEmpty:
                return taken

    async def _reconcile(self, invalidations: list[Invalidation]) -> None:
        scopes = {inv.scope for inv in invalidations}
        # Cleared first: a change arriving during the re-fetch queues another pass
        self._pending.difference_update(scopes)
        try:
            await self._engine.reconcile(scopes)
        except Exception as e:
            logger.error("Reconcile failed", scopes=sorted(scopes), error=str(e))
        finally:
            for _ in invalidations:
                self._queue.task_done()

    async def drain_once(self) -> int:
        """Process everything queued right now with one re-fetch."""
        invalidations = self._take_all()
        if invalidations:
            await self._reconcile(invalidations)
        return len(invalidations)

    async def drain_pending(self) -> int:
        """Drain until the queue stays empty."""
        total = 0
        while not self._queue.empty():
            total += await self.drain_once()
        return total

    async def run(self) -> None:
        """Drain loop: wait for one invalidation, then take the rest with it."""
        while self._running:
            try:
                first = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            await self._reconcile([first, *self._take_all()])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def listen(self) -> None:
        restaurant_id = self._engine.ctx.restaurant_id
        await run_subscriber([channel_restaurant_changes(restaurant_id)], self.handle_message)

    async def start(self, *, subscribe: bool = True) -> None:
        if self._running:
            logger.warning("Reconciler already running")
            return
        self._running = True
        # Drain and listen tasks inherit the bound fields
        bind_log_context(
            restaurant_id=self._engine.ctx.restaurant_id,
            session_id=self._engine.ctx.session_id,
        )
        self._tasks.append(asyncio.create_task(self.run(), name="reconcile_drain"))
        if subscribe:
            self._tasks.append(asyncio.create_task(self.listen(), name="reconcile_listen"))
        logger.info("Reconciler started", session_id=self._engine.ctx.session_id)

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Reconciler stopped", session_id=self._engine.ctx.session_id)
