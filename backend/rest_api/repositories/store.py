"""
OrderStore: the generic transactional store the engine talks to.

Bundles one repository per logical table around a single AsyncSession.
Units of work run under the store retry policy; after a successful commit
one change event per written table goes out on the restaurant change feed.
"""

from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.logging import get_logger
from shared.infrastructure.events import get_redis_pool, publish_change
from shared.infrastructure.retry import RetryConfig, run_with_retry
from .base import ChangeTracker
from .kitchen_task import KitchenTaskRepository
from .menu import MenuItemRepository, ModifierRepository
from .order import OrderItemModifierRepository, OrderItemRepository, OrderRepository
from .table import RestaurantTableRepository, TableSessionRepository

logger = get_logger(__name__)

T = TypeVar("T")

# (restaurant_id, table, event)
ChangePublisher = Callable[[int, str, str], Awaitable[Any]]


async def publish_to_change_feed(restaurant_id: int, table: str, event: str) -> None:
    """Default change publisher: Redis change feed channel."""
    redis_client = await get_redis_pool()
    await publish_change(redis_client, restaurant_id, table, event)


class OrderStore:
    """
    Repositories sharing one session plus commit/announce plumbing.

    Usage:
        store = OrderStore(db)
        item = await store.run("add item", add_unit, restaurant_id=1)
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        change_publisher: ChangePublisher | None = publish_to_change_feed,
        retry_config: RetryConfig | None = None,
    ):
        self.db = db
        self.tracker = ChangeTracker()
        self._change_publisher = change_publisher
        self._retry_config = retry_config

        self.orders = OrderRepository(db, self.tracker)
        self.items = OrderItemRepository(db, self.tracker)
        self.item_modifiers = OrderItemModifierRepository(db, self.tracker)
        self.tasks = KitchenTaskRepository(db, self.tracker)
        self.sessions = TableSessionRepository(db, self.tracker)
        self.tables = RestaurantTableRepository(db, self.tracker)
        self.menu = MenuItemRepository(db, self.tracker)
        self.modifiers = ModifierRepository(db, self.tracker)

    async def run(
        self,
        label: str,
        unit: Callable[["OrderStore"], Awaitable[T]],
        *,
        restaurant_id: int | None = None,
    ) -> T:
        """
        Run a write unit and commit it.

        The unit is re-run from scratch on transient failures. Any failure
        that escapes leaves the session rolled back.
        """

        async def attempt() -> T:
            self.tracker.clear()
            result = await unit(self)
            await self.db.commit()
            return result

        try:
            result = await run_with_retry(
                attempt, self._retry_config, on_retry=self.db.rollback, label=label
            )
        except Exception:
            await self.db.rollback()
            self.tracker.clear()
            raise

        changes = self.tracker.drain()
        if restaurant_id is not None:
            await self._announce(restaurant_id, changes)
        return result

    async def read(self, label: str, unit: Callable[["OrderStore"], Awaitable[T]]) -> T:
        """Run a read-only unit under the same timeout/retry policy."""
        return await run_with_retry(
            lambda: unit(self), self._retry_config, on_retry=self.db.rollback, label=label
        )

    async def _announce(self, restaurant_id: int, changes: list[tuple[str, str]]) -> None:
        if self._change_publisher is None:
            return
        for table, event in changes:
            try:
                await self._change_publisher(restaurant_id, table, event)
            except Exception as e:
                logger.error(
                    "Failed to publish store change",
                    restaurant_id=restaurant_id,
                    table=table,
                    change=event,
                    error=str(e),
                )
