"""
Base Repository implementation.

Async data access for one logical table of the order store: point lookup,
filter-by-foreign-key query, insert, partial update and delete. Every write
is recorded on a ChangeTracker so the store can announce it after commit.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Generic, Sequence, TypeVar

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.constants import ChangeEvent


ModelT = TypeVar("ModelT")


class ChangeTracker:
    """Logical tables written during the current unit of work."""

    def __init__(self) -> None:
        self._events: dict[str, str] = {}

    def record(self, table: str, event: str) -> None:
        previous = self._events.get(table)
        if previous is None or previous == event:
            self._events[table] = event
        else:
            self._events[table] = ChangeEvent.ANY

    def clear(self) -> None:
        self._events.clear()

    def drain(self) -> list[tuple[str, str]]:
        """Return (table, event) pairs and reset."""
        changes = sorted(self._events.items())
        self._events.clear()
        return changes

    def __bool__(self) -> bool:
        return bool(self._events)


class BaseRepository(ABC, Generic[ModelT]):
    """
    Abstract async repository.

    Subclasses provide `model` and `table_name`, and may override
    `_base_query()` to add eager loading.
    """

    table_name: ClassVar[str]

    def __init__(self, db: AsyncSession, tracker: ChangeTracker | None = None):
        self._db = db
        self._tracker = tracker or ChangeTracker()

    @property
    @abstractmethod
    def model(self) -> type[ModelT]:
        """Return the SQLAlchemy model class."""
        ...

    def _base_query(self) -> Select:
        return select(self.model)

    async def _scalars(self, query: Select) -> Sequence[ModelT]:
        # Pending inserts must be visible to the query
        await self._db.flush()
        result = await self._db.execute(query)
        return result.scalars().unique().all()

    async def _scalar(self, query: Select) -> Any:
        await self._db.flush()
        return await self._db.scalar(query)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, entity_id: int, *, fresh: bool = False) -> ModelT | None:
        """Point lookup by id. `fresh` overwrites any copy already in the session."""
        query = self._base_query().where(self.model.id == entity_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        return await self._scalar(query)

    async def get_many(self, entity_ids: Sequence[int]) -> Sequence[ModelT]:
        if not entity_ids:
            return []
        return await self._scalars(
            self._base_query().where(self.model.id.in_(list(entity_ids))).order_by(self.model.id)
        )

    async def find_by(
        self, *criteria: Any, order_by: Any = None, fresh: bool = False
    ) -> Sequence[ModelT]:
        """Filter query, ordered by id unless told otherwise."""
        query = self._base_query().where(*criteria)
        query = query.order_by(order_by if order_by is not None else self.model.id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        return await self._scalars(query)

    async def count(self, *criteria: Any) -> int:
        query = select(func.count()).select_from(self.model).where(*criteria)
        return await self._scalar(query) or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add(self, entity: ModelT) -> ModelT:
        """Insert and flush so the server id is available."""
        self._db.add(entity)
        await self._db.flush()
        self._tracker.record(self.table_name, ChangeEvent.INSERT)
        return entity

    async def add_all(self, entities: Sequence[ModelT]) -> Sequence[ModelT]:
        if not entities:
            return entities
        self._db.add_all(list(entities))
        await self._db.flush()
        self._tracker.record(self.table_name, ChangeEvent.INSERT)
        return entities

    def update(self, entity: ModelT, **values: Any) -> ModelT:
        """Partial update of an already loaded row."""
        for key, value in values.items():
            setattr(entity, key, value)
        self._tracker.record(self.table_name, ChangeEvent.UPDATE)
        return entity

    async def delete_where(self, *criteria: Any) -> int:
        """Delete matching rows; returns the number removed."""
        await self._db.flush()
        result = await self._db.execute(
            delete(self.model).where(*criteria).execution_options(synchronize_session="fetch")
        )
        if result.rowcount:
            self._tracker.record(self.table_name, ChangeEvent.DELETE)
        return result.rowcount or 0

    async def delete_by_id(self, entity_id: int) -> bool:
        return await self.delete_where(self.model.id == entity_id) > 0
