"""
Table repositories: restaurant_tables, table_sessions.
"""

from sqlalchemy import select

from shared.config.constants import SessionStatus, StoreTable
from rest_api.models import RestaurantTable, TableSession
from .base import BaseRepository


class RestaurantTableRepository(BaseRepository[RestaurantTable]):
    """Data access for RestaurantTable rows."""

    table_name = StoreTable.RESTAURANT_TABLES

    @property
    def model(self) -> type[RestaurantTable]:
        return RestaurantTable


class TableSessionRepository(BaseRepository[TableSession]):
    """Data access for TableSession rows."""

    table_name = StoreTable.TABLE_SESSIONS

    @property
    def model(self) -> type[TableSession]:
        return TableSession

    async def find_active_for_table(self, table_id: int) -> TableSession | None:
        """The open or billed session of a table, if any."""
        query = (
            select(TableSession)
            .where(
                TableSession.table_id == table_id,
                TableSession.status.in_(SessionStatus.ACTIVE),
            )
            .order_by(TableSession.id.desc())
            .limit(1)
        )
        return await self._scalar(query)
