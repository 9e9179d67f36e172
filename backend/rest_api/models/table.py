"""
Table Models: RestaurantTable, TableSession.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import SessionStatus, TableStatus
from .base import Base, BigIntId, TimestampMixin, utcnow


class RestaurantTable(TimestampMixin, Base):
    """
    A physical table in the dining room.

    Status must agree with its sessions: occupied <=> an open/billed
    TableSession exists.
    """

    __tablename__ = "restaurant_tables"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(BigIntId, nullable=False, index=True)
    label: Mapped[str] = mapped_column(Text, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, default=4, nullable=False)
    # available | reserved | occupied | unavailable
    status: Mapped[str] = mapped_column(Text, default=TableStatus.AVAILABLE, nullable=False, index=True)


class TableSession(TimestampMixin, Base):
    """
    Service window binding a table to a waiter, from occupancy to closure.
    """

    __tablename__ = "table_sessions"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(BigIntId, nullable=False, index=True)
    table_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("restaurant_tables.id"), nullable=False, index=True
    )
    waiter_id: Mapped[int] = mapped_column(BigIntId, nullable=False, index=True)
    waiter_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    guests: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    # open | billed | close
    status: Mapped[str] = mapped_column(Text, default=SessionStatus.OPEN, nullable=False, index=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        # "active session for this table" lookup
        Index("ix_table_session_table_status", "table_id", "status"),
    )
