"""
Kitchen Models: KitchenTask.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.config.constants import TaskStatus
from .base import Base, BigIntId, TimestampMixin


class KitchenTask(TimestampMixin, Base):
    """
    One unit of preparation work for one physical unit of an OrderItem.

    Kitchen and bar displays watch these rows. updated_at marks the last
    status change and drives SLA classification.
    """

    __tablename__ = "kitchen_tasks"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_item_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("menu_items.id"), nullable=False)
    # pending | preparing | ready | served | cancelled
    status: Mapped[str] = mapped_column(Text, default=TaskStatus.PENDING, nullable=False, index=True)
    prepared_by: Mapped[Optional[int]] = mapped_column(BigIntId, nullable=True)

    __table_args__ = (
        Index("ix_kitchen_task_item_status", "order_item_id", "status"),
    )
