"""
Order Models: Order, OrderItem, OrderItemModifier.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import (
    Courses,
    ItemType,
    OrderItemStatus,
    OrderStatus,
    PaymentStatus,
)
from .base import Base, BigIntId, TimestampMixin


class Order(TimestampMixin, Base):
    """
    One open tab. Bound to a table session, or to none for counter (OTC) sales.

    created_at is the opened timestamp.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(BigIntId, nullable=False, index=True)
    session_id: Mapped[Optional[int]] = mapped_column(
        BigIntId, ForeignKey("table_sessions.id"), nullable=True, index=True
    )
    staff_id: Mapped[Optional[int]] = mapped_column(BigIntId, nullable=True)
    total_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tip_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # pending | served
    status: Mapped[str] = mapped_column(Text, default=OrderStatus.PENDING, nullable=False, index=True)
    is_counter: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class OrderItem(TimestampMixin, Base):
    """
    One ordered line.

    Invariant: sum_price_cents == unit_price_cents * quantity.
    """

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("menu_items.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)  # Menu name at order time
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    sum_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(Text, default=ItemType.FOOD, nullable=False)
    course: Mapped[int] = mapped_column(Integer, default=Courses.MAIN, nullable=False)
    is_started: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(Text, default=OrderItemStatus.PENDING, nullable=False)
    payment_status: Mapped[str] = mapped_column(Text, default=PaymentStatus.PENDING, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    modifiers: Mapped[list["OrderItemModifier"]] = relationship(
        back_populates="order_item", order_by="OrderItemModifier.id"
    )


class OrderItemModifier(Base):
    """A modifier selected on an OrderItem, with name and price copied at order time."""

    __tablename__ = "order_item_modifiers"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    order_item_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    modifier_id: Mapped[int] = mapped_column(BigIntId, ForeignKey("modifiers.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_adjustment_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    order_item: Mapped["OrderItem"] = relationship(back_populates="modifiers")
