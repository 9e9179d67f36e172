"""
Menu Models: MenuItem, ModifierGroup, Modifier, MenuItemModifierGroup.

Only what ordering needs: price, item type, default course, target
preparation time and modifier rules.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import Courses, ItemType
from .base import Base, BigIntId, TimestampMixin


class MenuItem(TimestampMixin, Base):
    """A sellable menu entry."""

    __tablename__ = "menu_items"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(BigIntId, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    # food | drink | anything else (e.g. "merch") never reaches kitchen/bar
    type: Mapped[str] = mapped_column(Text, default=ItemType.FOOD, nullable=False)
    course: Mapped[int] = mapped_column(Integer, default=Courses.MAIN, nullable=False)
    # Target preparation time for SLA tracking (None = settings default)
    preparation_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    modifier_links: Mapped[list["MenuItemModifierGroup"]] = relationship(
        back_populates="menu_item", order_by="MenuItemModifierGroup.position"
    )


class ModifierGroup(Base):
    """
    Selection rules for a set of modifiers.

    max_selection == 1 behaves as a single-choice set; None means uncapped.
    """

    __tablename__ = "modifier_groups"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    restaurant_id: Mapped[int] = mapped_column(BigIntId, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    min_selection: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_selection: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    modifiers: Mapped[list["Modifier"]] = relationship(
        back_populates="group", order_by="Modifier.id"
    )


class Modifier(Base):
    """A single option in a ModifierGroup with its price adjustment."""

    __tablename__ = "modifiers"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    group_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("modifier_groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_adjustment_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    group: Mapped["ModifierGroup"] = relationship(back_populates="modifiers")


class MenuItemModifierGroup(Base):
    """Attaches a ModifierGroup to a MenuItem."""

    __tablename__ = "menu_item_modifier_groups"

    id: Mapped[int] = mapped_column(BigIntId, primary_key=True)
    menu_item_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True
    )
    group_id: Mapped[int] = mapped_column(
        BigIntId, ForeignKey("modifier_groups.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    menu_item: Mapped["MenuItem"] = relationship(back_populates="modifier_links")
    group: Mapped["ModifierGroup"] = relationship()

    __table_args__ = (
        UniqueConstraint("menu_item_id", "group_id", name="uq_menu_item_modifier_group"),
    )
