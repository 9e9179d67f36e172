"""
SQLAlchemy ORM Models Package.

Each logical table of the order store lives in one module:
- base: Base class, TimestampMixin, id type
- menu: MenuItem, ModifierGroup, Modifier, MenuItemModifierGroup
- table: RestaurantTable, TableSession
- order: Order, OrderItem, OrderItemModifier
- kitchen: KitchenTask
"""

from .base import Base, BigIntId, TimestampMixin, as_utc, utcnow
from .menu import MenuItem, ModifierGroup, Modifier, MenuItemModifierGroup
from .table import RestaurantTable, TableSession
from .order import Order, OrderItem, OrderItemModifier
from .kitchen import KitchenTask

__all__ = [
    "Base",
    "BigIntId",
    "TimestampMixin",
    "utcnow",
    "as_utc",
    "MenuItem",
    "ModifierGroup",
    "Modifier",
    "MenuItemModifierGroup",
    "RestaurantTable",
    "TableSession",
    "Order",
    "OrderItem",
    "OrderItemModifier",
    "KitchenTask",
]
