"""
Repository layer: async data access for the order store.

Usage:
    from rest_api.repositories import OrderStore

    store = OrderStore(db)
    items = await store.items.find_by_order(order_id)
"""

from .base import BaseRepository, ChangeTracker
from .order import OrderRepository, OrderItemRepository, OrderItemModifierRepository
from .kitchen_task import KitchenTaskRepository, BoardRow
from .table import RestaurantTableRepository, TableSessionRepository
from .menu import MenuItemRepository, ModifierRepository
from .store import OrderStore, ChangePublisher, publish_to_change_feed

__all__ = [
    "BaseRepository",
    "ChangeTracker",
    "OrderRepository",
    "OrderItemRepository",
    "OrderItemModifierRepository",
    "KitchenTaskRepository",
    "BoardRow",
    "RestaurantTableRepository",
    "TableSessionRepository",
    "MenuItemRepository",
    "ModifierRepository",
    "OrderStore",
    "ChangePublisher",
    "publish_to_change_feed",
]
