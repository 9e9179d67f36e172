"""
Menu repository (read-only for the ordering engine).
"""

from sqlalchemy import Select, select
from sqlalchemy.orm import selectinload

from rest_api.models import MenuItem, MenuItemModifierGroup, Modifier, ModifierGroup
from .base import BaseRepository


class MenuItemRepository(BaseRepository[MenuItem]):
    """Menu items with their modifier groups eager-loaded."""

    table_name = "menu_items"

    @property
    def model(self) -> type[MenuItem]:
        return MenuItem

    def _base_query(self) -> Select:
        return select(MenuItem).options(
            selectinload(MenuItem.modifier_links)
            .selectinload(MenuItemModifierGroup.group)
            .selectinload(ModifierGroup.modifiers)
        )


class ModifierRepository(BaseRepository[Modifier]):
    """Modifiers with their group eager-loaded."""

    table_name = "modifiers"

    @property
    def model(self) -> type[Modifier]:
        return Modifier

    def _base_query(self) -> Select:
        return select(Modifier).options(selectinload(Modifier.group))
