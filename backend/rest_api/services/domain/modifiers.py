"""
Modifier selection rules.

A group with max_selection == 1 is a single-choice set: choosing another
option replaces the previous one. Any other group is a multi-choice set
capped at max_selection (uncapped when None). Unavailable modifiers cannot
be chosen. min/max are validated before the line is added to the order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from rest_api.models import MenuItem, Modifier, ModifierGroup
from .errors import ModifierSelectionError
from .order_session import ModifierView


@dataclass
class ModifierSelection:
    """Modifier choices for one menu item, grouped by ModifierGroup."""

    groups: list[ModifierGroup]
    _selected: dict[int, list[Modifier]] = field(default_factory=dict, init=False, repr=False)

    @classmethod
    def for_menu_item(cls, menu_item: MenuItem) -> "ModifierSelection":
        """Requires menu_item.modifier_links -> group -> modifiers to be loaded."""
        return cls(groups=[link.group for link in menu_item.modifier_links])

    def _group_of(self, modifier: Modifier) -> ModifierGroup:
        for group in self.groups:
            if group.id == modifier.group_id:
                return group
        raise ModifierSelectionError(f"Modifier '{modifier.name}' does not apply to this item")

    def toggle(self, modifier: Modifier) -> bool:
        """
        Select or deselect a modifier. Returns True if it ends up selected.

        Choosing beyond a multi-choice cap is ignored.
        """
        if not modifier.is_available:
            return False
        group = self._group_of(modifier)
        chosen = self._selected.setdefault(group.id, [])

        if any(m.id == modifier.id for m in chosen):
            chosen[:] = [m for m in chosen if m.id != modifier.id]
            return False

        if group.max_selection == 1:
            chosen[:] = [modifier]
            return True

        if group.max_selection is not None and len(chosen) >= group.max_selection:
            return False

        chosen.append(modifier)
        return True

    def select_all(self, modifiers: Iterable[Modifier]) -> "ModifierSelection":
        for modifier in modifiers:
            self.toggle(modifier)
        return self

    @property
    def selected(self) -> list[Modifier]:
        return [m for group in self.groups for m in self._selected.get(group.id, [])]

    def validate(self) -> None:
        """Raise ModifierSelectionError unless every group satisfies min/max."""
        for group in self.groups:
            count = len(self._selected.get(group.id, []))
            if count < group.min_selection:
                raise ModifierSelectionError(
                    f"Select at least {group.min_selection} option(s) for '{group.name}'"
                )
            if group.max_selection is not None and count > group.max_selection:
                raise ModifierSelectionError(
                    f"Select at most {group.max_selection} option(s) for '{group.name}'"
                )

    def views(self) -> list[ModifierView]:
        return [
            ModifierView(
                modifier_id=m.id,
                name=m.name,
                price_adjustment_cents=m.price_adjustment_cents,
            )
            for m in self.selected
        ]

    @property
    def price_adjustment_cents(self) -> int:
        return sum(m.price_adjustment_cents for m in self.selected)
