"""
Redis Channel Naming.

Standardized channel names with id validation.
"""

from __future__ import annotations


def _validate_positive_id(id_value: int, name: str) -> None:
    """Validate that ID is a positive integer."""
    if not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def channel_restaurant_changes(restaurant_id: int) -> str:
    """Change feed for every store write in a restaurant."""
    _validate_positive_id(restaurant_id, "restaurant_id")
    return f"restaurant:{restaurant_id}:changes"


def channel_restaurant_role(restaurant_id: int, role: str) -> str:
    """Channel for staff notifications addressed to one role."""
    _validate_positive_id(restaurant_id, "restaurant_id")
    if not role:
        raise ValueError("role must be a non-empty string")
    return f"restaurant:{restaurant_id}:role:{role}"


def channel_user(user_id: int) -> str:
    """Channel for direct user notifications."""
    _validate_positive_id(user_id, "user_id")
    return f"user:{user_id}"


def channel_restaurant_printer(restaurant_id: int) -> str:
    """Channel consumed by the receipt printer service."""
    _validate_positive_id(restaurant_id, "restaurant_id")
    return f"restaurant:{restaurant_id}:printer"


def pattern_restaurant_changes(restaurant_id: int | None = None) -> str:
    """Subscription pattern for change feeds (all restaurants when id is None)."""
    if restaurant_id is None:
        return "restaurant:*:changes"
    return channel_restaurant_changes(restaurant_id)
