"""
Centralized constants for the backend application.
Avoids magic strings for statuses, roles and course numbers.

Usage:
    from shared.config.constants import OrderItemStatus, Courses

    if item.status == OrderItemStatus.CANCELLED:
        ...
"""

from typing import Final


# =============================================================================
# Staff Roles (notification targets)
# =============================================================================


class Roles:
    """Staff role constants."""

    OWNER: Final[str] = "owner"
    ADMIN: Final[str] = "admin"
    CHEF: Final[str] = "chef"
    BARMAN: Final[str] = "barman"
    WAITER: Final[str] = "waiter"
    CASHIER: Final[str] = "cashier"

    ALL: Final[list[str]] = [OWNER, ADMIN, CHEF, BARMAN, WAITER, CASHIER]


# Role groups used for role-scoped notifications
KITCHEN_ROLES: Final[list[str]] = [Roles.CHEF, Roles.ADMIN, Roles.OWNER]
BAR_ROLES: Final[list[str]] = [Roles.BARMAN, Roles.ADMIN, Roles.OWNER]


class Priority:
    """Notification priority constants."""

    NORMAL: Final[str] = "normal"
    HIGH: Final[str] = "high"


# =============================================================================
# Menu / Item Types
# =============================================================================


class ItemType:
    """Order item type constants. Only these two generate preparation tasks."""

    FOOD: Final[str] = "food"
    DRINK: Final[str] = "drink"

    PREPARED: Final[frozenset[str]] = frozenset({FOOD, DRINK})


class Courses:
    """Serving phases controlling when preparation begins."""

    STARTER: Final[int] = 1
    MAIN: Final[int] = 2
    DESSERT: Final[int] = 3
    DRINKS: Final[int] = 4

    ALL: Final[list[int]] = [STARTER, MAIN, DESSERT, DRINKS]


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus:
    """Order status constants."""

    PENDING: Final[str] = "pending"
    SERVED: Final[str] = "served"


class OrderItemStatus:
    """Order line status constants."""

    PENDING: Final[str] = "pending"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    SERVED: Final[str] = "served"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [PENDING, PREPARING, READY, SERVED, CANCELLED]


class PaymentStatus:
    """Order line payment status constants."""

    PENDING: Final[str] = "pending"
    COMPLETED: Final[str] = "completed"
    FAILED: Final[str] = "failed"


class TaskStatus:
    """Preparation (kitchen/bar) task status constants."""

    PENDING: Final[str] = "pending"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    SERVED: Final[str] = "served"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [PENDING, PREPARING, READY, SERVED, CANCELLED]
    ACTIVE: Final[list[str]] = [PENDING, PREPARING, READY]


class TableStatus:
    """Restaurant table status constants."""

    AVAILABLE: Final[str] = "available"
    RESERVED: Final[str] = "reserved"
    OCCUPIED: Final[str] = "occupied"
    UNAVAILABLE: Final[str] = "unavailable"


class SessionStatus:
    """Table session status constants."""

    OPEN: Final[str] = "open"
    BILLED: Final[str] = "billed"
    CLOSE: Final[str] = "close"

    ACTIVE: Final[list[str]] = [OPEN, BILLED]


# =============================================================================
# Status Transitions
# =============================================================================

# Preparation task transitions (from -> next). Each task advances independently.
TASK_TRANSITIONS: Final[dict[str, str]] = {
    TaskStatus.PENDING: TaskStatus.PREPARING,
    TaskStatus.PREPARING: TaskStatus.READY,
    TaskStatus.READY: TaskStatus.SERVED,
}

# Table transitions driven by staff actions (from -> allowed to states)
TABLE_TRANSITIONS: Final[dict[str, list[str]]] = {
    TableStatus.AVAILABLE: [TableStatus.RESERVED],
    TableStatus.RESERVED: [TableStatus.OCCUPIED, TableStatus.AVAILABLE],
    TableStatus.OCCUPIED: [TableStatus.AVAILABLE],
    TableStatus.UNAVAILABLE: [],
}


# =============================================================================
# Realtime (logical tables of the persistence contract)
# =============================================================================


class StoreTable:
    """Logical table names carried by change notifications."""

    ORDERS: Final[str] = "orders"
    ORDER_ITEMS: Final[str] = "order_items"
    ORDER_ITEM_MODIFIERS: Final[str] = "order_item_modifiers"
    KITCHEN_TASKS: Final[str] = "kitchen_tasks"
    TABLE_SESSIONS: Final[str] = "table_sessions"
    RESTAURANT_TABLES: Final[str] = "restaurant_tables"

    ALL: Final[frozenset[str]] = frozenset(
        {ORDERS, ORDER_ITEMS, ORDER_ITEM_MODIFIERS, KITCHEN_TASKS, TABLE_SESSIONS, RESTAURANT_TABLES}
    )


class ChangeEvent:
    """Change notification kinds."""

    INSERT: Final[str] = "insert"
    UPDATE: Final[str] = "update"
    DELETE: Final[str] = "delete"
    ANY: Final[str] = "*"

    ALL: Final[frozenset[str]] = frozenset({INSERT, UPDATE, DELETE, ANY})


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    MIN_QUANTITY: Final[int] = 1
    MAX_QUANTITY: Final[int] = 99
    MAX_NOTE_LENGTH: Final[int] = 500
    MAX_REASON_LENGTH: Final[int] = 200
    MAX_GUESTS: Final[int] = 50


# Note tags written by void / comp
VOID_NOTE_PREFIX: Final[str] = "VOID"
COMP_NOTE_PREFIX: Final[str] = "COMP"


# =============================================================================
# Kitchen / Bar Stations and SLA
# =============================================================================


class Station:
    """Preparation stations and the item types each one shows."""

    KITCHEN: Final[str] = "kitchen"
    BAR: Final[str] = "bar"

    ALL: Final[list[str]] = [KITCHEN, BAR]
    ITEM_TYPES: Final[dict[str, list[str]]] = {
        KITCHEN: [ItemType.FOOD],
        BAR: [ItemType.DRINK],
    }


class SlaStatus:
    """Derived (never persisted) timing classification of a task."""

    ON_TIME: Final[str] = "on_time"
    NEAR_DEADLINE: Final[str] = "near_deadline"
    OVERDUE: Final[str] = "overdue"
