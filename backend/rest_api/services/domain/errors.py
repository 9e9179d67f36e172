"""
Domain errors raised by the order engine.

Validation errors are raised before anything is applied, so they never need
a rollback. PersistenceError is raised after the local state has been
restored. StaleReferenceError means another terminal changed the data first.
"""

from shared.utils.money import format_cents


class OrderEngineError(Exception):
    """Base class for all engine errors."""


# =============================================================================
# Validation
# =============================================================================


class OrderValidationError(OrderEngineError):
    """Rejected before any mutation or persistence call."""


class InsufficientPaymentError(OrderValidationError):
    """Tendered cash + card is below the amount due."""

    def __init__(self, short_by_cents: int):
        self.short_by_cents = short_by_cents
        super().__init__(f"Insufficient payment, short by {format_cents(short_by_cents)}")


class ModifierSelectionError(OrderValidationError):
    """Modifier group min/max selection not satisfied."""


class QuantityBelowMinimumError(OrderValidationError):
    """Quantity would drop below 1."""


class ItemInPreparationError(OrderValidationError):
    """A unit of the item has already been picked up by a station."""


class InvalidTransitionError(OrderValidationError):
    """Status change not allowed from the current status."""

    def __init__(self, entity: str, from_status: str, to_status: str):
        self.entity = entity
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Invalid transition for {entity}: '{from_status}' -> '{to_status}'")


class TableStateError(OrderValidationError):
    """Table or session is not in a state that allows the action."""


class CheckoutBlockedError(OrderValidationError):
    """Checkout requires the bill to be printed first."""


# =============================================================================
# Context / persistence / staleness
# =============================================================================


class MissingContextError(OrderEngineError):
    """No active session or restaurant for the operation."""


class PersistenceError(OrderEngineError):
    """The store rejected the write; local state was rolled back."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Could not save '{operation}'; changes were reverted")


class StaleReferenceError(OrderEngineError):
    """Entity no longer exists (or was closed) in the store."""

    def __init__(self, entity: str, entity_id: int | str | None = None):
        self.entity = entity
        self.entity_id = entity_id
        if entity_id is None:
            super().__init__(f"{entity} no longer exists")
        else:
            super().__init__(f"{entity} {entity_id} no longer exists")
