"""
Shared Pydantic schemas for the HTTP surface.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Common Types
# =============================================================================

TableStatus = Literal["available", "reserved", "occupied", "unavailable"]
SessionStatus = Literal["open", "billed", "close"]
TaskStatus = Literal["pending", "preparing", "ready", "served", "cancelled"]
QuoteMode = Literal["full", "partial", "split"]
Station = Literal["kitchen", "bar"]

# Currency amounts arrive as decimals ("12.50") and are converted to cents once
Amount = Decimal


# =============================================================================
# Table Schemas
# =============================================================================


class TableOutput(BaseModel):
    """A restaurant table."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str
    capacity: int
    status: TableStatus


class OccupyTableRequest(BaseModel):
    """Seat guests at a reserved table."""

    guests: int = Field(default=1, ge=1, le=50)
    waiter_id: int | None = None
    waiter_name: str | None = Field(default=None, max_length=100)


class TransferTableRequest(BaseModel):
    """Move the table's open session to another table."""

    destination_table_id: int


class SessionOutput(BaseModel):
    """A table session."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    table_id: int
    waiter_id: int
    waiter_name: str | None = None
    guests: int
    status: SessionStatus
    opened_at: datetime
    closed_at: datetime | None = None


# =============================================================================
# Order Schemas
# =============================================================================


class AddItemRequest(BaseModel):
    """Add a menu item (merged into an identical pending line when possible)."""

    menu_item_id: int
    modifier_ids: list[int] = Field(default_factory=list)
    course: int | None = Field(default=None, ge=1, le=4)
    quantity: int = Field(default=1, ge=1, le=99)


class ChangeQuantityRequest(BaseModel):
    """One unit up or down."""

    delta: Literal[1, -1]


class NoteRequest(BaseModel):
    note: str | None = Field(default=None, max_length=500)


class ModifierOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    modifier_id: int
    name: str
    price_adjustment_cents: int


class LineItemOutput(BaseModel):
    """One order line as the client mirrors it."""

    model_config = ConfigDict(from_attributes=True)

    id: int | str
    menu_item_id: int
    name: str
    quantity: int
    unit_price_cents: int
    sum_price_cents: int
    type: str
    course: int
    is_started: bool
    status: str
    payment_status: str
    note: str | None = None
    modifiers: list[ModifierOutput] = Field(default_factory=list)


class TaskOutput(BaseModel):
    """One preparation task."""

    model_config = ConfigDict(from_attributes=True)

    id: int | str
    order_item_id: int | str
    menu_item_id: int
    status: TaskStatus
    prepared_by: int | None = None
    updated_at: datetime | None = None


class OrderOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int | None = None
    status: str
    total_cents: int
    tip_cents: int
    is_counter: bool


class OrderStateOutput(BaseModel):
    """Current order state of a table (or counter) interaction."""

    model_config = ConfigDict(from_attributes=True)

    session_id: int | None = None
    session_status: SessionStatus | None = None
    table_id: int | None = None
    table_label: str | None = None
    order: OrderOutput | None = None
    items: list[LineItemOutput] = Field(default_factory=list)
    tasks: list[TaskOutput] = Field(default_factory=list)
    total_cents: int = 0
    total_qty: int = 0
    remaining_cents: int = 0


class FireCourseOutput(BaseModel):
    course: int
    fired_lines: int
    state: OrderStateOutput


# =============================================================================
# Billing Schemas
# =============================================================================


class QuoteOutput(BaseModel):
    """Amount due for one payment scope."""

    model_config = ConfigDict(from_attributes=True)

    mode: QuoteMode
    due_cents: int
    item_ids: list[int] = Field(default_factory=list)
    guests: int | None = None
    remaining_cents: int = 0


class SettleRequest(BaseModel):
    """Tender for a payment scope; amounts in currency units."""

    cash: Amount = Field(default=Decimal("0"), ge=0)
    card: Amount = Field(default=Decimal("0"), ge=0)
    tip: Amount = Field(default=Decimal("0"), ge=0)
    mode: QuoteMode = "full"
    item_ids: list[int] = Field(default_factory=list)
    guests: int | None = Field(default=None, ge=1, le=50)


class ReasonRequest(BaseModel):
    """Void / comp justification."""

    reason: str = Field(min_length=1, max_length=200)


class ReceiptLineOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    unit_price_cents: int
    quantity: int
    modifiers: list[str] = Field(default_factory=list)
    note: str | None = None


class ReceiptOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: int
    staff_name: str | None = None
    table_label: str | None = None
    total_qty: int
    total_cents: int
    items: list[ReceiptLineOutput]
    cash_cents: int
    card_cents: int
    change_cents: int


class SettlementOutput(BaseModel):
    """Result of a successful settlement."""

    model_config = ConfigDict(from_attributes=True)

    quote: QuoteOutput
    tendered_cents: int
    change_cents: int
    paid_item_ids: list[int]
    fully_settled: bool
    receipt: ReceiptOutput


# =============================================================================
# Kitchen Schemas
# =============================================================================


class AdvanceTaskRequest(BaseModel):
    """Move a task one step forward."""

    status: Literal["preparing", "ready", "served"]


class BoardTaskOutput(BaseModel):
    """A task on the kitchen or bar board."""

    model_config = ConfigDict(from_attributes=True)

    task_id: int
    order_id: int
    order_item_id: int
    menu_item_id: int
    item_name: str
    course: int
    note: str | None = None
    table_label: str | None = None
    status: TaskStatus
    prepared_by: int | None = None
    created_at: datetime
    updated_at: datetime
    elapsed_minutes: float
    target_minutes: int
    sla: Literal["on_time", "near_deadline", "overdue"]


# =============================================================================
# Errors
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None
