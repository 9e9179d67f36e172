"""
Order & preparation-task orchestration engine.

Structure:
    Router (thin controller)
        ↓
    OrderEngine (orchestrator, one per OrderSession)
        ↓
    Components: OrderAggregate, CourseFiringController,
                PreparationTaskDispatcher, PaymentReconciliationEngine,
                TableSessionStateMachine, OptimisticUpdateManager
        ↓
    OrderStore (repositories, unit of work)

Usage:
    from rest_api.services.domain import OrderEngine

    engine = await OrderEngine.for_session(store, session_id, restaurant_id=1, staff_id=7)
    await engine.add_item(menu_item_id)
"""

from .errors import (
    OrderEngineError,
    OrderValidationError,
    InsufficientPaymentError,
    ModifierSelectionError,
    QuantityBelowMinimumError,
    ItemInPreparationError,
    InvalidTransitionError,
    TableStateError,
    CheckoutBlockedError,
    MissingContextError,
    PersistenceError,
    StaleReferenceError,
)
from .order_session import LineItem, ModifierView, OrderSession, OrderView, TaskView
from .optimistic import OptimisticUpdateManager, Snapshot
from .modifiers import ModifierSelection
from .task_dispatcher import (
    BoardTask,
    PreparationTaskDispatcher,
    ProposalState,
    TransitionProposal,
    classify_sla,
)
from .course_firing import CourseFiringController, resolve_course, should_release
from .order_service import OrderAggregate
from .billing_service import PaymentReconciliationEngine, Quote, SessionCloser, SettlementResult
from .table_session_service import OrderCreator, TableSessionStateMachine
from .engine import OrderEngine

__all__ = [
    # Errors
    "OrderEngineError",
    "OrderValidationError",
    "InsufficientPaymentError",
    "ModifierSelectionError",
    "QuantityBelowMinimumError",
    "ItemInPreparationError",
    "InvalidTransitionError",
    "TableStateError",
    "CheckoutBlockedError",
    "MissingContextError",
    "PersistenceError",
    "StaleReferenceError",
    # Context
    "OrderSession",
    "OrderView",
    "LineItem",
    "ModifierView",
    "TaskView",
    # Components
    "OptimisticUpdateManager",
    "Snapshot",
    "ModifierSelection",
    "PreparationTaskDispatcher",
    "TransitionProposal",
    "ProposalState",
    "BoardTask",
    "classify_sla",
    "CourseFiringController",
    "resolve_course",
    "should_release",
    "OrderAggregate",
    "PaymentReconciliationEngine",
    "Quote",
    "SettlementResult",
    "TableSessionStateMachine",
    # Capabilities
    "SessionCloser",
    "OrderCreator",
    # Orchestrator
    "OrderEngine",
]
