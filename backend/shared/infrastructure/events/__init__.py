"""
Redis pub/sub for the order engine.

Three streams leave the engine:
- the store change feed (`restaurant:{id}:changes`), re-fetch triggers only
- staff notifications (`restaurant:{id}:role:{role}`, `user:{id}`)
- finalized receipts (`restaurant:{id}:printer`)

Publishing retries with jitter and stops trying while the circuit breaker
is open. `run_subscriber` feeds validated event dicts to a callback.
"""

from .channels import (
    channel_restaurant_changes,
    channel_restaurant_printer,
    channel_restaurant_role,
    channel_user,
    pattern_restaurant_changes,
)
from .circuit_breaker import (
    CircuitState,
    EventCircuitBreaker,
    calculate_retry_delay_with_jitter,
    get_event_circuit_breaker,
    reset_event_circuit_breaker,
)
from .event_schema import Event
from .event_types import (
    ALL_EVENT_TYPES,
    MAX_EVENT_SIZE,
    RECEIPT_READY,
    STAFF_NOTIFICATION,
    STORE_CHANGED,
)
from .publisher import publish_change, publish_event
from .redis_pool import close_redis_pool, get_redis_pool, ping_redis
from .subscriber import run_subscriber, validate_event_schema

__all__ = [
    "channel_restaurant_changes",
    "channel_restaurant_printer",
    "channel_restaurant_role",
    "channel_user",
    "pattern_restaurant_changes",
    "CircuitState",
    "EventCircuitBreaker",
    "calculate_retry_delay_with_jitter",
    "get_event_circuit_breaker",
    "reset_event_circuit_breaker",
    "Event",
    "ALL_EVENT_TYPES",
    "MAX_EVENT_SIZE",
    "RECEIPT_READY",
    "STAFF_NOTIFICATION",
    "STORE_CHANGED",
    "publish_change",
    "publish_event",
    "close_redis_pool",
    "get_redis_pool",
    "ping_redis",
    "run_subscriber",
    "validate_event_schema",
]
