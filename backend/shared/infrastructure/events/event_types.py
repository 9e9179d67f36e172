"""
Event Type Constants.

Defines all event types the engine publishes over Redis pub/sub.
"""

from shared.config.settings import settings

# =============================================================================
# Store change feed (level-triggered "something changed, re-fetch")
# =============================================================================

STORE_CHANGED = "STORE_CHANGED"

# =============================================================================
# Staff notifications
# =============================================================================

STAFF_NOTIFICATION = "STAFF_NOTIFICATION"

# =============================================================================
# Receipt printing
# =============================================================================

RECEIPT_READY = "RECEIPT_READY"

ALL_EVENT_TYPES = frozenset({STORE_CHANGED, STAFF_NOTIFICATION, RECEIPT_READY})

# =============================================================================
# Size limits
# =============================================================================

MAX_EVENT_SIZE = settings.redis_max_event_size
