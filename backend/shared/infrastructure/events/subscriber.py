"""
Redis pub/sub subscriber.

Listens on channel patterns and hands validated event dicts to a callback.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

from shared.config.logging import get_logger
from .event_types import ALL_EVENT_TYPES
from .redis_pool import get_redis_pool

logger = get_logger(__name__)

REQUIRED_EVENT_FIELDS = {"type", "restaurant_id"}


def validate_event_schema(data: Any) -> tuple[bool, str | None]:
    """Returns (is_valid, error_message)."""
    if not isinstance(data, dict):
        return False, "Event must be a dictionary"

    missing = REQUIRED_EVENT_FIELDS - set(data.keys())
    if missing:
        return False, f"Missing required fields: {sorted(missing)}"

    if data["type"] not in ALL_EVENT_TYPES:
        # Unknown types pass through for forward compatibility
        logger.warning("Unknown event type received", event_type=data["type"])

    restaurant_id = data["restaurant_id"]
    if not isinstance(restaurant_id, int):
        return False, f"restaurant_id must be an integer, got {type(restaurant_id).__name__}"

    for field in ("table_id", "session_id", "order_id"):
        value = data.get(field)
        if value is not None and not isinstance(value, int):
            return False, f"{field} must be an integer, got {type(value).__name__}"

    entity = data.get("entity")
    if entity is not None and not isinstance(entity, dict):
        return False, "entity must be an object"

    return True, None


async def run_subscriber(
    channels: list[str],
    on_message: Callable[[dict], Awaitable[None]],
) -> None:
    """
    Subscribe to Redis channel patterns and dispatch messages until cancelled.

    Malformed messages and callback failures are logged and skipped so one
    bad message never stops the loop.
    """
    redis_pool = await get_redis_pool()
    pubsub = redis_pool.pubsub()
    await pubsub.psubscribe(*channels)

    logger.info("Redis subscriber started", channels=channels)

    try:
        async for msg in pubsub.listen():
            if msg is None or msg.get("type") not in ("message", "pmessage"):
                continue

            try:
                data = json.loads(msg["data"])
                is_valid, error = validate_event_schema(data)
                if not is_valid:
                    logger.warning("Invalid event schema", error=error, channel=msg.get("channel"))
                    continue

                await on_message(data)
            except json.JSONDecodeError as e:
                logger.warning("Failed to parse Redis message", error=str(e))
            except Exception as e:
                logger.error("Error handling Redis message", error=str(e), exc_info=True)

    except asyncio.CancelledError:
        logger.info("Redis subscriber cancelled")
        raise
    finally:
        await pubsub.punsubscribe(*channels)
