"""
Publishing to Redis: size check, bounded retry with jitter, circuit breaker.

Every stream the engine emits (change feed, notifications, receipts) goes
through `publish_event`. Callers treat publishing as best effort and log
the error it raises once retries run out.
"""

from __future__ import annotations

import asyncio

import redis.asyncio as redis

from shared.config.logging import get_logger
from shared.config.settings import settings
from .channels import channel_restaurant_changes
from .circuit_breaker import calculate_retry_delay_with_jitter, get_event_circuit_breaker
from .event_schema import Event
from .event_types import MAX_EVENT_SIZE, STORE_CHANGED

logger = get_logger(__name__)


def encode_event(event: Event) -> str:
    """JSON payload for `event`; ValueError when over MAX_EVENT_SIZE bytes."""
    payload = event.to_json()
    size = len(payload.encode("utf-8"))
    if size > MAX_EVENT_SIZE:
        raise ValueError(f"{event.type} event is {size} bytes, limit is {MAX_EVENT_SIZE}")
    return payload


async def publish_event(redis_client: redis.Redis, channel: str, event: Event) -> int:
    """
    Publish `event` on `channel` and return the subscriber count.

    Returns 0 without calling Redis while the breaker is open. After
    `redis_publish_max_retries` failed attempts the last error is raised.
    """
    payload = encode_event(event)
    breaker = get_event_circuit_breaker()
    if not breaker.can_execute():
        logger.warning("Publish skipped, circuit open", channel=channel, event_type=event.type)
        return 0

    attempts = max(settings.redis_publish_max_retries, 1)
    for attempt in range(attempts):
        try:
            receivers = await redis_client.publish(channel, payload)
        except Exception as e:
            if attempt == attempts - 1:
                breaker.record_failure()
                logger.error(
                    "Publish failed",
                    channel=channel,
                    event_type=event.type,
                    attempts=attempts,
                    error=str(e),
                )
                raise
            delay = calculate_retry_delay_with_jitter(attempt, settings.redis_publish_retry_delay)
            logger.warning(
                "Publish attempt failed",
                channel=channel,
                attempt=attempt + 1,
                retry_in=round(delay, 2),
                error=str(e),
            )
            await asyncio.sleep(delay)
        else:
            breaker.record_success()
            return receivers
    return 0


async def publish_change(
    redis_client: redis.Redis,
    restaurant_id: int,
    table: str,
    event: str,
) -> int:
    """Announce that a logical store table changed. Subscribers re-fetch."""
    return await publish_event(
        redis_client,
        channel_restaurant_changes(restaurant_id),
        Event(
            type=STORE_CHANGED,
            restaurant_id=restaurant_id,
            entity={"table": table, "event": event},
        ),
    )
