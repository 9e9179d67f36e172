"""
Staff notifications.

Role-scoped or user-scoped messages published on Redis. Dispatch is best
effort and runs in the background: failures are logged and never undo or
delay the business mutation that triggered them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Protocol

import redis.asyncio as redis

from shared.config.constants import Priority
from shared.config.logging import get_logger
from shared.infrastructure.events import (
    STAFF_NOTIFICATION,
    Event,
    channel_restaurant_role,
    channel_user,
    get_redis_pool,
    publish_event,
)
from rest_api.services.background import run_in_background

logger = get_logger(__name__)


@dataclass
class Notification:
    """What staff terminals receive."""

    restaurant_id: int
    actor_id: int | None
    title: str
    message: str
    priority: str = Priority.NORMAL
    roles: list[str] = field(default_factory=list)
    user_ids: list[int] = field(default_factory=list)

    def to_event(self) -> Event:
        return Event(
            type=STAFF_NOTIFICATION,
            restaurant_id=self.restaurant_id,
            entity={
                "title": self.title,
                "message": self.message,
                "priority": self.priority,
                "roles": list(self.roles),
                "user_ids": list(self.user_ids),
            },
            actor={"user_id": self.actor_id} if self.actor_id else {},
        )


class Notifier(Protocol):
    async def dispatch(self, notification: Notification) -> None: ...


class RedisNotifier:
    """Publishes one event per role channel and per user channel."""

    def __init__(self, redis_factory: Callable[[], Awaitable[redis.Redis]] = get_redis_pool):
        self._redis_factory = redis_factory

    async def dispatch(self, notification: Notification) -> None:
        redis_client = await self._redis_factory()
        event = notification.to_event()
        for role in notification.roles:
            await publish_event(
                redis_client, channel_restaurant_role(notification.restaurant_id, role), event
            )
        for user_id in notification.user_ids:
            await publish_event(redis_client, channel_user(user_id), event)


async def send_best_effort(notifier: Notifier | None, notification: Notification) -> None:
    """Dispatch and log any failure."""
    if notifier is None:
        return
    try:
        await notifier.dispatch(notification)
    except Exception as e:
        logger.error(
            "Failed to dispatch notification",
            restaurant_id=notification.restaurant_id,
            title=notification.title,
            error=str(e),
        )


def notify_in_background(notifier: Notifier | None, notification: Notification) -> None:
    """Schedule `send_best_effort` without waiting for delivery."""
    if notifier is None:
        return
    run_in_background(
        send_best_effort(notifier, notification),
        task_name=f"notify:{notification.title}",
    )
