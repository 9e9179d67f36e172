"""
Receipt hand-off.

The engine produces a finalized Receipt; a ReceiptSink turns it into a
printable document elsewhere. Layout and currency formatting are the
sink's concern.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Protocol

import redis.asyncio as redis
from pydantic import BaseModel, Field

from shared.config.logging import get_logger
from shared.infrastructure.events import (
    RECEIPT_READY,
    Event,
    channel_restaurant_printer,
    get_redis_pool,
    publish_event,
)
from rest_api.services.background import run_in_background

logger = get_logger(__name__)


class ReceiptLine(BaseModel):
    name: str
    unit_price_cents: int
    quantity: int
    modifiers: list[str] = Field(default_factory=list)
    note: str | None = None


class Receipt(BaseModel):
    """Finalized totals and lines of one settlement."""

    order_id: int
    staff_name: str | None = None
    table_label: str | None = None
    total_qty: int
    total_cents: int
    items: list[ReceiptLine]
    cash_cents: int = 0
    card_cents: int = 0
    change_cents: int = 0


class ReceiptSink(Protocol):
    async def emit(self, restaurant_id: int, receipt: Receipt) -> None: ...


class RedisReceiptSink:
    """Publishes receipts to the restaurant printer channel."""

    def __init__(self, redis_factory: Callable[[], Awaitable[redis.Redis]] = get_redis_pool):
        self._redis_factory = redis_factory

    async def emit(self, restaurant_id: int, receipt: Receipt) -> None:
        redis_client = await self._redis_factory()
        await publish_event(
            redis_client,
            channel_restaurant_printer(restaurant_id),
            Event(
                type=RECEIPT_READY,
                restaurant_id=restaurant_id,
                order_id=receipt.order_id,
                entity=receipt.model_dump(mode="json"),
            ),
        )


async def emit_best_effort(sink: ReceiptSink | None, restaurant_id: int, receipt: Receipt) -> None:
    if sink is None:
        return
    try:
        await sink.emit(restaurant_id, receipt)
    except Exception as e:
        logger.error(
            "Failed to emit receipt",
            restaurant_id=restaurant_id,
            order_id=receipt.order_id,
            error=str(e),
        )


def emit_in_background(sink: ReceiptSink | None, restaurant_id: int, receipt: Receipt) -> None:
    if sink is None:
        return
    run_in_background(
        emit_best_effort(sink, restaurant_id, receipt),
        task_name=f"receipt:{receipt.order_id}",
    )
