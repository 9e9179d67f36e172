"""
Billing router.
Quotes, settlement, void and comp.

Amounts in requests are currency units ("12.50"); responses carry cents.
"""

from fastapi import APIRouter, Depends, Query

from rest_api.routers._common import get_order_engine, get_session_engine, order_state
from rest_api.services.domain import OrderEngine, Quote
from shared.utils.money import to_cents
from shared.utils.schemas import (
    OrderStateOutput,
    QuoteMode,
    QuoteOutput,
    ReasonRequest,
    SettlementOutput,
    SettleRequest,
)


router = APIRouter(prefix="/api/sessions/{session_id}", tags=["billing"])
counter_router = APIRouter(prefix="/api/counter/orders/{order_id}", tags=["billing"])


def build_quote(
    engine: OrderEngine,
    mode: QuoteMode,
    item_ids: list[int],
    guests: int | None,
) -> Quote:
    if mode == "partial":
        return engine.quote_partial(item_ids)
    if mode == "split":
        return engine.quote_equal_split(guests or engine.ctx.guests)
    return engine.quote_full()


async def settle_with(engine: OrderEngine, body: SettleRequest) -> SettlementOutput:
    engine.set_tip(to_cents(body.tip))
    scope = build_quote(engine, body.mode, body.item_ids, body.guests)
    result = await engine.settle(to_cents(body.cash), to_cents(body.card), scope)
    return SettlementOutput.model_validate(result)


@router.get("/quote", response_model=QuoteOutput)
async def get_quote(
    mode: QuoteMode = Query("full"),
    item_ids: list[int] = Query(default=[]),
    guests: int | None = Query(default=None, ge=1, le=50),
    engine: OrderEngine = Depends(get_session_engine),
) -> QuoteOutput:
    """Amount due for the whole bill, selected lines, or one guest's share."""
    return QuoteOutput.model_validate(build_quote(engine, mode, item_ids, guests))


@router.post("/settle", response_model=SettlementOutput)
async def settle(
    body: SettleRequest,
    engine: OrderEngine = Depends(get_session_engine),
) -> SettlementOutput:
    """
    Take payment. Requires the bill to be printed.

    Rejected with 422 when cash + card is short of the amount due. A
    payment that leaves nothing unpaid closes the session and frees the table.
    """
    return await settle_with(engine, body)


@router.post("/items/{item_id}/void", response_model=OrderStateOutput)
async def void_item(
    item_id: int,
    body: ReasonRequest,
    engine: OrderEngine = Depends(get_session_engine),
) -> OrderStateOutput:
    """Cancel a line; its tasks are deleted."""
    await engine.void_item(item_id, body.reason)
    return order_state(engine)


@router.post("/items/{item_id}/comp", response_model=OrderStateOutput)
async def comp_item(
    item_id: int,
    body: ReasonRequest,
    engine: OrderEngine = Depends(get_session_engine),
) -> OrderStateOutput:
    """Make a line free; it stays on the bill and the boards."""
    await engine.comp_item(item_id, body.reason)
    return order_state(engine)


@counter_router.post("/settle", response_model=SettlementOutput)
async def settle_counter_order(
    body: SettleRequest,
    engine: OrderEngine = Depends(get_order_engine),
) -> SettlementOutput:
    """Take payment for a walk-up order."""
    return await settle_with(engine, body)
