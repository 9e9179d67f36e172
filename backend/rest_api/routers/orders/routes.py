"""
Orders router.
Line-item mutations on a table session's order, course firing, and
over-the-counter orders.
"""

from fastapi import APIRouter, Depends, status

from rest_api.routers._common import (
    get_order_engine,
    get_restaurant_engine,
    get_session_engine,
    order_state,
)
from rest_api.services.domain import OrderEngine
from shared.utils.schemas import (
    AddItemRequest,
    ChangeQuantityRequest,
    FireCourseOutput,
    NoteRequest,
    OrderStateOutput,
)


router = APIRouter(prefix="/api/sessions/{session_id}", tags=["orders"])
counter_router = APIRouter(prefix="/api/counter/orders", tags=["orders"])


@router.get("/order", response_model=OrderStateOutput)
async def get_order(engine: OrderEngine = Depends(get_session_engine)) -> OrderStateOutput:
    """Current order, lines, tasks and totals of the session."""
    return order_state(engine)


@router.post("/items", response_model=OrderStateOutput, status_code=status.HTTP_201_CREATED)
async def add_item(
    body: AddItemRequest,
    engine: OrderEngine = Depends(get_session_engine),
) -> OrderStateOutput:
    """Add a menu item; identical pending lines in the same course are merged."""
    await engine.add_item(
        body.menu_item_id,
        body.modifier_ids,
        course=body.course,
        quantity=body.quantity,
    )
    return order_state(engine)


@router.patch("/items/{item_id}/quantity", response_model=OrderStateOutput)
async def change_quantity(
    item_id: int,
    body: ChangeQuantityRequest,
    engine: OrderEngine = Depends(get_session_engine),
) -> OrderStateOutput:
    await engine.change_quantity(item_id, body.delta)
    return order_state(engine)


@router.delete("/items/{item_id}", response_model=OrderStateOutput)
async def remove_item(
    item_id: int,
    engine: OrderEngine = Depends(get_session_engine),
) -> OrderStateOutput:
    """Remove a line that no station has started."""
    await engine.remove_item(item_id)
    return order_state(engine)


@router.put("/items/{item_id}/note", response_model=OrderStateOutput)
async def annotate_note(
    item_id: int,
    body: NoteRequest,
    engine: OrderEngine = Depends(get_session_engine),
) -> OrderStateOutput:
    await engine.annotate_note(item_id, body.note)
    return order_state(engine)


@router.post("/items/{item_id}/reorder", response_model=OrderStateOutput)
async def reorder_item(
    item_id: int,
    engine: OrderEngine = Depends(get_session_engine),
) -> OrderStateOutput:
    """Order the same item again, with its modifiers and course."""
    await engine.reorder_item(item_id)
    return order_state(engine)


@router.post("/repeat-round", response_model=OrderStateOutput)
async def repeat_round(engine: OrderEngine = Depends(get_session_engine)) -> OrderStateOutput:
    """Re-add every active, unpaid line."""
    await engine.repeat_round()
    return order_state(engine)


@router.post("/courses/{course}/fire", response_model=FireCourseOutput)
async def fire_course(
    course: int,
    engine: OrderEngine = Depends(get_session_engine),
) -> FireCourseOutput:
    """Release every held line of a course to kitchen and bar."""
    fired = await engine.fire_course(course)
    return FireCourseOutput(course=course, fired_lines=fired, state=order_state(engine))


# =============================================================================
# Over-the-counter orders
# =============================================================================


@counter_router.post("", response_model=OrderStateOutput, status_code=status.HTTP_201_CREATED)
async def open_counter_order(
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> OrderStateOutput:
    """Start a walk-up order with no table session."""
    await engine.open_counter_order()
    return order_state(engine)


@counter_router.get("/{order_id}", response_model=OrderStateOutput)
async def get_counter_order(engine: OrderEngine = Depends(get_order_engine)) -> OrderStateOutput:
    return order_state(engine)


@counter_router.post(
    "/{order_id}/items", response_model=OrderStateOutput, status_code=status.HTTP_201_CREATED
)
async def add_counter_item(
    body: AddItemRequest,
    engine: OrderEngine = Depends(get_order_engine),
) -> OrderStateOutput:
    await engine.add_item(
        body.menu_item_id,
        body.modifier_ids,
        course=body.course,
        quantity=body.quantity,
    )
    return order_state(engine)
