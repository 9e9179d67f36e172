"""
Kitchen task router.
Station boards and per-task status changes for kitchen and bar staff.

The terminal runs the confirmation countdown; a request here is the
confirmed (or timed-out) transition.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from rest_api.routers._common import get_restaurant_engine
from rest_api.services.domain import OrderEngine
from shared.config.logging import kitchen_logger as logger
from shared.utils.schemas import AdvanceTaskRequest, BoardTaskOutput, Station, TaskOutput

router = APIRouter(prefix="/api/kitchen", tags=["kitchen"])


@router.get("/tasks", response_model=list[BoardTaskOutput])
async def list_tasks(
    station: Station = Query("kitchen"),
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> list[BoardTaskOutput]:
    """
    Live tasks for a station, oldest first.

    Food goes to the kitchen board, drinks to the bar board. Each task
    carries its SLA classification against the item's preparation time.
    """
    board = await engine.board(station)
    return [BoardTaskOutput.model_validate(task) for task in board]


@router.post("/tasks/{task_id}/advance", response_model=TaskOutput)
async def advance_task(
    task_id: int,
    body: AdvanceTaskRequest,
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> TaskOutput:
    """pending -> preparing -> ready -> served, one step at a time."""
    task = await engine.advance_task(task_id, body.status)
    return TaskOutput.model_validate(task)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def decline_task(
    task_id: int,
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> Response:
    """Discard a pending task; the order line is kept."""
    await engine.decline_task(task_id)
    logger.info("Task declined from board", task_id=task_id, staff_id=engine.ctx.staff_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
