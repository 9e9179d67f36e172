"""
Tables router.
Table reservation, occupancy, billing and closing.
"""

from fastapi import APIRouter, Depends

from rest_api.models import RestaurantTable
from rest_api.repositories import OrderStore
from rest_api.routers._common import (
    StaffContext,
    get_restaurant_engine,
    get_staff_context,
    get_store,
    get_table_session_engine,
    order_state,
)
from rest_api.services.domain import OrderEngine
from shared.utils.exceptions import NotFoundError
from shared.utils.schemas import (
    OccupyTableRequest,
    OrderStateOutput,
    SessionOutput,
    TableOutput,
    TransferTableRequest,
)


router = APIRouter(prefix="/api/tables", tags=["tables"])


@router.get("", response_model=list[TableOutput])
async def list_tables(
    store: OrderStore = Depends(get_store),
    staff: StaffContext = Depends(get_staff_context),
) -> list[TableOutput]:
    """All tables of the restaurant, ordered by id."""
    tables = await store.read(
        "list tables",
        lambda s: s.tables.find_by(
            RestaurantTable.restaurant_id == staff.restaurant_id, fresh=True
        ),
    )
    return [TableOutput.model_validate(t) for t in tables]


@router.post("/{table_id}/reserve", response_model=TableOutput)
async def reserve_table(
    table_id: int,
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> TableOutput:
    """available -> reserved."""
    return TableOutput.model_validate(await engine.reserve_table(table_id))


@router.post("/{table_id}/cancel-reservation", response_model=TableOutput)
async def cancel_reservation(
    table_id: int,
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> TableOutput:
    """reserved -> available."""
    return TableOutput.model_validate(await engine.cancel_reservation(table_id))


@router.post("/{table_id}/occupy", response_model=OrderStateOutput)
async def occupy_table(
    table_id: int,
    body: OccupyTableRequest,
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> OrderStateOutput:
    """
    reserved -> occupied.

    Opens the table session and its empty order in one operation.
    """
    await engine.occupy_table(
        table_id,
        guests=body.guests,
        waiter_id=body.waiter_id,
        waiter_name=body.waiter_name,
    )
    return order_state(engine)


@router.post("/{table_id}/print-bill", response_model=SessionOutput)
async def print_bill(
    engine: OrderEngine = Depends(get_table_session_engine),
) -> SessionOutput:
    """Mark the open session billed; checkout is blocked until then."""
    return SessionOutput.model_validate(await engine.print_bill())


@router.post("/{table_id}/force-close", response_model=TableOutput)
async def force_close(
    table_id: int,
    engine: OrderEngine = Depends(get_restaurant_engine),
) -> TableOutput:
    """Close the table's session without payment and free the table."""
    await engine.force_close(table_id)
    table = await engine.store.read("load table", lambda s: s.tables.get(table_id, fresh=True))
    if table is None:
        raise NotFoundError("Table", table_id)
    return TableOutput.model_validate(table)


@router.post("/{table_id}/transfer", response_model=OrderStateOutput)
async def transfer_table(
    body: TransferTableRequest,
    engine: OrderEngine = Depends(get_table_session_engine),
) -> OrderStateOutput:
    """Move the open session to an available table."""
    await engine.transfer_table(body.destination_table_id)
    return order_state(engine)
