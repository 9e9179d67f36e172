"""
Response builders shared by the routers.
"""

from rest_api.services.domain import OrderEngine
from shared.utils.schemas import OrderStateOutput


def order_state(engine: OrderEngine) -> OrderStateOutput:
    """Current OrderSession state as returned to terminals."""
    return OrderStateOutput.model_validate(engine.ctx)
