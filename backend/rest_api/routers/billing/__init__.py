"""
Billing routers - /api/sessions/{session_id}/* and /api/counter/orders/{order_id}/settle
"""

from .routes import router, counter_router

__all__ = ["router", "counter_router"]
