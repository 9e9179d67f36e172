"""
Orders routers - /api/sessions/{session_id}/* and /api/counter/orders/*
"""

from .routes import router, counter_router

__all__ = ["router", "counter_router"]
