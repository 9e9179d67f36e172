"""
FastAPI application for the order engine.

Run locally:
    uvicorn rest_api.main:app --reload
"""

from fastapi import FastAPI

from rest_api.core.cors import configure_cors
from rest_api.core.errors import ERROR_RESPONSES, register_exception_handlers
from rest_api.core.lifespan import lifespan
from rest_api.routers.billing import router as billing_router
from rest_api.routers.billing import counter_router as counter_billing_router
from rest_api.routers.health import router as health_router
from rest_api.routers.kitchen import router as kitchen_router
from rest_api.routers.orders import router as orders_router
from rest_api.routers.orders import counter_router as counter_orders_router
from rest_api.routers.tables import router as tables_router

ENGINE_ROUTERS = (
    tables_router,
    orders_router,
    counter_orders_router,
    billing_router,
    counter_billing_router,
    kitchen_router,
)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Front of House Orders",
        description="Orders, course firing, kitchen/bar tasks and payments for table service",
        version="0.1.0",
        lifespan=lifespan,
    )

    configure_cors(app)
    register_exception_handlers(app)

    app.include_router(health_router)
    for router in ENGINE_ROUTERS:
        app.include_router(router, responses=ERROR_RESPONSES)
    return app


app = create_app()
