"""
CORS for the staff terminals (waiter tablets, kitchen/bar screens, cashier).
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import settings

# Staff identity headers read by routers._common.deps
STAFF_HEADERS = ["X-Restaurant-Id", "X-Staff-Id", "X-Staff-Name"]


def configure_cors(app: FastAPI) -> None:
    """Origins come from ALLOWED_ORIGINS; local terminal origins in development."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Accept", *STAFF_HEADERS],
        max_age=0 if settings.debug else 600,
    )
