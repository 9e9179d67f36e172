"""
Exception handlers: order engine errors to HTTP responses.

    StaleReferenceError                          -> 404
    InvalidTransitionError, TableStateError,
    CheckoutBlockedError, ItemInPreparationError,
    MissingContextError                          -> 409
    other OrderValidationError                   -> 422
    PersistenceError                             -> 503
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rest_api.services.domain import (
    CheckoutBlockedError,
    InvalidTransitionError,
    ItemInPreparationError,
    MissingContextError,
    OrderEngineError,
    OrderValidationError,
    PersistenceError,
    StaleReferenceError,
    TableStateError,
)
from shared.utils.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from shared.utils.schemas import ErrorResponse

CONFLICT_ERRORS = (
    InvalidTransitionError,
    TableStateError,
    CheckoutBlockedError,
    ItemInPreparationError,
    MissingContextError,
)


def to_http_error(exc: OrderEngineError) -> AppException:
    """The AppException (already logged) for an engine error."""
    code = type(exc).__name__
    if isinstance(exc, StaleReferenceError):
        return NotFoundError(exc.entity, exc.entity_id, code=code)
    if isinstance(exc, CONFLICT_ERRORS):
        return ConflictError(str(exc), code=code)
    if isinstance(exc, OrderValidationError):
        return ValidationError(str(exc), code=code)
    if isinstance(exc, PersistenceError):
        return StoreUnavailableError(exc.operation, code=code)
    return ConflictError(str(exc), code=code)


# Documented on every engine-backed router
ERROR_RESPONSES: dict[int | str, dict] = {
    code: {"model": ErrorResponse} for code in (404, 409, 422, 503)
}


async def order_engine_error_handler(request: Request, exc: OrderEngineError) -> JSONResponse:
    http_error = to_http_error(exc)
    return JSONResponse(status_code=http_error.status_code, content=http_error.to_body())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_body(), headers=exc.headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OrderEngineError, order_engine_error_handler)
    app.add_exception_handler(AppException, app_exception_handler)
