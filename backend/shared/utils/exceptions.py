"""
HTTP-facing errors. Each one logs itself when raised and knows its JSON body.

Usage:
    from shared.utils.exceptions import NotFoundError, ConflictError

    raise NotFoundError("Table session", session_id, code="StaleReferenceError")
    raise ConflictError("Print the bill before taking payment")

Body:
    {"detail": "...", "code": "CheckoutBlockedError"}
"""

from typing import Any

from fastapi import HTTPException, status

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """Base for every error the API returns on purpose."""

    status_code_default = status.HTTP_400_BAD_REQUEST
    log_level = "warning"

    def __init__(self, detail: str, *, code: str | None = None, **log_context: Any):
        self.code = code or type(self).__name__
        getattr(logger, self.log_level)(
            detail, status_code=self.status_code_default, code=self.code, **log_context
        )
        super().__init__(status_code=self.status_code_default, detail=detail)

    def to_body(self) -> dict[str, str]:
        return {"detail": self.detail, "code": self.code}


class NotFoundError(AppException):
    """404: the entity is gone or belongs to another restaurant."""

    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: int | str | None = None, **kwargs: Any):
        detail = f"{entity} with ID {entity_id} not found" if entity_id is not None else f"{entity} not found"
        super().__init__(detail, entity=entity, entity_id=entity_id, **kwargs)


class ConflictError(AppException):
    """409: the table, session or task is in the wrong state for the action."""

    status_code_default = status.HTTP_409_CONFLICT


class ValidationError(AppException):
    """422: rejected before anything was applied."""

    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY
    log_level = "info"


class StoreUnavailableError(AppException):
    """503: the store failed and the local state was rolled back."""

    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE
    log_level = "error"

    def __init__(self, operation: str, **kwargs: Any):
        super().__init__(
            f"Store error during {operation}. Please try again.", operation=operation, **kwargs
        )
