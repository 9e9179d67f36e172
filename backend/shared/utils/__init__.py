"""
Utilities: HTTP errors, cent arithmetic, request/response schemas.
"""

from shared.utils.exceptions import (
    AppException,
    ConflictError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from shared.utils.money import format_cents, from_cents, split_evenly, to_cents
from shared.utils.schemas import ErrorResponse

__all__ = [
    "AppException",
    "ConflictError",
    "NotFoundError",
    "StoreUnavailableError",
    "ValidationError",
    "format_cents",
    "from_cents",
    "split_evenly",
    "to_cents",
    "ErrorResponse",
]
