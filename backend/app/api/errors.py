"""Translate domain exceptions into HTTP errors."""
from __future__ import annotations

from fastapi import HTTPException, status

from app.core.errors import (
    CrestError,
    GenerationError,
    InvalidRequestError,
    PeriodConflictError,
    PeriodNotFoundError,
    ProgramNotFoundError,
    UserNotFoundError,
)

_STATUS_BY_ERROR = (
    (ProgramNotFoundError, status.HTTP_404_NOT_FOUND),
    (PeriodNotFoundError, status.HTTP_404_NOT_FOUND),
    (UserNotFoundError, status.HTTP_404_NOT_FOUND),
    (PeriodConflictError, status.HTTP_400_BAD_REQUEST),
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
    (GenerationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def to_http_error(exc: CrestError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc) or "unknown error")
