"""Domain exceptions raised by services and translated to HTTP by the routes."""
from __future__ import annotations


class CrestError(Exception):
    """Base class for expected, user-facing failures."""


class GenerationError(CrestError):
    """The day generator produced nothing usable."""

    def __init__(self, message: str = "Generator returned 0 days.") -> None:
        super().__init__(message)


class UserNotFoundError(CrestError):
    pass


class ProgramNotFoundError(CrestError):
    def __init__(self, message: str = "Program not found") -> None:
        super().__init__(message)


class PeriodNotFoundError(CrestError):
    def __init__(self, message: str = "Period not found") -> None:
        super().__init__(message)


class PeriodConflictError(CrestError):
    """A period edit would break date contiguity (gap or overlap)."""


class InvalidRequestError(CrestError):
    """Request data that passed schema validation but cannot be applied."""
