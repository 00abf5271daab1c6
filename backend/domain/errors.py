"""Error kinds surfaced by the reservation engine."""

from __future__ import annotations


class ReservationError(Exception):
    """Base exception for reservation workflow failures."""


class ReservationValidationError(ReservationError):
    """Raised when request input breaks a booking rule."""

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message)
        self.rule = rule


class NotFoundError(ReservationError):
    """Raised when a referenced entity does not exist."""


class CustomerNotFoundError(NotFoundError):
    """Raised when the customer id is unknown."""


class TableNotFoundError(NotFoundError):
    """Raised when the table id is unknown."""


class ReservationNotFoundError(NotFoundError):
    """Raised when the reservation id is unknown."""


class ReservationConflictError(ReservationError):
    """Raised when a window overlaps an active reservation, buffer included."""


class BusinessRuleError(ReservationError):
    """Raised when a lifecycle transition is not allowed."""

    def __init__(self, rule: str, message: str) -> None:
        super().__init__(message)
        self.rule = rule
