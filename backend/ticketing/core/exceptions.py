"""
Domain errors for booking operations.

Booking creation and cancellation surface failures as typed exceptions that
the API layer converts into JSON responses. Ticket validation never raises;
see ValidationFailure in ticketing.schemas.ticket.
"""

from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    INVALID_QUANTITY = "INVALID_QUANTITY"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    CANNOT_CANCEL_CHECKED_IN = "CANNOT_CANCEL_CHECKED_IN"
    INVALID_QR_FORMAT = "INVALID_QR_FORMAT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class DomainError(Exception):
    """Base domain error with code, user-safe message and HTTP status."""

    status_code: int = 400

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class CapacityExceeded(DomainError):
    status_code = 409

    def __init__(self, event_id: str, requested: int, available: int) -> None:
        super().__init__(
            code=ErrorCode.CAPACITY_EXCEEDED,
            message=f"Insufficient capacity for this booking. Requested: {requested}, Available: {available}",
        )
        self.event_id = event_id
        self.requested = requested
        self.available = available


class BookingNotFound(DomainError):
    status_code = 404

    def __init__(self, booking_id: str) -> None:
        super().__init__(code=ErrorCode.BOOKING_NOT_FOUND, message="Booking not found")
        self.booking_id = booking_id


class EventNotFound(DomainError):
    status_code = 404

    def __init__(self, event_id: str) -> None:
        super().__init__(code=ErrorCode.EVENT_NOT_FOUND, message=f"Event {event_id} not found")
        self.event_id = event_id


class InvalidQuantity(DomainError):
    status_code = 400

    def __init__(self, requested: int) -> None:
        super().__init__(code=ErrorCode.INVALID_QUANTITY, message="Ticket quantity must be at least 1")
        self.requested = requested


class AlreadyCancelled(DomainError):
    status_code = 400

    def __init__(self, booking_id: str) -> None:
        super().__init__(code=ErrorCode.ALREADY_CANCELLED, message="Booking is already cancelled")
        self.booking_id = booking_id


class CannotCancelCheckedIn(DomainError):
    status_code = 409

    def __init__(self, booking_id: str) -> None:
        super().__init__(
            code=ErrorCode.CANNOT_CANCEL_CHECKED_IN,
            message="Cannot cancel a booking with checked-in tickets",
        )
        self.booking_id = booking_id


class InvalidQRFormat(DomainError):
    """Raised by the QR codec; the validator turns it into a result."""

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.INVALID_QR_FORMAT, message="Invalid QR code format")


class ServiceUnavailable(DomainError):
    status_code = 503

    def __init__(self, operation: str) -> None:
        super().__init__(
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message="Service temporarily unavailable. Please try again.",
        )
        self.operation = operation
