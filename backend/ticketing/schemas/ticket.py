"""
Pydantic schemas for ticket payloads, scan requests and validation results.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TicketPayload(BaseModel):
    """
    Canonical QR payload. Field names and order are a wire format shared
    with every ticket already printed: ticketId, bookingId, eventId, userId,
    ticketNumber, issuedAt, checksum.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    ticket_id: str
    booking_id: str
    event_id: str
    user_id: str
    ticket_number: str
    issued_at: str
    checksum: str


class TicketStatus(str, Enum):
    VALID = "valid"
    USED = "used"
    CANCELLED = "cancelled"
    TRANSFERRED = "transferred"


class TicketResponse(BaseModel):
    id: str
    booking_id: str
    event_id: str
    user_id: str
    ticket_number: str
    status: TicketStatus
    issued_at: str
    used_at: Optional[datetime] = None
    qr_data: str
    qr_code: Optional[str] = None  # data:image/png;base64,...


class ScanRequest(BaseModel):
    qr_data: str


class ValidationFailure(str, Enum):
    INVALID_QR_FORMAT = "invalid_qr_format"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    BOOKING_CANCELLED_OR_MISSING = "booking_cancelled_or_missing"
    TICKET_NOT_IN_BOOKING = "ticket_not_in_booking"
    EVENT_NOT_FOUND = "event_not_found"
    USER_NOT_FOUND = "user_not_found"
    TICKET_ALREADY_USED = "ticket_already_used"
    TICKET_NOT_YET_VALID = "ticket_not_yet_valid"
    SERVICE_UNAVAILABLE = "service_unavailable"

    @property
    def message(self) -> str:
        return FAILURE_MESSAGES[self]


FAILURE_MESSAGES = {
    ValidationFailure.INVALID_QR_FORMAT: "Invalid QR code format",
    ValidationFailure.CHECKSUM_MISMATCH: "Invalid ticket checksum",
    ValidationFailure.BOOKING_CANCELLED_OR_MISSING: "Booking not found or cancelled",
    ValidationFailure.TICKET_NOT_IN_BOOKING: "Ticket not found in booking",
    ValidationFailure.EVENT_NOT_FOUND: "Event not found",
    ValidationFailure.USER_NOT_FOUND: "User not found",
    ValidationFailure.TICKET_ALREADY_USED: "Ticket already used",
    ValidationFailure.TICKET_NOT_YET_VALID: "Ticket cannot be used before event date",
    ValidationFailure.SERVICE_UNAVAILABLE: "Service temporarily unavailable",
}


class EventSummary(BaseModel):
    id: str
    title: str
    date: datetime
    location: Optional[str] = None
    venue: Optional[str] = None

    model_config = {"from_attributes": True}


class UserSummary(BaseModel):
    id: str
    username: str
    email: str

    model_config = {"from_attributes": True}


class ValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None
    reason: Optional[ValidationFailure] = None
    ticket: Optional[TicketResponse] = None
    event: Optional[EventSummary] = None
    user: Optional[UserSummary] = None
    booking_reference: Optional[str] = None
    booking_checked_in: bool = False

    @classmethod
    def failure(cls, reason: ValidationFailure, **context) -> "ValidationResult":
        return cls(valid=False, error=reason.message, reason=reason, **context)
