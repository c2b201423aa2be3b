from ticketing.schemas.user import UserCreate, UserResponse, UserLogin, Token
from ticketing.schemas.event import (
    EventCreate, EventResponse, EventListItem, EventListResponse, CapacityInfo, EventBookingStats,
)
from ticketing.schemas.booking import BookingCreate, BookingResponse, BookingWithTickets, BookingCancelResponse
from ticketing.schemas.ticket import (
    TicketPayload, TicketStatus, TicketResponse, ScanRequest, ValidationFailure, ValidationResult,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "EventCreate", "EventResponse", "EventListItem", "EventListResponse", "CapacityInfo", "EventBookingStats",
    "BookingCreate", "BookingResponse", "BookingWithTickets", "BookingCancelResponse",
    "TicketPayload", "TicketStatus", "TicketResponse", "ScanRequest", "ValidationFailure", "ValidationResult",
]
