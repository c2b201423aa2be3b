"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ticketing.core.config import get_settings
from ticketing.schemas.ticket import TicketResponse

settings = get_settings()


class BookingCreate(BaseModel):
    event_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(default=1, ge=1, le=settings.MAX_TICKETS_PER_ORDER)
    total_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    currency: str = Field(default=settings.DEFAULT_CURRENCY, pattern=r"^[A-Z]{3}$")
    payment_method: Optional[str] = Field(None, max_length=50)
    payment_id: Optional[str] = Field(None, max_length=255)


class BookingResponse(BaseModel):
    id: str
    user_id: str
    event_id: str
    ticket_quantity: int
    total_amount: Decimal
    currency: str
    payment_status: str
    payment_method: Optional[str] = None
    status: str
    booking_reference: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingWithTickets(BookingResponse):
    tickets: list[TicketResponse]


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: str
    status: str
