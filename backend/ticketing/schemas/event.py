"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    date: datetime
    location: Optional[str] = Field(None, max_length=255)
    venue: Optional[str] = Field(None, max_length=255)
    capacity: int = Field(..., ge=0, le=100000)


class EventResponse(BaseModel):
    id: str
    title: str
    description: Optional[str]
    date: datetime
    location: Optional[str]
    venue: Optional[str]
    capacity: int
    organizer_id: str
    created_at: datetime

    model_config = {"from_attributes": True}


class EventListItem(EventResponse):
    booked: int = 0
    available: int = 0


class EventListResponse(BaseModel):
    events: list[EventListItem]
    total: int
    page: int
    page_size: int
    cached: bool = False


class CapacityInfo(BaseModel):
    capacity: int
    booked: int
    available: int


class EventBookingStats(BaseModel):
    event_id: str
    total_bookings: int
    total_tickets: int
    total_revenue: Decimal
    confirmed_tickets: int
    checked_in_tickets: int
    cancelled_tickets: int
    tickets_scanned: int
