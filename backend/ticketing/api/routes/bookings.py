"""
Booking endpoints: capacity-safe booking, ticket retrieval and cancellation.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_booking_service, get_notifier
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.booking import BookingCreate, BookingResponse, BookingWithTickets, BookingCancelResponse
from ticketing.schemas.ticket import TicketResponse
from ticketing.services.booking_service import BookingService
from ticketing.services.cache_service import invalidate_event_cache
from ticketing.services.interfaces.notifier import BookingNotice, Notifier
from ticketing.services.notification_service import send_booking_confirmation
from ticketing.core.security import get_current_user, get_current_user_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingWithTickets, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    background_tasks: BackgroundTasks,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Book tickets for an event.

    The event row is locked for the duration of the capacity check, so
    concurrent requests for the last tickets never oversell; the losers get
    a 409. The confirmation e-mail is sent after the response.
    """
    user_id, user_email, user_name = user.id, user.email, user.username

    result = await service.create_booking(
        db,
        user_id=user_id,
        event_id=booking_data.event_id,
        quantity=booking_data.quantity,
        total_amount=booking_data.total_amount,
        currency=booking_data.currency,
        payment_method=booking_data.payment_method,
        payment_id=booking_data.payment_id,
    )
    await invalidate_event_cache()

    booking, event = result.booking, result.event
    notice = BookingNotice(
        booking_id=booking.id,
        reference=booking.booking_reference,
        user_email=user_email,
        user_name=user_name,
        event_title=event.title,
        event_date=event.date,
        event_location=event.location,
        event_venue=event.venue,
        ticket_quantity=booking.ticket_quantity,
        qr_code=result.tickets[0].qr.data_url,
    )
    background_tasks.add_task(send_booking_confirmation, notifier, notice)

    return BookingWithTickets(
        **BookingResponse.model_validate(booking).model_dump(),
        tickets=[ticket.to_response() for ticket in result.tickets],
    )


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Get all bookings for the authenticated user, newest first."""
    return await service.get_user_bookings(db, user_id)


@router.get("/reference/{reference}", response_model=BookingResponse)
async def get_booking_by_reference(
    reference: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_booking_by_reference(db, reference, user_id)


@router.get("/{booking_id}/tickets", response_model=list[TicketResponse])
async def get_booking_tickets(
    booking_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Tickets with their current status and a freshly rendered QR image."""
    return await service.get_booking_tickets(db, booking_id, user_id)


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking(
    booking_id: str,
    reason: Optional[str] = Query(None, max_length=500),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel a booking. Its tickets go back to the event's availability."""
    booking = await service.cancel_booking(db, booking_id, user_id, reason)
    await invalidate_event_cache()
    return BookingCancelResponse(
        message="Booking cancelled successfully",
        booking_id=booking.id,
        status=booking.status,
    )
