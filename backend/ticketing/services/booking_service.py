"""
Booking service: capacity-safe booking creation and cancellation.

CONCURRENCY STRATEGY: Lock the event row, then check
=====================================================

Problem:
  Two users try to book the last tickets simultaneously.
  Both sum the committed quantity, both see room, both insert.
  Result: Overselling.

Solution:
  Every booking transaction starts with an UPDATE of the event row
  (capacity_service.lock_event). Until that transaction ends, no other
  booking for the same event can get past its own lock statement, so

  1. lock event            (serializes bookings per event)
  2. sum committed tickets (sees every booking committed before us)
  3. compare to capacity   -> CapacityExceeded, rolled back, nothing written
  4. insert booking + ticket payloads + audit entry
  5. commit                (releases the lock)

  QR images are rendered after commit; the payloads stored on the booking
  are enough to regenerate them at any time.

  Cancellation locks the booking row the same way and re-checks the
  check-in log inside that transaction, so a concurrent check-in either
  lands before (cancellation refused) or sees the booking cancelled.

Retries:
  OperationalError / IntegrityError (dropped connection, lock timeout,
  booking reference collision) roll back and retry once. A second failure
  surfaces as ServiceUnavailable; no partial booking is ever committed.
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import (
    AlreadyCancelled, BookingNotFound, CannotCancelCheckedIn, CapacityExceeded, DomainError,
    EventNotFound, InvalidQuantity, ServiceUnavailable,
)
from ticketing.core.logging import get_logger
from ticketing.core.metrics import booking_latency, record_booking_attempt, record_cancellation, record_db_retry
from ticketing.db.base import as_utc
from ticketing.models.activity import ActivityLog
from ticketing.models.booking import Booking
from ticketing.models.checkin import CheckIn
from ticketing.models.event import Event
from ticketing.schemas.ticket import TicketPayload, TicketResponse, TicketStatus
from ticketing.services import capacity_service
from ticketing.services.identifiers import new_booking_reference, new_id
from ticketing.services.ticket_issuer import IssuedTicket, TicketIssuer, ticket_entry, ticket_response

logger = get_logger(__name__)

MAX_ATTEMPTS = 2  # first try plus one retry
TRANSIENT_ERRORS = (OperationalError, IntegrityError)


@dataclass
class BookingResult:
    booking: Booking
    event: Event
    tickets: list[IssuedTicket]


class BookingService:
    def __init__(self, issuer: TicketIssuer, reference_prefix: str = "BE"):
        self.issuer = issuer
        self.reference_prefix = reference_prefix

    async def create_booking(
        self,
        db: AsyncSession,
        user_id: str,
        event_id: str,
        quantity: int,
        total_amount: Decimal,
        currency: str = "USD",
        payment_method: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> BookingResult:
        """
        Book `quantity` tickets for an event and issue one ticket per unit.
        Payment is assumed settled elsewhere; a payment_id marks it completed.
        """
        if quantity < 1:
            raise InvalidQuantity(quantity)

        start = time.perf_counter()
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                booking, event, payloads = await self._create_once(
                    db, user_id, event_id, quantity, total_amount, currency, payment_method, payment_id,
                )
                break
            except DomainError as exc:
                await db.rollback()
                record_booking_attempt(
                    "capacity_exceeded" if isinstance(exc, CapacityExceeded) else "not_found"
                )
                raise
            except TRANSIENT_ERRORS as exc:
                await db.rollback()
                record_db_retry("create_booking")
                logger.warning(
                    "booking_retry",
                    event_id=event_id,
                    attempt=attempt,
                    error=type(exc).__name__,
                )
                if attempt == MAX_ATTEMPTS:
                    record_booking_attempt("error")
                    raise ServiceUnavailable("create_booking") from exc

        tickets = [self.issuer.render(payload) for payload in payloads]
        booking_latency.observe(time.perf_counter() - start)
        record_booking_attempt("success")
        logger.info(
            "booking_created",
            booking_id=booking.id,
            reference=booking.booking_reference,
            user_id=user_id,
            event_id=event_id,
            quantity=quantity,
            payment_status=booking.payment_status,
            attempt=attempt,
        )
        return BookingResult(booking=booking, event=event, tickets=tickets)

    async def _create_once(
        self,
        db: AsyncSession,
        user_id: str,
        event_id: str,
        quantity: int,
        total_amount: Decimal,
        currency: str,
        payment_method: Optional[str],
        payment_id: Optional[str],
    ) -> tuple[Booking, Event, list[TicketPayload]]:
        if not await capacity_service.lock_event(db, event_id):
            raise EventNotFound(event_id)

        result = await db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        event = result.scalar_one()

        if not await capacity_service.would_fit(db, event, quantity):
            booked = await capacity_service.committed(db, event_id)
            logger.warning(
                "booking_rejected_capacity",
                event_id=event_id,
                requested=quantity,
                booked=booked,
                capacity=event.capacity,
            )
            raise CapacityExceeded(event_id, quantity, max(0, event.capacity - booked))

        booking = Booking(
            id=new_id("booking"),
            user_id=user_id,
            event_id=event_id,
            ticket_quantity=quantity,
            total_amount=total_amount,
            currency=currency,
            payment_status="completed" if payment_id else "pending",
            payment_method=payment_method,
            payment_id=payment_id,
            status="confirmed",
            booking_reference=new_booking_reference(self.reference_prefix),
        )
        booking.event = event
        db.add(booking)
        await db.flush()

        payloads = [
            self.issuer.build_payload(booking.id, event_id, user_id, index)
            for index in range(1, quantity + 1)
        ]
        booking.ticket_data = {"tickets": [ticket_entry(payload) for payload in payloads]}
        db.add(ActivityLog(
            user_id=user_id,
            action="create_booking",
            entity_type="booking",
            entity_id=booking.id,
            details={"event_id": event_id, "quantity": quantity, "reference": booking.booking_reference},
        ))
        await db.commit()
        return booking, event, payloads

    async def cancel_booking(
        self,
        db: AsyncSession,
        booking_id: str,
        user_id: str,
        reason: Optional[str] = None,
    ) -> Booking:
        """Cancel a booking. Tickets stay on record and fail validation from now on."""
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                booking = await self._cancel_once(db, booking_id, user_id, reason)
                break
            except DomainError as exc:
                await db.rollback()
                record_cancellation(exc.code.value.lower())
                raise
            except TRANSIENT_ERRORS as exc:
                await db.rollback()
                record_db_retry("cancel_booking")
                logger.warning("cancellation_retry", booking_id=booking_id, attempt=attempt, error=type(exc).__name__)
                if attempt == MAX_ATTEMPTS:
                    raise ServiceUnavailable("cancel_booking") from exc

        record_cancellation("cancelled")
        logger.info(
            "booking_cancelled",
            booking_id=booking.id,
            user_id=user_id,
            event_id=booking.event_id,
            tickets_released=booking.ticket_quantity,
            reason=booking.cancellation_reason,
        )
        return booking

    async def _cancel_once(
        self,
        db: AsyncSession,
        booking_id: str,
        user_id: str,
        reason: Optional[str],
    ) -> Booking:
        locked = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.user_id == user_id)
            .values(version=Booking.version + 1)
            .execution_options(synchronize_session=False)
        )
        if locked.rowcount == 0:
            raise BookingNotFound(booking_id)

        result = await db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        booking = result.scalar_one()

        if booking.status == "cancelled":
            raise AlreadyCancelled(booking_id)
        if booking.status == "checked_in":
            raise CannotCancelCheckedIn(booking_id)

        scanned = (
            await db.execute(select(func.count(CheckIn.id)).where(CheckIn.booking_id == booking_id))
        ).scalar_one()
        if scanned:
            raise CannotCancelCheckedIn(booking_id)

        reason = reason or "User cancellation"
        booking.status = "cancelled"
        booking.cancellation_reason = reason
        db.add(ActivityLog(
            user_id=user_id,
            action="cancel_booking",
            entity_type="booking",
            entity_id=booking_id,
            details={"reason": reason},
        ))
        await db.commit()
        return booking

    async def get_user_bookings(self, db: AsyncSession, user_id: str) -> list[Booking]:
        result = await db.execute(
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_booking(self, db: AsyncSession, booking_id: str, user_id: str) -> Booking:
        result = await db.execute(
            select(Booking).where(Booking.id == booking_id, Booking.user_id == user_id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFound(booking_id)
        return booking

    async def get_booking_by_reference(self, db: AsyncSession, reference: str, user_id: str) -> Booking:
        result = await db.execute(
            select(Booking).where(Booking.booking_reference == reference, Booking.user_id == user_id)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise BookingNotFound(reference)
        return booking

    async def get_booking_tickets(
        self,
        db: AsyncSession,
        booking_id: str,
        user_id: str,
        with_qr: bool = True,
    ) -> list[TicketResponse]:
        """Tickets of a booking with status derived from the booking and the check-in log."""
        booking = await self.get_booking(db, booking_id, user_id)
        result = await db.execute(
            select(CheckIn.ticket_id, CheckIn.checked_in_at).where(CheckIn.booking_id == booking_id)
        )
        used = {ticket_id: as_utc(checked_in_at) for ticket_id, checked_in_at in result.all()}

        tickets = []
        for entry in booking.ticket_entries:
            payload = TicketPayload.model_validate(entry["payload"])
            if booking.status == "cancelled":
                status = TicketStatus.CANCELLED
            elif payload.ticket_id in used:
                status = TicketStatus.USED
            else:
                status = TicketStatus.VALID
            qr_code = self.issuer.codec.render(self.issuer.codec.serialize(payload)) if with_qr else None
            tickets.append(ticket_response(payload, status, used.get(payload.ticket_id), qr_code))
        return tickets
