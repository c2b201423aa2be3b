"""
Capacity ledger: how many tickets an event has committed, and whether more fit.

The committed count is never stored. It is summed from bookings whose status
is not 'cancelled', so it is always consistent with the bookings table.

CONCURRENCY
===========

A capacity check is only meaningful if no other booking for the same event
can commit between "read the total" and "insert the booking". Callers open
the booking transaction with lock_event(), an UPDATE that bumps
events.version:

  - PostgreSQL: the UPDATE takes the row lock; a concurrent booking for the
    same event blocks on its own UPDATE until we commit or roll back, then
    re-reads a total that includes our booking
  - SQLite: the UPDATE is the first write of the transaction, so it takes
    the database write lock and waits (busy timeout) instead of failing

Bookings for different events never contend.
"""

from decimal import Decimal
from typing import Iterable

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import EventNotFound
from ticketing.models.booking import Booking
from ticketing.models.checkin import CheckIn
from ticketing.models.event import Event


async def lock_event(db: AsyncSession, event_id: str) -> bool:
    """Lock the event row for the rest of the transaction. False if it does not exist."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(version=Event.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def committed(db: AsyncSession, event_id: str) -> int:
    """Sum of ticket quantities over the event's non-cancelled bookings."""
    result = await db.execute(
        select(func.coalesce(func.sum(Booking.ticket_quantity), 0)).where(
            Booking.event_id == event_id,
            Booking.status != "cancelled",
        )
    )
    return int(result.scalar_one())


async def committed_by_event(db: AsyncSession, event_ids: Iterable[str]) -> dict[str, int]:
    ids = list(event_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Booking.event_id, func.sum(Booking.ticket_quantity))
        .where(Booking.event_id.in_(ids), Booking.status != "cancelled")
        .group_by(Booking.event_id)
    )
    totals = {event_id: int(total or 0) for event_id, total in result.all()}
    return {event_id: totals.get(event_id, 0) for event_id in ids}


async def would_fit(db: AsyncSession, event: Event, quantity: int) -> bool:
    return await committed(db, event.id) + quantity <= event.capacity


async def get_event_capacity_info(db: AsyncSession, event_id: str) -> dict:
    """{capacity, booked, available} for an event, available never negative."""
    event = (await db.execute(select(Event).where(Event.id == event_id))).scalar_one_or_none()
    if not event:
        raise EventNotFound(event_id)

    booked = await committed(db, event_id)
    return {
        "capacity": event.capacity,
        "booked": booked,
        "available": max(0, event.capacity - booked),
    }


async def get_event_booking_stats(db: AsyncSession, event_id: str) -> dict:
    """Booking and revenue totals for an event's organizer view."""
    event = (await db.execute(select(Event.id).where(Event.id == event_id))).scalar_one_or_none()
    if not event:
        raise EventNotFound(event_id)

    def tickets_with_status(status: str):
        return func.coalesce(
            func.sum(case((Booking.status == status, Booking.ticket_quantity), else_=0)), 0
        )

    row = (
        await db.execute(
            select(
                func.count(Booking.id),
                func.coalesce(func.sum(Booking.ticket_quantity), 0),
                func.coalesce(
                    func.sum(case((Booking.status != "cancelled", Booking.total_amount), else_=0)), 0
                ),
                tickets_with_status("confirmed"),
                tickets_with_status("checked_in"),
                tickets_with_status("cancelled"),
            ).where(Booking.event_id == event_id)
        )
    ).one()
    scanned = (
        await db.execute(select(func.count(CheckIn.id)).where(CheckIn.event_id == event_id))
    ).scalar_one()

    return {
        "event_id": event_id,
        "total_bookings": int(row[0]),
        "total_tickets": int(row[1]),
        "total_revenue": Decimal(str(row[2])),
        "confirmed_tickets": int(row[3]),
        "checked_in_tickets": int(row[4]),
        "cancelled_tickets": int(row[5]),
        "tickets_scanned": int(scanned),
    }
