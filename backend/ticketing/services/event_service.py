"""
Event service handling CRUD operations.
Availability is never stored; listings join in the committed ticket totals
from the capacity ledger.
"""

from datetime import datetime, timezone
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from ticketing.core.exceptions import EventNotFound
from ticketing.models.event import Event
from ticketing.schemas.event import EventCreate, EventListItem
from ticketing.services import capacity_service
from ticketing.core.logging import get_logger

logger = get_logger(__name__)


async def create_event(db: AsyncSession, event_data: EventCreate, organizer_id: str) -> Event:
    """Create a new event with a fixed ticket capacity."""
    if event_data.date <= datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Event date must be in the future",
        )

    event = Event(
        title=event_data.title,
        description=event_data.description,
        date=event_data.date,
        location=event_data.location,
        venue=event_data.venue,
        capacity=event_data.capacity,
        organizer_id=organizer_id,
    )
    db.add(event)
    await db.commit()

    logger.info("event_created", event_id=event.id, title=event.title, capacity=event.capacity)
    return event


async def get_event(db: AsyncSession, event_id: str) -> Event:
    """Get a single event by ID."""
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event:
        raise EventNotFound(event_id)
    return event


async def list_events(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[EventListItem], int]:
    """
    List events with pagination, each with booked/available counts.
    Uses the ix_events_date index for date filtering and ordering.
    """
    query = select(Event)

    if upcoming_only:
        query = query.where(Event.date >= datetime.now(timezone.utc))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    events_query = (
        query
        .order_by(Event.date.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(events_query)
    events = list(result.scalars().all())

    booked = await capacity_service.committed_by_event(db, (e.id for e in events))
    items = [
        EventListItem.model_validate(e).model_copy(
            update={"booked": booked[e.id], "available": max(0, e.capacity - booked[e.id])}
        )
        for e in events
    ]
    return items, total
