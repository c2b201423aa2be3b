"""
Event endpoints with Redis caching on list operations.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.event import CapacityInfo, EventBookingStats, EventCreate, EventResponse, EventListResponse
from ticketing.services import capacity_service
from ticketing.services.event_service import create_event, get_event, list_events
from ticketing.services.cache_service import get_cached_events, set_cached_events, invalidate_event_cache
from ticketing.core.security import get_current_staff_user, get_current_user_id
from ticketing.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(
    event_data: EventCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Create a new event. Requires authentication."""
    event = await create_event(db, event_data, user_id)
    await invalidate_event_cache()
    return event


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List events with pagination and current availability.
    Results are cached in Redis until an event or booking changes.
    """
    cached = await get_cached_events(page, page_size, upcoming_only)
    if cached:
        logger.info("events_list_cache_hit", page=page)
        cached["cached"] = True
        return EventListResponse(**cached)

    events, total = await list_events(db, page, page_size, upcoming_only)

    response_data = {
        "events": [e.model_dump(mode="json") for e in events],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_events(page, page_size, upcoming_only, response_data)

    return EventListResponse(**response_data)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(
    event_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await get_event(db, event_id)


@router.get("/{event_id}/capacity", response_model=CapacityInfo)
async def get_event_capacity(
    event_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Live capacity, booked and available counts. Never cached."""
    return await capacity_service.get_event_capacity_info(db, event_id)


@router.get("/{event_id}/stats", response_model=EventBookingStats)
async def get_event_stats(
    event_id: str,
    staff: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
):
    """Booking, revenue and scan totals for organizers."""
    return await capacity_service.get_event_booking_stats(db, event_id)
