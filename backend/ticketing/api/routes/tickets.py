"""
Door scanning endpoints. Staff only.

Both endpoints always answer 200 with a ValidationResult; a rejected ticket
is a normal outcome, not an HTTP error.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import get_notifier, get_ticket_validator
from ticketing.db.session import get_db
from ticketing.models.user import User
from ticketing.schemas.ticket import ScanRequest, ValidationResult
from ticketing.services.interfaces.notifier import BookingNotice, Notifier
from ticketing.services.notification_service import send_check_in_notice
from ticketing.services.validation_service import TicketValidator
from ticketing.core.security import get_current_staff_user

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("/validate", response_model=ValidationResult)
async def validate_ticket(
    scan: ScanRequest,
    staff: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
    validator: TicketValidator = Depends(get_ticket_validator),
):
    """Check a scanned ticket without admitting it."""
    return await validator.validate(db, scan.qr_data)


@router.post("/check-in", response_model=ValidationResult)
async def check_in_ticket(
    scan: ScanRequest,
    background_tasks: BackgroundTasks,
    staff: User = Depends(get_current_staff_user),
    db: AsyncSession = Depends(get_db),
    validator: TicketValidator = Depends(get_ticket_validator),
    notifier: Notifier = Depends(get_notifier),
):
    """Admit a ticket. A second scan of the same ticket reports it as already used."""
    staff_id = staff.id
    result = await validator.check_in(db, scan.qr_data, checked_in_by=staff_id)

    if result.booking_checked_in:
        notice = BookingNotice(
            booking_id=result.ticket.booking_id,
            reference=result.booking_reference,
            user_email=result.user.email,
            user_name=result.user.username,
            event_title=result.event.title,
            event_date=result.event.date,
            event_location=result.event.location,
            event_venue=result.event.venue,
        )
        background_tasks.add_task(send_check_in_notice, notifier, notice)
    return result
