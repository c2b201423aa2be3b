"""
Ticket validation and check-in.

validate() answers "would this ticket get in right now?" without writing
anything. check_in() asks the same question inside a transaction that holds
the booking row lock and, when the answer is yes, records the scan.

Every outcome is a ValidationResult. Nothing here raises for a bad ticket;
the reason code tells the scanner what went wrong.

Order of checks (first failure wins):
  1. QR text parses into a ticket payload
  2. checksum matches ticket/event/user
  3. booking exists and is not cancelled
  4. ticket belongs to that booking
  5. event exists
  6. holder exists
  7. ticket has no check-in entry
  8. event day has started (EVENT_TIMEZONE)

DOUBLE SCANS
============

Two gates scanning the same ticket at once must not both admit it.
check_in() bumps bookings.version before reading the check-in log, so scans
of tickets from the same booking run one after the other. The UNIQUE
constraint on check_ins.ticket_id catches anything that slips past; the
losing transaction retries once and then reads "Ticket already used".
"""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import InvalidQRFormat
from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_check_in, record_db_retry, record_validation
from ticketing.db.base import as_utc, utcnow
from ticketing.models.activity import ActivityLog
from ticketing.models.booking import Booking
from ticketing.models.checkin import CheckIn
from ticketing.models.event import Event
from ticketing.models.user import User
from ticketing.schemas.ticket import (
    EventSummary, TicketPayload, TicketStatus, UserSummary, ValidationFailure, ValidationResult,
)
from ticketing.services.interfaces.checksum import ChecksumStrategy
from ticketing.services.qr_codec import QRCodec
from ticketing.services.ticket_issuer import ticket_response

logger = get_logger(__name__)

MAX_ATTEMPTS = 2


@dataclass
class _Evaluation:
    result: ValidationResult
    payload: Optional[TicketPayload] = None
    booking: Optional[Booking] = None


def _outcome(result: ValidationResult) -> str:
    return "valid" if result.valid else result.reason.value


class TicketValidator:
    def __init__(
        self,
        checksum: ChecksumStrategy,
        codec: QRCodec,
        event_timezone: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.checksum = checksum
        self.codec = codec
        self.timezone = ZoneInfo(event_timezone)
        self.clock = clock or utcnow

    def usable_from(self, event_date: datetime) -> datetime:
        """Midnight at the start of the event's calendar day, in the event timezone."""
        local = as_utc(event_date).astimezone(self.timezone)
        return datetime.combine(local.date(), time.min, tzinfo=self.timezone)

    async def validate(self, db: AsyncSession, qr_text: str) -> ValidationResult:
        try:
            result = (await self._evaluate(db, qr_text)).result
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("ticket_validation_error", error=str(exc))
            result = ValidationResult.failure(ValidationFailure.SERVICE_UNAVAILABLE)

        record_validation(_outcome(result))
        if not result.valid:
            logger.info("ticket_validation_failed", reason=result.reason.value)
        return result

    async def check_in(self, db: AsyncSession, qr_text: str, checked_in_by: str) -> ValidationResult:
        """Validate under the booking lock and record the scan if the ticket is good."""
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                result = await self._check_in_once(db, qr_text, checked_in_by)
                break
            except (IntegrityError, OperationalError) as exc:
                await db.rollback()
                record_db_retry("check_in")
                logger.warning("check_in_retry", attempt=attempt, error=type(exc).__name__)
                if attempt == MAX_ATTEMPTS:
                    result = ValidationResult.failure(ValidationFailure.SERVICE_UNAVAILABLE)
            except SQLAlchemyError as exc:
                await db.rollback()
                logger.error("check_in_error", error=str(exc))
                result = ValidationResult.failure(ValidationFailure.SERVICE_UNAVAILABLE)
                break

        record_check_in("checked_in" if result.valid else result.reason.value)
        return result

    async def _check_in_once(self, db: AsyncSession, qr_text: str, checked_in_by: str) -> ValidationResult:
        evaluation = await self._evaluate(db, qr_text, lock=True)
        if not evaluation.result.valid:
            await db.rollback()
            logger.info("check_in_rejected", reason=evaluation.result.reason.value, by=checked_in_by)
            return evaluation.result

        payload, booking = evaluation.payload, evaluation.booking
        now = self.clock()
        db.add(CheckIn(
            ticket_id=payload.ticket_id,
            event_id=payload.event_id,
            booking_id=payload.booking_id,
            checked_in_by=checked_in_by,
            checked_in_at=now,
        ))
        db.add(ActivityLog(
            user_id=checked_in_by,
            action="check_in",
            entity_type="ticket",
            entity_id=payload.ticket_id,
            details={"booking_id": payload.booking_id, "event_id": payload.event_id},
        ))
        await db.flush()

        scanned = (
            await db.execute(select(func.count(CheckIn.id)).where(CheckIn.booking_id == booking.id))
        ).scalar_one()
        booking_complete = scanned >= len(booking.ticket_ids)
        if booking_complete:
            booking.status = "checked_in"
        await db.commit()

        logger.info(
            "ticket_checked_in",
            ticket_id=payload.ticket_id,
            booking_id=booking.id,
            event_id=payload.event_id,
            by=checked_in_by,
            booking_checked_in=booking_complete,
        )
        ticket = evaluation.result.ticket.model_copy(update={"status": TicketStatus.USED, "used_at": now})
        return evaluation.result.model_copy(update={"ticket": ticket, "booking_checked_in": booking_complete})

    async def _evaluate(self, db: AsyncSession, qr_text: str, lock: bool = False) -> _Evaluation:
        try:
            payload = self.codec.decode(qr_text)
        except InvalidQRFormat:
            return _Evaluation(ValidationResult.failure(ValidationFailure.INVALID_QR_FORMAT))

        if not self.checksum.verify(payload.ticket_id, payload.event_id, payload.user_id, payload.checksum):
            logger.warning("ticket_checksum_mismatch", ticket_id=payload.ticket_id, booking_id=payload.booking_id)
            return _Evaluation(ValidationResult.failure(ValidationFailure.CHECKSUM_MISMATCH))

        if lock:
            await db.execute(
                update(Booking)
                .where(Booking.id == payload.booking_id)
                .values(version=Booking.version + 1)
                .execution_options(synchronize_session=False)
            )

        booking = (
            await db.execute(
                select(Booking)
                .where(Booking.id == payload.booking_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if not booking or booking.status == "cancelled":
            return _Evaluation(ValidationResult.failure(ValidationFailure.BOOKING_CANCELLED_OR_MISSING))

        if (
            payload.ticket_id not in booking.ticket_ids
            or payload.event_id != booking.event_id
            or payload.user_id != booking.user_id
        ):
            return _Evaluation(ValidationResult.failure(ValidationFailure.TICKET_NOT_IN_BOOKING))

        event = (await db.execute(select(Event).where(Event.id == payload.event_id))).scalar_one_or_none()
        if not event:
            return _Evaluation(ValidationResult.failure(ValidationFailure.EVENT_NOT_FOUND))

        user = (await db.execute(select(User).where(User.id == payload.user_id))).scalar_one_or_none()
        if not user:
            return _Evaluation(ValidationResult.failure(ValidationFailure.USER_NOT_FOUND))

        context = {
            "event": EventSummary.model_validate(event),
            "user": UserSummary.model_validate(user),
            "booking_reference": booking.booking_reference,
        }

        used_at = (
            await db.execute(select(CheckIn.checked_in_at).where(CheckIn.ticket_id == payload.ticket_id))
        ).scalar_one_or_none()
        if used_at is not None:
            return _Evaluation(ValidationResult.failure(
                ValidationFailure.TICKET_ALREADY_USED,
                ticket=ticket_response(payload, TicketStatus.USED, used_at=as_utc(used_at)),
                **context,
            ))

        ticket = ticket_response(payload, TicketStatus.VALID)
        if as_utc(self.clock()) < self.usable_from(event.date):
            return _Evaluation(ValidationResult.failure(
                ValidationFailure.TICKET_NOT_YET_VALID, ticket=ticket, **context,
            ))

        return _Evaluation(ValidationResult(valid=True, ticket=ticket, **context), payload, booking)
