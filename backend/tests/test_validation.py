"""
Tests for ticket validation and check-in: the door scanner's view.
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import delete, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import CannotCancelCheckedIn
from ticketing.models.activity import ActivityLog
from ticketing.models.booking import Booking
from ticketing.models.checkin import CheckIn
from ticketing.models.user import User
from ticketing.schemas.ticket import TicketStatus, ValidationFailure
from ticketing.services.validation_service import TicketValidator


async def _count_check_ins(session) -> int:
    return (await session.execute(select(func.count(CheckIn.id)))).scalar_one()


async def _booking_status(session, booking_id: str) -> str:
    result = await session.execute(
        select(Booking.status).where(Booking.id == booking_id)
    )
    return result.scalar_one()


def _tampered(qr_data: str, **changes) -> str:
    payload = json.loads(qr_data)
    payload.update(changes)
    return json.dumps(payload)


@pytest.mark.asyncio
async def test_valid_ticket(db_session, validator, live_booking, live_event, test_user):
    ticket = live_booking.tickets[0]

    result = await validator.validate(db_session, ticket.qr.data)

    assert result.valid is True
    assert result.error is None
    assert result.ticket.id == ticket.id
    assert result.ticket.status == TicketStatus.VALID
    assert result.event.title == live_event.title
    assert result.user.id == test_user.id
    assert result.booking_reference == live_booking.booking.booking_reference


@pytest.mark.asyncio
async def test_validate_writes_nothing(db_session, validator, live_booking):
    data = live_booking.tickets[0].qr.data

    assert (await validator.validate(db_session, data)).valid
    assert (await validator.validate(db_session, data)).valid
    assert await _count_check_ins(db_session) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("qr_text", ["", "not json", "[1, 2, 3]", '{"ticketId": "only"}', "{" * 5000])
async def test_malformed_qr(db_session, validator, qr_text):
    result = await validator.validate(db_session, qr_text)

    assert result.valid is False
    assert result.reason == ValidationFailure.INVALID_QR_FORMAT
    assert result.error == "Invalid QR code format"


@pytest.mark.asyncio
async def test_tampered_checksum(db_session, validator, live_booking):
    forged = _tampered(live_booking.tickets[0].qr.data, checksum="zzzz")

    result = await validator.validate(db_session, forged)

    assert result.reason == ValidationFailure.CHECKSUM_MISMATCH
    assert result.error == "Invalid ticket checksum"


@pytest.mark.asyncio
async def test_reassigned_holder_fails_checksum(db_session, validator, live_booking, other_user):
    forged = _tampered(live_booking.tickets[0].qr.data, userId=other_user.id)

    result = await validator.validate(db_session, forged)

    assert result.reason == ValidationFailure.CHECKSUM_MISMATCH


@pytest.mark.asyncio
async def test_unknown_booking(db_session, validator, issuer, live_event, test_user):
    payload = issuer.build_payload("booking_missing", live_event.id, test_user.id, 1)

    result = await validator.validate(db_session, issuer.codec.serialize(payload))

    assert result.reason == ValidationFailure.BOOKING_CANCELLED_OR_MISSING
    assert result.error == "Booking not found or cancelled"


@pytest.mark.asyncio
async def test_ticket_not_issued_by_booking(db_session, validator, issuer, live_booking, live_event, test_user):
    """A self-made payload with a correct checksum is still not one of the booking's tickets."""
    payload = issuer.build_payload(live_booking.booking.id, live_event.id, test_user.id, 3)

    result = await validator.validate(db_session, issuer.codec.serialize(payload))

    assert result.reason == ValidationFailure.TICKET_NOT_IN_BOOKING
    assert result.error == "Ticket not found in booking"


@pytest.mark.asyncio
async def test_cancelled_booking(db_session, validator, booking_service, live_booking, test_user):
    await booking_service.cancel_booking(db_session, live_booking.booking.id, test_user.id)

    result = await validator.validate(db_session, live_booking.tickets[0].qr.data)

    assert result.reason == ValidationFailure.BOOKING_CANCELLED_OR_MISSING


@pytest.mark.asyncio
async def test_holder_account_removed(db_session, validator, live_booking, test_user):
    await db_session.execute(delete(User).where(User.id == test_user.id))
    await db_session.commit()

    result = await validator.validate(db_session, live_booking.tickets[0].qr.data)

    assert result.valid is False
    assert result.reason == ValidationFailure.USER_NOT_FOUND
    assert result.error == "User not found"


@pytest.mark.asyncio
async def test_before_event_day(db_session, validator, booking_service, test_user, test_event):
    booking = await booking_service.create_booking(
        db_session, test_user.id, test_event.id, quantity=1, total_amount=Decimal("0"),
    )

    result = await validator.validate(db_session, booking.tickets[0].qr.data)

    assert result.valid is False
    assert result.reason == ValidationFailure.TICKET_NOT_YET_VALID
    assert result.error == "Ticket cannot be used before event date"
    assert result.ticket.status == TicketStatus.VALID
    assert result.event.id == test_event.id
    assert result.user.id == test_user.id


@pytest.mark.asyncio
async def test_usable_from_start_of_event_day(db_session, issuer, booking_service, test_user, test_event):
    booking = await booking_service.create_booking(
        db_session, test_user.id, test_event.id, quantity=1, total_amount=Decimal("0"),
    )
    event_day = test_event.date.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    data = booking.tickets[0].qr.data

    just_before = TicketValidator(issuer.checksum, issuer.codec, clock=lambda: event_day - timedelta(seconds=1))
    at_midnight = TicketValidator(issuer.checksum, issuer.codec, clock=lambda: event_day)

    assert (await just_before.validate(db_session, data)).reason == ValidationFailure.TICKET_NOT_YET_VALID
    assert (await at_midnight.validate(db_session, data)).valid is True


def test_event_day_follows_event_timezone(issuer):
    """01:00 UTC on the 15th is still the 14th in New York."""
    event_date = datetime(2030, 6, 15, 1, 0, tzinfo=timezone.utc)

    utc = TicketValidator(issuer.checksum, issuer.codec, event_timezone="UTC")
    new_york = TicketValidator(issuer.checksum, issuer.codec, event_timezone="America/New_York")

    assert utc.usable_from(event_date) == datetime(2030, 6, 15, tzinfo=timezone.utc)
    assert new_york.usable_from(event_date) == datetime(2030, 6, 14, 4, 0, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_check_in_records_scan(db_session, validator, live_booking, staff_user):
    ticket = live_booking.tickets[0]

    result = await validator.check_in(db_session, ticket.qr.data, checked_in_by=staff_user.id)

    assert result.valid is True
    assert result.ticket.status == TicketStatus.USED
    assert result.ticket.used_at is not None
    assert result.booking_checked_in is False
    assert await _count_check_ins(db_session) == 1

    log = (await db_session.execute(
        select(ActivityLog).where(ActivityLog.action == "check_in")
    )).scalar_one()
    assert log.entity_id == ticket.id
    assert log.user_id == staff_user.id


@pytest.mark.asyncio
async def test_second_scan_is_rejected(db_session, validator, live_booking, staff_user, test_user):
    data = live_booking.tickets[0].qr.data

    first = await validator.check_in(db_session, data, checked_in_by=staff_user.id)
    second = await validator.check_in(db_session, data, checked_in_by=staff_user.id)
    after = await validator.validate(db_session, data)

    assert first.valid is True
    assert second.valid is False
    assert second.reason == ValidationFailure.TICKET_ALREADY_USED
    assert second.error == "Ticket already used"
    assert second.ticket.status == TicketStatus.USED
    assert second.ticket.used_at is not None
    assert second.user.id == test_user.id
    assert after.reason == ValidationFailure.TICKET_ALREADY_USED
    assert await _count_check_ins(db_session) == 1


@pytest.mark.asyncio
async def test_rejected_scan_writes_nothing(db_session, validator, live_booking, staff_user):
    forged = _tampered(live_booking.tickets[0].qr.data, checksum="0")

    result = await validator.check_in(db_session, forged, checked_in_by=staff_user.id)

    assert result.reason == ValidationFailure.CHECKSUM_MISMATCH
    assert await _count_check_ins(db_session) == 0


@pytest.mark.asyncio
async def test_booking_checked_in_after_last_ticket(db_session, validator, live_booking, staff_user):
    first, second = live_booking.tickets

    partial = await validator.check_in(db_session, first.qr.data, checked_in_by=staff_user.id)
    assert partial.booking_checked_in is False
    assert await _booking_status(db_session, live_booking.booking.id) == "confirmed"

    complete = await validator.check_in(db_session, second.qr.data, checked_in_by=staff_user.id)
    assert complete.booking_checked_in is True
    assert await _booking_status(db_session, live_booking.booking.id) == "checked_in"


@pytest.mark.asyncio
async def test_cannot_cancel_after_any_check_in(db_session, validator, booking_service, live_booking, staff_user, test_user):
    await validator.check_in(db_session, live_booking.tickets[0].qr.data, checked_in_by=staff_user.id)

    with pytest.raises(CannotCancelCheckedIn):
        await booking_service.cancel_booking(db_session, live_booking.booking.id, test_user.id)

    assert await _booking_status(db_session, live_booking.booking.id) == "confirmed"
    second = await validator.check_in(db_session, live_booking.tickets[1].qr.data, checked_in_by=staff_user.id)
    assert second.valid is True


@pytest.mark.asyncio
async def test_persistence_failure_reports_unavailable(db_session, validator, live_booking, staff_user, monkeypatch):
    async def failing_flush(*args, **kwargs):
        raise OperationalError("INSERT INTO check_ins", {}, Exception("database is locked"))

    data = live_booking.tickets[0].qr.data
    monkeypatch.setattr(AsyncSession, "flush", failing_flush)

    result = await validator.check_in(db_session, data, checked_in_by=staff_user.id)

    assert result.valid is False
    assert result.reason == ValidationFailure.SERVICE_UNAVAILABLE
    monkeypatch.undo()
    assert await _count_check_ins(db_session) == 0
    assert (await validator.check_in(db_session, data, checked_in_by=staff_user.id)).valid is True


# API


@pytest.mark.asyncio
async def test_scanning_requires_staff(client: AsyncClient, auth_headers, live_booking):
    data = live_booking.tickets[0].qr.data
    for path in ("/api/v1/tickets/validate", "/api/v1/tickets/check-in"):
        response = await client.post(path, json={"qr_data": data}, headers=auth_headers)
        assert response.status_code == 403


@pytest.mark.asyncio
async def test_check_in_endpoint(client: AsyncClient, staff_headers, live_booking, notifier):
    first, second = live_booking.tickets

    validated = await client.post("/api/v1/tickets/validate", json={"qr_data": first.qr.data}, headers=staff_headers)
    assert validated.status_code == 200
    assert validated.json()["valid"] is True

    checked = await client.post("/api/v1/tickets/check-in", json={"qr_data": first.qr.data}, headers=staff_headers)
    assert checked.status_code == 200
    assert checked.json()["ticket"]["status"] == "used"
    assert notifier.checked_in == []

    again = await client.post("/api/v1/tickets/check-in", json={"qr_data": first.qr.data}, headers=staff_headers)
    assert again.status_code == 200
    assert again.json()["valid"] is False
    assert again.json()["reason"] == "ticket_already_used"
    assert again.json()["error"] == "Ticket already used"

    last = await client.post("/api/v1/tickets/check-in", json={"qr_data": second.qr.data}, headers=staff_headers)
    assert last.json()["booking_checked_in"] is True
    assert len(notifier.checked_in) == 1
    assert notifier.checked_in[0].reference == live_booking.booking.booking_reference


@pytest.mark.asyncio
async def test_check_in_endpoint_rejects_garbage(client: AsyncClient, staff_headers):
    response = await client.post("/api/v1/tickets/check-in", json={"qr_data": "garbage"}, headers=staff_headers)
    assert response.status_code == 200
    assert response.json()["reason"] == "invalid_qr_format"


@pytest.mark.asyncio
@pytest.mark.parametrize("qr_data", ["", "x" * 5000])
@pytest.mark.parametrize("path", ["/api/v1/tickets/validate", "/api/v1/tickets/check-in"])
async def test_scan_endpoints_answer_blank_and_oversized_scans(client: AsyncClient, staff_headers, path, qr_data):
    response = await client.post(path, json={"qr_data": qr_data}, headers=staff_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert body["reason"] == "invalid_qr_format"
    assert body["error"] == "Invalid QR code format"


@pytest.mark.asyncio
async def test_tickets_show_used_after_check_in(client: AsyncClient, auth_headers, staff_headers, live_booking):
    first = live_booking.tickets[0]
    await client.post("/api/v1/tickets/check-in", json={"qr_data": first.qr.data}, headers=staff_headers)

    response = await client.get(f"/api/v1/bookings/{live_booking.booking.id}/tickets", headers=auth_headers)
    statuses = {t["id"]: t["status"] for t in response.json()}
    assert statuses[first.id] == "used"
    assert statuses[live_booking.tickets[1].id] == "valid"

    cancel = await client.delete(f"/api/v1/bookings/{live_booking.booking.id}", headers=auth_headers)
    assert cancel.status_code == 409
    assert cancel.json()["code"] == "CANNOT_CANCEL_CHECKED_IN"
