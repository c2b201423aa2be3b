"""
Tests for booking endpoints: creation, capacity enforcement, ticket
retrieval and cancellation.
"""

import json

import pytest
from httpx import AsyncClient

from ticketing.services.checksum import checksum


async def _book(client: AsyncClient, headers: dict, event_id: str, quantity: int = 1, **extra):
    return await client.post(
        "/api/v1/bookings/",
        json={"event_id": event_id, "quantity": quantity, **extra},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_book_tickets(client: AsyncClient, auth_headers, test_user, test_event):
    """A booking issues one checksummed QR ticket per unit and reduces availability."""
    response = await _book(client, auth_headers, test_event.id, 2, total_amount="50.00")
    assert response.status_code == 201
    data = response.json()
    assert data["id"].startswith("booking_")
    assert data["event_id"] == test_event.id
    assert data["ticket_quantity"] == 2
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "pending"
    assert data["booking_reference"].startswith("BE-")

    tickets = data["tickets"]
    assert len(tickets) == 2
    assert len({t["id"] for t in tickets}) == 2
    assert [t["ticket_number"][-2:] for t in tickets] == ["01", "02"]
    for ticket in tickets:
        assert ticket["status"] == "valid"
        assert ticket["qr_code"].startswith("data:image/png;base64,")
        payload = json.loads(ticket["qr_data"])
        assert list(payload) == [
            "ticketId", "bookingId", "eventId", "userId", "ticketNumber", "issuedAt", "checksum",
        ]
        assert payload["bookingId"] == data["id"]
        assert payload["checksum"] == checksum(payload["ticketId"], test_event.id, test_user.id)

    capacity = await client.get(f"/api/v1/events/{test_event.id}/capacity")
    assert capacity.json() == {"capacity": 50, "booked": 2, "available": 48}


@pytest.mark.asyncio
async def test_payment_id_marks_payment_completed(client: AsyncClient, auth_headers, test_event):
    response = await _book(
        client, auth_headers, test_event.id, 1, payment_method="card", payment_id="pi_123",
    )
    assert response.status_code == 201
    assert response.json()["payment_status"] == "completed"


@pytest.mark.asyncio
async def test_book_unauthenticated(client: AsyncClient, test_event):
    response = await client.post("/api/v1/bookings/", json={"event_id": test_event.id, "quantity": 1})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_book_sold_out(client: AsyncClient, auth_headers, sold_out_event):
    response = await _book(client, auth_headers, sold_out_event.id, 1)
    assert response.status_code == 409
    assert response.json()["code"] == "CAPACITY_EXCEEDED"


@pytest.mark.asyncio
async def test_over_capacity_rejected_without_side_effects(client: AsyncClient, auth_headers, small_event):
    """With 9 of 10 booked, a request for 2 fails and nothing changes."""
    assert (await _book(client, auth_headers, small_event.id, 9)).status_code == 201

    response = await _book(client, auth_headers, small_event.id, 2)
    assert response.status_code == 409
    assert response.json()["detail"] == "Insufficient capacity for this booking. Requested: 2, Available: 1"

    capacity = await client.get(f"/api/v1/events/{small_event.id}/capacity")
    assert capacity.json()["booked"] == 9
    bookings = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert len(bookings.json()) == 1

    # The last ticket is still there
    assert (await _book(client, auth_headers, small_event.id, 1)).status_code == 201


@pytest.mark.asyncio
async def test_quantity_limits(client: AsyncClient, auth_headers, test_event):
    assert (await _book(client, auth_headers, test_event.id, 0)).status_code == 422
    assert (await _book(client, auth_headers, test_event.id, 11)).status_code == 422


@pytest.mark.asyncio
async def test_same_user_can_book_twice(client: AsyncClient, auth_headers, test_event):
    first = await _book(client, auth_headers, test_event.id, 1)
    second = await _book(client, auth_headers, test_event.id, 1)
    assert first.status_code == second.status_code == 201
    assert first.json()["booking_reference"] != second.json()["booking_reference"]


@pytest.mark.asyncio
async def test_book_nonexistent_event(client: AsyncClient, auth_headers):
    response = await _book(client, auth_headers, "event_missing", 1)
    assert response.status_code == 404
    assert response.json()["code"] == "EVENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_confirmation_sent_after_booking(client: AsyncClient, auth_headers, test_event, notifier):
    response = await _book(client, auth_headers, test_event.id, 3)
    assert response.status_code == 201

    assert len(notifier.confirmed) == 1
    notice = notifier.confirmed[0]
    assert notice.reference == response.json()["booking_reference"]
    assert notice.user_email == "test@example.com"
    assert notice.event_title == "Test Concert"
    assert notice.ticket_quantity == 3
    assert notice.qr_code.startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_list_user_bookings(client: AsyncClient, auth_headers, other_headers, test_event):
    await _book(client, auth_headers, test_event.id, 1)
    await _book(client, other_headers, test_event.id, 1)

    response = await client.get("/api/v1/bookings/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["event_id"] == test_event.id


@pytest.mark.asyncio
async def test_get_booking_by_reference(client: AsyncClient, auth_headers, other_headers, test_event):
    booking = (await _book(client, auth_headers, test_event.id, 1)).json()
    reference = booking["booking_reference"]

    response = await client.get(f"/api/v1/bookings/reference/{reference}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["id"] == booking["id"]

    # Someone else's reference looks like a missing one
    response = await client.get(f"/api/v1/bookings/reference/{reference}", headers=other_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_booking_tickets(client: AsyncClient, auth_headers, test_event):
    booking = (await _book(client, auth_headers, test_event.id, 2)).json()

    response = await client.get(f"/api/v1/bookings/{booking['id']}/tickets", headers=auth_headers)
    assert response.status_code == 200
    tickets = response.json()
    assert [t["id"] for t in tickets] == [t["id"] for t in booking["tickets"]]
    assert [t["qr_data"] for t in tickets] == [t["qr_data"] for t in booking["tickets"]]
    assert all(t["status"] == "valid" for t in tickets)
    assert all(t["qr_code"].startswith("data:image/png") for t in tickets)


@pytest.mark.asyncio
async def test_cancel_booking_releases_capacity(client: AsyncClient, auth_headers, small_event):
    booking = (await _book(client, auth_headers, small_event.id, 10)).json()
    assert (await _book(client, auth_headers, small_event.id, 1)).status_code == 409

    response = await client.delete(
        f"/api/v1/bookings/{booking['id']}", params={"reason": "Plans changed"}, headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json() == {
        "message": "Booking cancelled successfully",
        "booking_id": booking["id"],
        "status": "cancelled",
    }

    capacity = await client.get(f"/api/v1/events/{small_event.id}/capacity")
    assert capacity.json()["available"] == 10

    tickets = await client.get(f"/api/v1/bookings/{booking['id']}/tickets", headers=auth_headers)
    assert {t["status"] for t in tickets.json()} == {"cancelled"}


@pytest.mark.asyncio
async def test_cancel_already_cancelled(client: AsyncClient, auth_headers, test_event):
    booking = (await _book(client, auth_headers, test_event.id, 1)).json()

    await client.delete(f"/api/v1/bookings/{booking['id']}", headers=auth_headers)
    response = await client.delete(f"/api/v1/bookings/{booking['id']}", headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "ALREADY_CANCELLED"


@pytest.mark.asyncio
async def test_cancel_someone_elses_booking(client: AsyncClient, auth_headers, other_headers, test_event):
    booking = (await _book(client, auth_headers, test_event.id, 1)).json()

    response = await client.delete(f"/api/v1/bookings/{booking['id']}", headers=other_headers)
    assert response.status_code == 404

    mine = await client.get(f"/api/v1/bookings/reference/{booking['booking_reference']}", headers=auth_headers)
    assert mine.json()["status"] == "confirmed"
