"""
Ticket issuance: one canonical payload, checksum and QR image per unit.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ticketing.schemas.ticket import TicketPayload, TicketResponse, TicketStatus
from ticketing.services.identifiers import new_id, new_ticket_number
from ticketing.services.interfaces.checksum import ChecksumStrategy
from ticketing.services.qr_codec import QRCodec, QRImage


def iso_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def ticket_entry(payload: TicketPayload) -> dict:
    """Shape stored in Booking.ticket_data['tickets']."""
    return {
        "id": payload.ticket_id,
        "ticketNumber": payload.ticket_number,
        "payload": payload.model_dump(by_alias=True),
    }


def ticket_response(
    payload: TicketPayload,
    status: TicketStatus,
    used_at: Optional[datetime] = None,
    qr_code: Optional[str] = None,
) -> TicketResponse:
    return TicketResponse(
        id=payload.ticket_id,
        booking_id=payload.booking_id,
        event_id=payload.event_id,
        user_id=payload.user_id,
        ticket_number=payload.ticket_number,
        status=status,
        issued_at=payload.issued_at,
        used_at=used_at,
        qr_data=QRCodec.serialize(payload),
        qr_code=qr_code,
    )


@dataclass(frozen=True)
class IssuedTicket:
    payload: TicketPayload
    qr: QRImage

    @property
    def id(self) -> str:
        return self.payload.ticket_id

    @property
    def ticket_number(self) -> str:
        return self.payload.ticket_number

    def to_response(self) -> TicketResponse:
        return ticket_response(self.payload, TicketStatus.VALID, qr_code=self.qr.data_url)


class TicketIssuer:
    """
    Builds tickets for a booking. Holds no state besides its collaborators;
    the only source of variation is the fresh ticket id.
    """

    def __init__(self, checksum: ChecksumStrategy, codec: QRCodec):
        self.checksum = checksum
        self.codec = codec

    def build_payload(
        self,
        booking_id: str,
        event_id: str,
        user_id: str,
        sequence_index: int,
        issued_at: Optional[datetime] = None,
    ) -> TicketPayload:
        ticket_id = new_id("ticket")
        return TicketPayload(
            ticket_id=ticket_id,
            booking_id=booking_id,
            event_id=event_id,
            user_id=user_id,
            ticket_number=new_ticket_number(event_id, sequence_index),
            issued_at=iso_timestamp(issued_at or datetime.now(timezone.utc)),
            checksum=self.checksum.compute(ticket_id, event_id, user_id),
        )

    def render(self, payload: TicketPayload) -> IssuedTicket:
        return IssuedTicket(payload=payload, qr=self.codec.encode(payload))

    def issue(self, booking_id: str, event_id: str, user_id: str, sequence_index: int) -> IssuedTicket:
        return self.render(self.build_payload(booking_id, event_id, user_id, sequence_index))
