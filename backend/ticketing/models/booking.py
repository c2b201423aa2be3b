"""
Booking model representing a user's purchase of one or more tickets.

Key design decisions:
- Tickets are embedded in `ticket_data` as their canonical QR payloads; the
  check-in log, not this column, decides whether a ticket was used
- Status field allows cancellation without deleting records
- `booking_reference` is the human-shareable handle and is unique
- `version` is bumped to lock the row during check-in and cancellation
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, JSON, ForeignKey, UniqueConstraint, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base, TimestampMixin

BOOKING_STATUSES = ("confirmed", "cancelled", "checked_in")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(String(64), ForeignKey("events.id"), nullable=False, index=True)
    ticket_quantity = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="USD")
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(50), nullable=True)
    payment_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="confirmed")
    booking_reference = Column(String(40), nullable=False)
    ticket_data = Column(JSON, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    version = Column(Integer, nullable=False, default=1)

    event = relationship("Event", lazy="joined", innerjoin=True)

    __table_args__ = (
        UniqueConstraint("booking_reference", name="uq_booking_reference"),
        CheckConstraint("ticket_quantity > 0", name="check_booking_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'checked_in')", name="check_booking_status"
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        # Capacity sums filter on (event_id, status)
        Index("ix_bookings_event_status", "event_id", "status"),
    )

    @property
    def ticket_entries(self) -> list[dict]:
        return list((self.ticket_data or {}).get("tickets", []))

    @property
    def ticket_ids(self) -> list[str]:
        return [entry["id"] for entry in self.ticket_entries]

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, ref={self.booking_reference}, event={self.event_id}, status={self.status})>"
