"""
Append-only check-in log.

A row here is the only evidence that a ticket has been used. The unique
constraint on ticket_id turns two simultaneous scans of one ticket into one
insert and one IntegrityError.
"""

from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from ticketing.db.base import Base, utcnow
from ticketing.services.identifiers import new_id


class CheckIn(Base):
    __tablename__ = "check_ins"

    id = Column(String(64), primary_key=True, default=lambda: new_id("checkin"))
    ticket_id = Column(String(64), nullable=False)
    event_id = Column(String(64), ForeignKey("events.id"), nullable=False, index=True)
    booking_id = Column(String(64), ForeignKey("bookings.id"), nullable=False, index=True)
    checked_in_by = Column(String(64), ForeignKey("users.id"), nullable=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("ticket_id", name="uq_check_in_ticket"),
    )

    def __repr__(self) -> str:
        return f"<CheckIn(ticket={self.ticket_id}, booking={self.booking_id}, by={self.checked_in_by})>"
