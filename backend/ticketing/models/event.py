"""
Event model with a fixed ticket capacity.

Key design decisions:
- No denormalized "available" counter: the committed count is always summed
  from non-cancelled bookings, so cancellation needs no compensating update
- `version` is bumped as the first write of every booking transaction for the
  event, which makes the event row the lock that serializes capacity checks
- Index on `date` for range queries (upcoming events)
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint

from ticketing.db.base import Base, TimestampMixin
from ticketing.services.identifiers import new_id


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(String(64), primary_key=True, default=lambda: new_id("event"))
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    venue = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=False)
    organizer_id = Column(String(64), ForeignKey("users.id"), nullable=False)

    # Lock counter, see module docstring
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("capacity >= 0", name="check_event_capacity_non_negative"),
        Index("ix_events_date", "date"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, capacity={self.capacity})>"
