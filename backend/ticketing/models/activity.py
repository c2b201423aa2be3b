"""
Audit trail of booking lifecycle actions (create, cancel, check-in).
"""

from sqlalchemy import Column, String, DateTime, JSON, Index

from ticketing.db.base import Base, utcnow
from ticketing.services.identifiers import new_id


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(64), primary_key=True, default=lambda: new_id("log"))
    user_id = Column(String(64), nullable=False)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_activity_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(action={self.action}, {self.entity_type}={self.entity_id})>"
