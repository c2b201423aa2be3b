"""
User model. Staff accounts may validate and check in tickets.
"""

from sqlalchemy import Column, String, Boolean

from ticketing.db.base import Base, TimestampMixin
from ticketing.services.identifiers import new_id


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, default=lambda: new_id("user"))
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_staff = Column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"
