from ticketing.models.user import User
from ticketing.models.event import Event
from ticketing.models.booking import Booking
from ticketing.models.checkin import CheckIn
from ticketing.models.activity import ActivityLog

__all__ = ["User", "Event", "Booking", "CheckIn", "ActivityLog"]
