"""
Notification interface.
Booking and check-in flows hand a BookingNotice to a Notifier after their
transaction has committed; delivery never feeds back into the booking.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class BookingNotice:
    """Everything a message about one booking needs, resolved up front."""

    booking_id: str
    reference: str
    user_email: str
    user_name: str
    event_title: str
    event_date: datetime
    event_location: Optional[str] = None
    event_venue: Optional[str] = None
    ticket_quantity: int = 1
    qr_code: Optional[str] = None  # data URL of the first ticket


class Notifier(ABC):
    """
    Outbound messaging.

    Implementations:
    - LogNotifier: writes the message to the structured log
    - ResendNotifier: sends e-mail through the Resend HTTP API
    """

    name: str = "abstract"

    @abstractmethod
    async def booking_confirmed(self, notice: BookingNotice) -> None:
        pass

    @abstractmethod
    async def booking_checked_in(self, notice: BookingNotice) -> None:
        pass
