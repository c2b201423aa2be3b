"""
Service dependencies for the route modules.
Tests swap any of these through app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends

from ticketing.core.config import get_settings
from ticketing.services.booking_service import BookingService
from ticketing.services.interfaces.notifier import Notifier
from ticketing.services.qr_codec import QRCodec
from ticketing.services.strategy_factory import get_checksum_strategy, get_notifier_strategy
from ticketing.services.ticket_issuer import TicketIssuer
from ticketing.services.validation_service import TicketValidator


@lru_cache()
def get_ticket_issuer() -> TicketIssuer:
    return TicketIssuer(get_checksum_strategy(), QRCodec())


@lru_cache()
def get_notifier() -> Notifier:
    return get_notifier_strategy()


def get_booking_service(issuer: TicketIssuer = Depends(get_ticket_issuer)) -> BookingService:
    return BookingService(issuer, reference_prefix=get_settings().BOOKING_REFERENCE_PREFIX)


def get_ticket_validator(issuer: TicketIssuer = Depends(get_ticket_issuer)) -> TicketValidator:
    return TicketValidator(issuer.checksum, issuer.codec, event_timezone=get_settings().EVENT_TIMEZONE)
