"""
Strategy factory.
Configures which checksum strategy and which notifier the services use.
"""

from ticketing.core.config import Settings, get_settings
from ticketing.services.checksum import HmacChecksum, LegacyChecksum
from ticketing.services.interfaces.checksum import ChecksumStrategy
from ticketing.services.interfaces.notifier import Notifier
from ticketing.services.notification_service import LogNotifier, ResendNotifier, load_confirmation_template


def get_checksum_strategy(settings: Settings = None) -> ChecksumStrategy:
    """
    Get configured checksum strategy.

    - legacy: rolling hash, keeps every ticket printed so far scannable
    - hmac: keyed with TICKET_CHECKSUM_SECRET, tickets cannot be forged

    Switching invalidates every ticket issued under the other strategy.
    """
    settings = settings or get_settings()
    algorithm = settings.TICKET_CHECKSUM_ALGORITHM.lower()

    if algorithm == "hmac":
        return HmacChecksum(settings.TICKET_CHECKSUM_SECRET)
    elif algorithm == "legacy":
        return LegacyChecksum()
    raise ValueError(f"Unknown TICKET_CHECKSUM_ALGORITHM: {settings.TICKET_CHECKSUM_ALGORITHM}")


def get_notifier_strategy(settings: Settings = None) -> Notifier:
    """Resend when EMAIL_PROVIDER=resend and a key is set, otherwise the log notifier."""
    settings = settings or get_settings()
    template = load_confirmation_template(settings.BOOKING_CONFIRMATION_TEMPLATE)

    if settings.EMAIL_PROVIDER.lower() == "resend":
        if not settings.RESEND_API_KEY:
            raise ValueError("EMAIL_PROVIDER=resend requires RESEND_API_KEY")
        return ResendNotifier(
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            api_url=settings.RESEND_API_URL,
            confirmation_template=template,
        )
    return LogNotifier(confirmation_template=template)
