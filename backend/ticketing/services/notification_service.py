"""
Notification bridge: booking confirmations and check-in notices.

Messages go out from FastAPI background tasks once the response is sent.
The wrappers at the bottom of this module catch and count every failure,
so a broken mail provider never turns a committed booking into an error.
"""

from pathlib import Path
from typing import Optional

import httpx

from ticketing.core.logging import get_logger
from ticketing.core.metrics import record_notification_failure
from ticketing.services.interfaces.notifier import BookingNotice, Notifier

logger = get_logger(__name__)

DEFAULT_CONFIRMATION_TEMPLATE = """\
Hi {user_name},

Your booking for {event_title} has been confirmed.

Event Details:
- Date: {event_date}
- Location: {event_location}
- Tickets: {ticket_quantity}
- Booking Reference: {booking_reference}

Thank you for choosing Boujee Events!
"""

CHECK_IN_TEMPLATE = """\
Hi {user_name},

You're checked in to {event_title}. Enjoy the event!

Booking Reference: {booking_reference}
"""


def notice_variables(notice: BookingNotice) -> dict:
    location = ", ".join(part for part in (notice.event_venue, notice.event_location) if part)
    return {
        "user_name": notice.user_name,
        "event_title": notice.event_title,
        "event_date": notice.event_date.strftime("%A, %d %B %Y %H:%M"),
        "event_location": location or "TBA",
        "ticket_quantity": notice.ticket_quantity,
        "booking_reference": notice.reference,
    }


def load_confirmation_template(path: Optional[str]) -> str:
    """Custom template file when one is configured, otherwise the built-in one."""
    if path:
        return Path(path).read_text(encoding="utf-8")
    else:
        return DEFAULT_CONFIRMATION_TEMPLATE


def render_confirmation(notice: BookingNotice, template: str) -> tuple[str, str]:
    """Subject and plain-text body for a booking confirmation."""
    subject = f"Booking Confirmed: {notice.event_title}"
    return subject, template.format_map(notice_variables(notice))


def render_check_in(notice: BookingNotice) -> tuple[str, str]:
    subject = f"Checked in: {notice.event_title}"
    return subject, CHECK_IN_TEMPLATE.format_map(notice_variables(notice))


class LogNotifier(Notifier):
    """Default notifier for development and tests: the message goes to the log."""

    name = "log"

    def __init__(self, confirmation_template: str = DEFAULT_CONFIRMATION_TEMPLATE):
        self.confirmation_template = confirmation_template

    async def booking_confirmed(self, notice: BookingNotice) -> None:
        subject, _ = render_confirmation(notice, self.confirmation_template)
        logger.info(
            "notification_logged",
            kind="booking_confirmed",
            to=notice.user_email,
            subject=subject,
            booking_id=notice.booking_id,
            has_qr=notice.qr_code is not None,
        )

    async def booking_checked_in(self, notice: BookingNotice) -> None:
        subject, _ = render_check_in(notice)
        logger.info(
            "notification_logged",
            kind="booking_checked_in",
            to=notice.user_email,
            subject=subject,
            booking_id=notice.booking_id,
        )


class ResendNotifier(Notifier):
    """E-mail through the Resend HTTP API."""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
        confirmation_template: str = DEFAULT_CONFIRMATION_TEMPLATE,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self.confirmation_template = confirmation_template
        self.timeout = timeout
        self.transport = transport

    async def booking_confirmed(self, notice: BookingNotice) -> None:
        subject, text = render_confirmation(notice, self.confirmation_template)
        attachments = None
        if notice.qr_code:
            # Resend takes base64 content without the data URL prefix
            attachments = [{"filename": "ticket-qr.png", "content": notice.qr_code.split(",", 1)[-1]}]
        await self._send(notice.user_email, subject, text, attachments)

    async def booking_checked_in(self, notice: BookingNotice) -> None:
        subject, text = render_check_in(notice)
        await self._send(notice.user_email, subject, text)

    async def _send(self, to: str, subject: str, text: str, attachments: Optional[list] = None) -> None:
        body = {"from": self.sender, "to": [to], "subject": subject, "text": text}
        if attachments:
            body["attachments"] = attachments

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                self.api_url,
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()

        logger.info("notification_sent", provider=self.name, to=to, subject=subject, message_id=response.json().get("id"))


async def send_booking_confirmation(notifier: Notifier, notice: BookingNotice) -> None:
    try:
        await notifier.booking_confirmed(notice)
    except Exception as exc:
        record_notification_failure("booking_confirmed")
        logger.error(
            "notification_failed",
            kind="booking_confirmed",
            provider=notifier.name,
            booking_id=notice.booking_id,
            error=str(exc),
        )


async def send_check_in_notice(notifier: Notifier, notice: BookingNotice) -> None:
    try:
        await notifier.booking_checked_in(notice)
    except Exception as exc:
        record_notification_failure("booking_checked_in")
        logger.error(
            "notification_failed",
            kind="booking_checked_in",
            provider=notifier.name,
            booking_id=notice.booking_id,
            error=str(exc),
        )
