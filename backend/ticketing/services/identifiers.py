"""
Identifier and reference generation.

Booking references and ticket numbers are meant to be read aloud or typed
from a printed ticket, so they stay short and use base36. Primary keys use
the same building blocks with a type prefix.
"""

import secrets
import time

BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding expects a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def new_id(prefix: str) -> str:
    """Primary key of the form ``<prefix>_<ms timestamp>_<8 random chars>``."""
    return f"{prefix}_{_now_ms()}_{_random_base36(8)}"


def new_booking_reference(prefix: str = "BE") -> str:
    """``PREFIX-<base36 timestamp>-<5 random uppercase chars>``, e.g. ``BE-m1x2y3z4-7KQ2D``."""
    return f"{prefix}-{to_base36(_now_ms())}-{_random_base36(5).upper()}"


def new_ticket_number(event_id: str, sequence_index: int) -> str:
    """
    Human-readable ticket code, e.g. ``A1B2-M1X2Y3Z4-01``.

    Unique within one booking's batch through the sequence index; across
    bookings it relies on the timestamp and event suffix. Display only,
    never used as a key.
    """
    if sequence_index < 0:
        raise ValueError("sequence_index must be non-negative")
    event_suffix = str(event_id)[-4:].upper()
    return f"{event_suffix}-{to_base36(_now_ms()).upper()}-{sequence_index:02d}"
