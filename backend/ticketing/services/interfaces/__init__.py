"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .checksum import ChecksumStrategy
from .notifier import Notifier, BookingNotice

__all__ = ['ChecksumStrategy', 'Notifier', 'BookingNotice']
