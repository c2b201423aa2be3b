"""
Ticket checksum strategy interface.
Lets the deployment choose between the legacy rolling hash, which keeps
previously printed tickets valid, and a keyed HMAC.
"""

from abc import ABC, abstractmethod


class ChecksumStrategy(ABC):
    """
    Derives the integrity tag embedded in every ticket QR payload.

    Implementations:
    - LegacyChecksum: public rolling hash, detects corruption and naive edits
    - HmacChecksum: keyed HMAC-SHA256, cannot be recomputed without the secret

    Implementations must be deterministic and hold no per-instance state
    beyond configuration, so a ticket issued by one process validates in any
    other.
    """

    name: str = "abstract"

    @abstractmethod
    def compute(self, ticket_id: str, event_id: str, user_id: str) -> str:
        """
        Args:
            ticket_id: Ticket identifier
            event_id: Event identifier
            user_id: Ticket holder identifier

        Returns:
            Checksum string for the (ticket, event, user) triple, order sensitive
        """
        pass

    @abstractmethod
    def verify(self, ticket_id: str, event_id: str, user_id: str, checksum: str) -> bool:
        """True if `checksum` matches the recomputed value."""
        pass
