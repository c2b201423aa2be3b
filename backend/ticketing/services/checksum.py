"""
Ticket checksum implementations.

LegacyChecksum reproduces the rolling hash printed on every ticket issued so
far: h = h * 31 + code_unit over the UTF-16 code units of
ticket_id + event_id + user_id, wrapped to a signed 32-bit integer after
every step, then abs() and base36. It is an integrity tag, not a signature:
anyone holding the three identifiers can recompute it.

HmacChecksum keys the same triple with a server-side secret. Switching to it
invalidates tickets issued under the legacy algorithm.
"""

import hashlib
import hmac

from ticketing.services.identifiers import to_base36
from ticketing.services.interfaces.checksum import ChecksumStrategy

_UINT32 = 0xFFFFFFFF


def _to_int32(value: int) -> int:
    value &= _UINT32
    return value - 0x100000000 if value & 0x80000000 else value


def _utf16_code_units(data: str):
    encoded = data.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(encoded), 2):
        yield encoded[i] | (encoded[i + 1] << 8)


def rolling_hash(data: str) -> int:
    h = 0
    for code_unit in _utf16_code_units(data):
        h = _to_int32((h << 5) - h + code_unit)
    return h


def checksum(ticket_id: str, event_id: str, user_id: str) -> str:
    """Legacy ticket checksum for the (ticket, event, user) triple."""
    return to_base36(abs(rolling_hash(f"{ticket_id}{event_id}{user_id}")))


class LegacyChecksum(ChecksumStrategy):
    name = "legacy"

    def compute(self, ticket_id: str, event_id: str, user_id: str) -> str:
        return checksum(ticket_id, event_id, user_id)

    def verify(self, ticket_id: str, event_id: str, user_id: str, checksum: str) -> bool:
        expected = self.compute(ticket_id, event_id, user_id)
        return hmac.compare_digest(expected.encode(), str(checksum).encode("utf-8", "surrogatepass"))


class HmacChecksum(ChecksumStrategy):
    """HMAC-SHA256 over the pipe-joined triple, truncated to 16 hex chars."""

    name = "hmac"
    DIGEST_LENGTH = 16

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("HmacChecksum requires a non-empty secret")
        self._key = f"ticket-checksum:{secret}".encode()

    def compute(self, ticket_id: str, event_id: str, user_id: str) -> str:
        message = "|".join((ticket_id, event_id, user_id)).encode("utf-8", "surrogatepass")
        digest = hmac.new(self._key, message, hashlib.sha256).hexdigest()
        return digest[: self.DIGEST_LENGTH]

    def verify(self, ticket_id: str, event_id: str, user_id: str, checksum: str) -> bool:
        expected = self.compute(ticket_id, event_id, user_id)
        return hmac.compare_digest(expected.encode(), str(checksum).encode("utf-8", "surrogatepass"))
