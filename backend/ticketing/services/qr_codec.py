"""
QR codec for ticket payloads.

The payload is serialized as compact JSON with a fixed field order and
rendered into a PNG with medium error correction, so a partly scuffed or
creased printout still scans. Decoding goes the other way from the text a
scanner reads off the code.
"""

import base64
import io
import json
from dataclasses import dataclass

import qrcode
from qrcode import constants
from pydantic import ValidationError

from ticketing.core.exceptions import InvalidQRFormat
from ticketing.schemas.ticket import TicketPayload

# A full payload serializes to a few hundred characters
MAX_SCAN_LENGTH = 4096


@dataclass(frozen=True)
class QRImage:
    data: str
    data_url: str
    mime_type: str = "image/png"


class QRCodec:
    def __init__(self, box_size: int = 8, border: int = 1):
        self.box_size = box_size
        self.border = border

    @staticmethod
    def serialize(payload: TicketPayload) -> str:
        return payload.model_dump_json(by_alias=True)

    def render(self, data: str) -> str:
        qr = qrcode.QRCode(
            version=None,
            error_correction=constants.ERROR_CORRECT_M,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(data)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    def encode(self, payload: TicketPayload) -> QRImage:
        data = self.serialize(payload)
        return QRImage(data=data, data_url=self.render(data))

    def decode(self, scanned_text: str) -> TicketPayload:
        """Parse scanned QR text. Any malformed input raises InvalidQRFormat."""
        if not isinstance(scanned_text, str) or not scanned_text.strip():
            raise InvalidQRFormat()
        if len(scanned_text) > MAX_SCAN_LENGTH:
            raise InvalidQRFormat()
        try:
            raw = json.loads(scanned_text.strip())
        except (ValueError, RecursionError):
            raise InvalidQRFormat() from None
        if not isinstance(raw, dict):
            raise InvalidQRFormat()
        try:
            return TicketPayload.model_validate(raw)
        except ValidationError:
            raise InvalidQRFormat() from None
