"""QR label generation for items."""

import base64
import io
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path

import qrcode
import structlog
from qrcode.constants import ERROR_CORRECT_M

from tally.capture.heuristics import build_qr_payload

logger = structlog.get_logger()


class QRMode(str, Enum):
    """The QR screen has two independent tabs."""

    SCAN = "scan"
    GENERATE = "generate"


@dataclass(frozen=True)
class GeneratedQRCode:
    payload: str
    png: bytes
    filename: str

    @property
    def data_url(self) -> str:
        return f"data:image/png;base64,{base64.b64encode(self.png).decode()}"

    def copy_text(self) -> str:
        """Raw payload, as put on the clipboard."""
        return self.payload

    def save(self, directory: str | Path) -> Path:
        path = Path(directory) / self.filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.png)
        return path


def _slug(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "item"


class QRCodeGenerator:
    def __init__(self, box_size: int = 10, border: int = 4):
        self.box_size = box_size
        self.border = border

    def render(self, payload: str) -> bytes:
        qr = qrcode.QRCode(
            version=None,
            error_correction=ERROR_CORRECT_M,
            box_size=self.box_size,
            border=self.border,
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()

    def generate(
        self,
        name: str,
        category: str,
        description: str | None = None,
        value: Decimal | None = None,
    ) -> GeneratedQRCode:
        payload = build_qr_payload(name, category, description, value)
        png = self.render(payload)
        logger.info("QR code generated", name=name, size=len(png))
        return GeneratedQRCode(payload=payload, png=png, filename=f"{_slug(name)}-qr-code.png")
