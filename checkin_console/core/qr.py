from __future__ import annotations
from io import BytesIO
import base64
import logging

import qrcode
from PIL import Image

from .config import get_settings
from .errors import EncodingError

settings = get_settings()
logger = logging.getLogger(__name__)

def render_png(text: str, size: int | None = None) -> bytes:
    """Render `text` as a square QR PNG of `size` pixels."""
    size = size or settings.qr_image_size
    try:
        qr = qrcode.QRCode(border=settings.qr_border)
        qr.add_data(text)
        qr.make(fit=True)
        img = qr.make_image().get_image().resize((size, size), Image.NEAREST)
        b = BytesIO(); img.save(b, format="PNG")
    except Exception as exc:
        raise EncodingError(f"Could not render QR image: {exc}") from exc
    return b.getvalue()

def encode(text: str, size: int | None = None) -> str:
    """Text-to-image capability used for passes the server sent without an image.

    Returns a `data:image/png;base64,...` URI so it can be shown anywhere the
    server's own `qr_code` URL would be.
    """
    png = render_png(text, size)
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")
