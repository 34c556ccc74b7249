"""QR code rendering for scan-to-pay content."""
from __future__ import annotations

from io import BytesIO

import qrcode
from PIL import Image


def render_png(content: str, width: int, height: int) -> bytes:
    """Encode `content` as a QR code and return it as a width x height PNG."""
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_M, border=1)
    qr.add_data(content)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white").get_image().convert("RGB")
    image = image.resize((width, height), Image.Resampling.NEAREST)

    buf = BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
