# backend/core/qrcodes.py
import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M


def qr_code_data_url(text: str, box_size: int = 8, border: int = 2) -> str:
    """PNG QR code for `text` as a `data:image/png;base64,...` URL."""
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
    qr.add_data(text)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    image.save(buf)
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
