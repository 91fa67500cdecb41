# repairhub/codes.py: scannable code for remote signature links
import io

import qrcode


def link_qr_png(url: str) -> bytes:
    """PNG bytes of a QR code a phone camera opens as a link."""
    img = qrcode.make(url, error_correction=qrcode.constants.ERROR_CORRECT_M)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
