import base64
import io
import logging
import secrets

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from .errors import RenderError

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
QR_BORDER = 2
# ~300px for a typical 64-char token (version 4-5 + border)
QR_BOX_SIZE = 8


def generate_access_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def render_qr_data_url(token: str) -> str:
    """Render `token` as a PNG QR code, returned as a data URL for <img>."""
    try:
        qr = qrcode.QRCode(
            error_correction=ERROR_CORRECT_M,
            box_size=QR_BOX_SIZE,
            border=QR_BORDER,
        )
        qr.add_data(token)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")
        buf = io.BytesIO()
        img.save(buf, format="PNG")
    except Exception as exc:
        logger.exception("QR code generation failed")
        raise RenderError("Failed to generate QR code") from exc
    png_b64 = base64.b64encode(buf.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{png_b64}"
