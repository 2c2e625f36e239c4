import base64
import re

import pytest

import ticketqr.tokens
from ticketqr.errors import RenderError
from ticketqr.tokens import generate_access_token, render_qr_data_url


def test_token_is_64_hex_chars():
    token = generate_access_token()

    assert re.fullmatch(r"[0-9a-f]{64}", token)


def test_tokens_are_not_repeated():
    assert len({generate_access_token() for _ in range(200)}) == 200


def test_render_returns_png_data_url():
    data_url = render_qr_data_url(generate_access_token())

    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):]).startswith(b"\x89PNG")


def test_render_failure_raises_render_error(monkeypatch):
    def broken(**kwargs):
        raise ValueError("no encoder")

    monkeypatch.setattr(ticketqr.tokens.qrcode, "QRCode", broken)

    with pytest.raises(RenderError):
        render_qr_data_url("token")
