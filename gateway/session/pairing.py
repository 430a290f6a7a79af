"""Pairing-code (QR) rendering for the terminal and for ``GET /qr``."""

import io
import sys
from typing import TextIO

import qrcode


def _build(code: str, box_size: int = 10) -> qrcode.QRCode:
    qr = qrcode.QRCode(box_size=box_size, border=2)
    qr.add_data(code)
    qr.make(fit=True)
    return qr


def print_terminal(code: str, out: TextIO | None = None) -> None:
    _build(code).print_ascii(out=out or sys.stdout, invert=True)


def render_png(code: str, box_size: int = 8) -> bytes:
    image = _build(code, box_size).make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    image.save(buf)
    return buf.getvalue()
