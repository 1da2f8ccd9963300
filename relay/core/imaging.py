"""Profile picture codec.

Pictures travel as standard (padded) base64 text. Incoming payloads are fully decoded
with Pillow, so anything that is not a readable image is refused, and stored pictures
are normalised to PNG. Outgoing pictures are re-encoded as PNG.
"""
from __future__ import annotations

import base64
import binascii
import struct
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from .errors import ImageDecodeError, ImageEncodeError

WIRE_FORMAT = "PNG"

_IMAGE_ERRORS = (UnidentifiedImageError, OSError, SyntaxError, ValueError, struct.error, Image.DecompressionBombError)


def _load(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()  # forces a full decode; truncated or corrupt data fails here
    return img


def _to_png(img: Image.Image) -> bytes:
    if img.mode == "CMYK":
        img = img.convert("RGB")
    buffer = BytesIO()
    img.save(buffer, format=WIRE_FORMAT)
    return buffer.getvalue()


def encode_image(data: bytes) -> str:
    try:
        png = _to_png(_load(data))
    except _IMAGE_ERRORS as exc:
        raise ImageEncodeError(f"stored picture cannot be encoded: {exc}") from exc
    return base64.b64encode(png).decode("ascii")


def decode_image(text: str) -> bytes:
    try:
        raw = base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise ImageDecodeError("picture is not valid base64") from exc
    try:
        return _to_png(_load(raw))
    except _IMAGE_ERRORS as exc:
        raise ImageDecodeError(f"picture is not a readable image: {exc}") from exc


__all__ = ["WIRE_FORMAT", "encode_image", "decode_image"]
