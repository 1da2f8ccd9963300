# tests/test_imaging.py
from __future__ import annotations

import base64
from io import BytesIO

import pytest
from PIL import Image

from relay.core.errors import ImageDecodeError, ImageEncodeError
from relay.core.imaging import decode_image, encode_image


def make_image(fmt: str, mode: str = "RGB", size=(3, 2), color="red") -> bytes:
    buffer = BytesIO()
    Image.new(mode, size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


PNG = make_image("PNG")


def test_png_round_trip():
    assert decode_image(encode_image(PNG)) == PNG


@pytest.mark.parametrize("fmt", ["GIF", "BMP", "JPEG"])
def test_other_formats_are_stored_as_png(fmt):
    stored = decode_image(b64(make_image(fmt)))
    with Image.open(BytesIO(stored)) as img:
        assert img.format == "PNG"
        assert img.size == (3, 2)
    assert base64.b64decode(encode_image(stored)) == stored


def test_encode_rejects_non_image():
    with pytest.raises(ImageEncodeError):
        encode_image(b"")
    with pytest.raises(ImageEncodeError):
        encode_image(b"hello")


@pytest.mark.parametrize(
    "text",
    [
        "",
        "@@@@",
        "iVBORw0KGgo",
        "é",
        b64(b"not an image"),
        b64(b"BMW is a car"),
        b64(b"\x89PNG\r\n\x1a\ngarbage"),
        b64(PNG[:45]),
    ],
)
def test_decode_rejects_malformed(text):
    with pytest.raises(ImageDecodeError):
        decode_image(text)
