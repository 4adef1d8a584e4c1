import io
import random
import struct
import zlib

import pytest
from PIL import Image

from jpegtune.encoders import get_encoder_registry, set_encoder_registry
from jpegtune.tools import clear_tool_cache


def make_image(size=(48, 48), mode="RGB", seed=0) -> Image.Image:
    rng = random.Random(seed)
    width, height = size
    pixels = bytearray()
    for y in range(height):
        for x in range(width):
            base = (x * 255 // width + y * 255 // height) // 2
            pixels += bytes(
                max(0, min(255, base + rng.randint(-40, 40))) for _ in range(3)
            )
    image = Image.frombytes("RGB", size, bytes(pixels))
    if mode != "RGB":
        image = image.convert(mode)
    return image


def encode(image: Image.Image, fmt: str, **params) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


def png_chunk(kind: bytes, payload: bytes) -> bytes:
    return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", zlib.crc32(kind + payload))


def oversized_png(width=20000, height=20000) -> bytes:
    """PNG header claiming a size past Pillow's decompression bomb limit, with no pixel data."""
    header = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + png_chunk(b"IHDR", header) + png_chunk(b"IEND", b"")


class ScriptedProbe:
    """Returns scores from a mapping or a callable and records probed levels."""

    def __init__(self, scores):
        self.scores = scores
        self.calls = []

    def measure(self, quality):
        self.calls.append(quality)
        if callable(self.scores):
            return self.scores(quality)
        return self.scores[quality]


class ConstantScorer:
    def __init__(self, value):
        self.value = value
        self.calls = []

    def score(self, reference, candidate):
        self.calls.append((reference, candidate))
        return self.value


@pytest.fixture
def png_bytes():
    return encode(make_image(), "PNG")


@pytest.fixture
def jpeg_bytes():
    return encode(make_image(), "JPEG", quality=95)


@pytest.fixture(autouse=True)
def restore_encoder_registry():
    saved = dict(get_encoder_registry())
    clear_tool_cache()
    yield
    set_encoder_registry(saved)
    clear_tool_cache()
