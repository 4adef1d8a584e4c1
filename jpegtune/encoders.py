from __future__ import annotations

import io
import logging
from typing import Callable, Protocol

from PIL import Image

from .errors import ConfigurationError, EncodingFailure
from .models import MAX_QUALITY, MIN_QUALITY
from .tools import MOZJPEG_NAMES, get_tool_executable, run_command

logger = logging.getLogger(__name__)

DECODE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)

_ENCODER_REGISTRY: dict[str, Callable[[], "Encoder"]] = {}


class Encoder(Protocol):
    name: str

    def encode(self, data: bytes, quality: int) -> bytes:
        ...


def decode_rgb(data: bytes, background: tuple[int, int, int] = (255, 255, 255)) -> Image.Image:
    """Decode image bytes and return an RGB image, flattening any alpha onto ``background``."""
    with Image.open(io.BytesIO(data)) as image:
        image.load()
        has_alpha = image.mode in {"RGBA", "LA"} or (
            image.mode == "P" and "transparency" in image.info
        )
        if has_alpha:
            base = Image.new("RGBA", image.size, background + (255,))
            return Image.alpha_composite(base, image.convert("RGBA")).convert("RGB")
        if image.mode != "RGB":
            return image.convert("RGB")
        return image.copy()


def check_quality(quality: int) -> int:
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise EncodingFailure(f"quality {quality} outside {MIN_QUALITY}..{MAX_QUALITY}")
    return quality


class PillowEncoder:
    name = "Pillow"

    def encode(self, data: bytes, quality: int) -> bytes:
        check_quality(quality)
        try:
            image = decode_rgb(data)
        except DECODE_ERRORS as exc:
            raise EncodingFailure(f"cannot decode source image: {exc}") from exc
        buffer = io.BytesIO()
        try:
            image.save(buffer, format="JPEG", quality=quality, optimize=True, progressive=True)
        except (OSError, ValueError) as exc:
            raise EncodingFailure(f"Pillow failed at quality {quality}: {exc}") from exc
        return buffer.getvalue()


class MozjpegEncoder:
    name = "mozjpeg"

    def __init__(self, executable: str | None = None) -> None:
        cjpeg = executable or get_tool_executable(MOZJPEG_NAMES)
        if not cjpeg:
            raise ConfigurationError("mozjpeg encoder selected but cjpeg was not found")
        self.executable = cjpeg

    def encode(self, data: bytes, quality: int) -> bytes:
        check_quality(quality)
        try:
            image = decode_rgb(data)
        except DECODE_ERRORS as exc:
            raise EncodingFailure(f"cannot decode source image: {exc}") from exc
        ppm = io.BytesIO()
        image.save(ppm, format="PPM")
        command = [
            self.executable,
            "-quality",
            str(quality),
            "-optimize",
            "-progressive",
        ]
        try:
            result = run_command(command, stdin=ppm.getvalue())
        except OSError as exc:
            raise EncodingFailure(f"cannot run {self.executable}: {exc}") from exc
        if result.returncode != 0 or not result.stdout:
            stderr = result.stderr.decode(errors="replace").strip()
            raise EncodingFailure(
                f"cjpeg exited with {result.returncode} at quality {quality}: {stderr}"
            )
        return result.stdout


def get_encoder_registry() -> dict[str, Callable[[], Encoder]]:
    global _ENCODER_REGISTRY
    if not _ENCODER_REGISTRY:
        _ENCODER_REGISTRY = {
            "pillow": PillowEncoder,
            "mozjpeg": MozjpegEncoder,
        }
    return _ENCODER_REGISTRY


def set_encoder_registry(registry: dict[str, Callable[[], Encoder]]) -> None:
    global _ENCODER_REGISTRY
    _ENCODER_REGISTRY = dict(registry)


def get_encoder(name: str) -> Encoder:
    registry = get_encoder_registry()
    factory = registry.get(name.lower())
    if factory is None:
        available = ", ".join(sorted(registry)) or "none"
        raise ConfigurationError(f"unknown encoder '{name}', available: {available}")
    encoder = factory()
    logger.debug("using encoder %s", encoder.name)
    return encoder
