from __future__ import annotations

import io
import logging
import tempfile
from pathlib import Path
from typing import Protocol

from .encoders import DECODE_ERRORS, decode_rgb
from .errors import ConfigurationError, ScoringFailure
from .tools import DSSIM_NAMES, get_tool_executable, run_command

logger = logging.getLogger(__name__)


class DissimilarityScorer(Protocol):
    def score(self, reference: bytes, candidate: bytes) -> float:
        ...


def to_raster(data: bytes) -> bytes:
    """Decode compressed image bytes into an in-memory RGB PNG."""
    try:
        image = decode_rgb(data)
        buffer = io.BytesIO()
        image.save(buffer, format="PNG", compress_level=1)
    except DECODE_ERRORS as exc:
        raise ScoringFailure(f"cannot normalize image to raster: {exc}") from exc
    return buffer.getvalue()


def parse_dssim_output(output: str) -> float:
    # dssim prints "<score>\t<candidate path>" per compared file
    for line in output.splitlines():
        fields = line.split()
        if not fields:
            continue
        try:
            value = float(fields[0])
        except ValueError as exc:
            raise ScoringFailure(f"unexpected dssim output: {line!r}") from exc
        if value < 0:
            raise ScoringFailure(f"dssim returned a negative score: {value}")
        return value
    raise ScoringFailure("dssim produced no output")


class DssimScorer:
    name = "dssim"

    def __init__(self, executable: str | None = None) -> None:
        dssim = executable or get_tool_executable(DSSIM_NAMES)
        if not dssim:
            raise ConfigurationError("dssim executable was not found")
        self.executable = dssim

    def score(self, reference: bytes, candidate: bytes) -> float:
        with tempfile.TemporaryDirectory(prefix="jpegtune_") as tmpdir:
            reference_path = Path(tmpdir) / "reference.png"
            candidate_path = Path(tmpdir) / "candidate.png"
            reference_path.write_bytes(reference)
            candidate_path.write_bytes(candidate)
            command = [self.executable, str(reference_path), str(candidate_path)]
            try:
                result = run_command(command)
            except OSError as exc:
                raise ScoringFailure(f"cannot run {self.executable}: {exc}") from exc
        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace").strip()
            raise ScoringFailure(f"dssim exited with {result.returncode}: {stderr}")
        return parse_dssim_output(result.stdout.decode(errors="replace"))
