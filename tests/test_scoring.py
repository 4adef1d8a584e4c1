"""Tests for jpegtune.scoring: raster normalization and the dssim wrapper."""

import subprocess
from pathlib import Path

import pytest

from conftest import oversized_png
from jpegtune import scoring
from jpegtune.errors import ConfigurationError, ScoringFailure
from jpegtune.scoring import DssimScorer, parse_dssim_output, to_raster

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


class TestToRaster:
    def test_jpeg_to_png(self, jpeg_bytes):
        assert to_raster(jpeg_bytes).startswith(PNG_MAGIC)

    def test_garbage(self):
        with pytest.raises(ScoringFailure):
            to_raster(b"\x00\x01garbage")

    def test_oversized_image(self):
        with pytest.raises(ScoringFailure, match="exceeds limit"):
            to_raster(oversized_png())


class TestParseOutput:
    def test_score_and_path(self):
        assert parse_dssim_output("0.015234\t/tmp/candidate.png\n") == pytest.approx(0.015234)

    def test_skips_blank_lines(self):
        assert parse_dssim_output("\n0.5 b.png\n") == 0.5

    def test_empty(self):
        with pytest.raises(ScoringFailure):
            parse_dssim_output("")

    def test_not_a_number(self):
        with pytest.raises(ScoringFailure):
            parse_dssim_output("error: can't load image\n")

    def test_negative(self):
        with pytest.raises(ScoringFailure):
            parse_dssim_output("-0.1 b.png")


class TestDssimScorer:
    def test_missing_tool(self, monkeypatch):
        monkeypatch.setattr(scoring, "get_tool_executable", lambda names: None)
        with pytest.raises(ConfigurationError):
            DssimScorer()

    def test_runs_on_ephemeral_files(self, monkeypatch):
        seen = {}

        def fake_run(command, stdin=None):
            reference, candidate = Path(command[1]), Path(command[2])
            seen["paths"] = (reference, candidate)
            seen["contents"] = (reference.read_bytes(), candidate.read_bytes())
            return subprocess.CompletedProcess(
                command, 0, stdout=f"0.0123\t{candidate}\n".encode(), stderr=b""
            )

        monkeypatch.setattr(scoring, "run_command", fake_run)
        score = DssimScorer("dssim").score(b"ref", b"cand")
        assert score == pytest.approx(0.0123)
        assert seen["contents"] == (b"ref", b"cand")
        assert not any(path.exists() for path in seen["paths"])
        assert not seen["paths"][0].parent.exists()

    def test_nonzero_exit(self, monkeypatch):
        monkeypatch.setattr(
            scoring,
            "run_command",
            lambda command, stdin=None: subprocess.CompletedProcess(
                command, 1, stdout=b"", stderr=b"size mismatch"
            ),
        )
        with pytest.raises(ScoringFailure, match="size mismatch"):
            DssimScorer("dssim").score(b"a", b"b")
