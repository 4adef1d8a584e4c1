"""Tests for jpegtune.report: labels and text shown by the desktop window."""

from pathlib import Path

from jpegtune.models import CompressResult, ProbeRecord, SearchStatus
from jpegtune.report import (
    format_engine_status,
    format_history,
    format_summary,
    message_label,
    result_row,
    savings,
)

HISTORY = (
    ProbeRecord(80, 0.005, 10, 70),
    ProbeRecord(70, 0.015, None, 70),
)


def make_result(success=True, message="converged", original=1000, compressed=600):
    return CompressResult(
        source=Path("/in/photo.png"),
        output=Path("/out/photo.jpg"),
        original_size=original,
        compressed_size=compressed,
        success=success,
        message=message,
        engine="Pillow",
        quality=70 if success else None,
        score=0.015 if success else None,
        status=SearchStatus.CONVERGED if success else None,
        history=HISTORY if success else (),
    )


class TestLabels:
    def test_known_codes(self):
        assert message_label("converged") == "已收敛"
        assert message_label("exhausted") == "未收敛"
        assert message_label("kept_source") == "保留原图"
        assert message_label("unsupported") == "不支持的格式"

    def test_error_text_passes_through(self):
        assert message_label("dssim exited with 1") == "dssim exited with 1"


class TestResultRow:
    def test_success(self):
        assert result_row(make_result()) == ["photo.png", "70", "0.015000", "已收敛", "2", "40.0%"]

    def test_failure(self):
        row = result_row(make_result(success=False, message="unsupported"))
        assert row[0] == "photo.png"
        assert row[3] == "失败：不支持的格式"

    def test_savings_zero_for_empty_source(self):
        assert savings(make_result(original=0, compressed=0)) == 0.0


class TestHistory:
    def test_lines_per_round(self):
        text = format_history(HISTORY)
        assert text.splitlines() == [
            "1. 质量 80：DSSIM 0.005000，步长 10，下一次 70",
            "2. 质量 70：DSSIM 0.015000，落入区间",
        ]

    def test_empty(self):
        assert format_history(()) == ""


def test_summary_counts_failures():
    results = [make_result(), make_result(success=False, message="boom")]
    assert format_summary(results) == "完成：成功 1 张，失败 1 张，节省 40.0%"


def test_engine_status_marks_missing():
    text = format_engine_status({"mozjpeg": None, "pillow": "Pillow", "dssim": "/usr/bin/dssim"})
    assert text == "引擎：mozjpeg=缺失，pillow=Pillow，dssim=/usr/bin/dssim"
