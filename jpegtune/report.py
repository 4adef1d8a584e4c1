"""Text rendering of compression results for the desktop front end."""
from __future__ import annotations

from typing import Iterable

from .compress import MESSAGE_CONVERGED, MESSAGE_EXHAUSTED, MESSAGE_KEPT_SOURCE, MESSAGE_UNSUPPORTED
from .models import CompressResult, ProbeRecord

MESSAGE_LABELS = {
    MESSAGE_CONVERGED: "已收敛",
    MESSAGE_EXHAUSTED: "未收敛",
    MESSAGE_KEPT_SOURCE: "保留原图",
    MESSAGE_UNSUPPORTED: "不支持的格式",
}
MISSING = "缺失"


def message_label(message: str) -> str:
    return MESSAGE_LABELS.get(message, message)


def savings(result: CompressResult) -> float:
    if not result.success or not result.original_size:
        return 0.0
    return 1 - result.compressed_size / result.original_size


def result_row(result: CompressResult) -> list[str]:
    """Cells for one file: name, quality, DSSIM, status, rounds, savings."""
    if not result.success:
        return [result.source.name, "-", "-", f"失败：{message_label(result.message)}", "-", "-"]
    return [
        result.source.name,
        str(result.quality),
        f"{result.score:.6f}",
        message_label(result.message),
        str(len(result.history)),
        f"{savings(result):.1%}",
    ]


def format_history(history: Iterable[ProbeRecord]) -> str:
    lines = []
    for index, record in enumerate(history, start=1):
        if record.step_after is None:
            lines.append(f"{index}. 质量 {record.quality}：DSSIM {record.score:.6f}，落入区间")
        else:
            lines.append(
                f"{index}. 质量 {record.quality}：DSSIM {record.score:.6f}，"
                f"步长 {record.step_after}，下一次 {record.next_quality}"
            )
    return "\n".join(lines)


def format_summary(results: list[CompressResult]) -> str:
    succeeded = [result for result in results if result.success]
    before = sum(result.original_size for result in succeeded)
    after = sum(result.compressed_size for result in succeeded)
    ratio = 1 - after / before if before else 0
    return f"完成：成功 {len(succeeded)} 张，失败 {len(results) - len(succeeded)} 张，节省 {ratio:.1%}"


def format_engine_status(status: dict[str, str | None]) -> str:
    parts = [f"{name}={value or MISSING}" for name, value in status.items()]
    return f"引擎：{'，'.join(parts)}"
