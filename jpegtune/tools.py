from __future__ import annotations

from functools import lru_cache
from pathlib import Path
import os
import platform
import shutil
import subprocess
import sys

WINDOWS_CREATIONFLAGS = (
    getattr(subprocess, "CREATE_NO_WINDOW", 0) if sys.platform.startswith("win") else 0
)
MOZJPEG_NAMES = ["cjpeg", "mozjpeg"]
DSSIM_NAMES = ["dssim"]
EXECUTABLE_SUFFIXES = ("", ".exe")


def get_tool_executable(names: list[str]) -> str | None:
    return _find_tool(tuple(names))


@lru_cache(maxsize=None)
def _find_tool(names: tuple[str, ...]) -> str | None:
    for directory in _get_tool_search_dirs():
        for name in names:
            for suffix in EXECUTABLE_SUFFIXES:
                candidate = directory / f"{name}{suffix}"
                if candidate.is_file():
                    return str(candidate)
    for name in names:
        found = shutil.which(name)
        if found:
            return found
    return None


def clear_tool_cache() -> None:
    _find_tool.cache_clear()


def _get_tool_search_dirs() -> list[Path]:
    """Directories checked before PATH: a frozen bundle, then ``vendor/<platform>/<arch>``."""
    roots = [Path(__file__).resolve().parent.parent]
    bundle = getattr(sys, "_MEIPASS", None)
    if bundle:
        roots.insert(0, Path(bundle))
    platform_key = detect_platform()
    arch_key = detect_arch()
    dirs: list[Path] = []
    for root in roots:
        vendor = root / "vendor"
        dirs.extend([vendor / platform_key / arch_key, vendor / platform_key, vendor])
    if bundle:
        dirs.insert(0, Path(bundle))
    dirs.append(Path(sys.executable).resolve().parent)
    return dirs


def detect_platform() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


def detect_arch() -> str:
    machine = (os.uname().machine if hasattr(os, "uname") else platform.machine()).lower()
    return {"arm64": "arm64", "aarch64": "arm64", "x86_64": "x64", "amd64": "x64"}.get(machine, machine)


def run_command(command: list[str], stdin: bytes | None = None) -> subprocess.CompletedProcess[bytes]:
    return subprocess.run(
        command,
        input=stdin,
        capture_output=True,
        creationflags=WINDOWS_CREATIONFLAGS,
    )


def get_engine_status() -> dict[str, str | None]:
    """Path of each external tool an encoder variant or the scorer needs, ``None`` when missing.

    The Pillow variant runs in process and is always available.
    """
    return {
        "mozjpeg": get_tool_executable(MOZJPEG_NAMES),
        "pillow": "Pillow",
        "dssim": get_tool_executable(DSSIM_NAMES),
    }
