from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from .errors import ConfigurationError

MIN_QUALITY = 1
MAX_QUALITY = 100
DEFAULT_LOWER_BOUND = 0.014250
DEFAULT_UPPER_BOUND = 0.016500
SUPPORTED_SUFFIXES = {".jpg", ".jpeg", ".png"}


@dataclass(frozen=True)
class ToleranceBand:
    lower: float = DEFAULT_LOWER_BOUND
    upper: float = DEFAULT_UPPER_BOUND

    def __post_init__(self) -> None:
        if self.lower < 0:
            raise ConfigurationError(f"lower bound must be non-negative, got {self.lower}")
        if self.lower >= self.upper:
            raise ConfigurationError(
                f"lower bound {self.lower} must be below upper bound {self.upper}"
            )

    def contains(self, score: float | None) -> bool:
        if score is None:
            return False
        return self.lower <= score < self.upper


@dataclass(frozen=True)
class SearchConfig:
    initial_quality: int = 80
    initial_step: int = 20
    band: ToleranceBand = field(default_factory=ToleranceBand)
    max_iterations: int = 7
    encoder: str = "mozjpeg"
    clamp_quality: bool = True
    min_quality: int = MIN_QUALITY
    max_quality: int = MAX_QUALITY

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigurationError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if self.initial_step < 1:
            raise ConfigurationError(f"initial_step must be at least 1, got {self.initial_step}")
        if self.min_quality > self.max_quality:
            raise ConfigurationError(
                f"quality range {self.min_quality}..{self.max_quality} is empty"
            )
        if not self.min_quality <= self.initial_quality <= self.max_quality:
            raise ConfigurationError(
                f"initial_quality {self.initial_quality} outside "
                f"{self.min_quality}..{self.max_quality}"
            )


@dataclass
class SearchState:
    quality: int
    step: int
    score: float | None = None
    iterations: int = 0


@dataclass(frozen=True)
class ProbeRecord:
    quality: int
    score: float
    step_after: int | None
    next_quality: int


class SearchStatus(str, Enum):
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class SearchOutcome:
    quality: int
    score: float
    iterations: int
    status: SearchStatus
    history: tuple[ProbeRecord, ...] = ()

    @property
    def converged(self) -> bool:
        return self.status is SearchStatus.CONVERGED


@dataclass(frozen=True)
class CompressOptions:
    input_dir: Path
    output_dir: Path
    output_mode: str
    search: SearchConfig = field(default_factory=SearchConfig)


@dataclass(frozen=True)
class CompressResult:
    source: Path
    output: Path
    original_size: int
    compressed_size: int
    success: bool
    message: str
    engine: str
    quality: int | None = None
    score: float | None = None
    status: SearchStatus | None = None
    history: tuple[ProbeRecord, ...] = ()


def iter_image_files(root: Path, suffixes: Iterable[str] = SUPPORTED_SUFFIXES) -> list[Path]:
    patterns = {suffix.lower() for suffix in suffixes}
    files = []
    for path in sorted(root.rglob("*")):
        if path.is_file() and path.suffix.lower() in patterns:
            files.append(path)
    return files
