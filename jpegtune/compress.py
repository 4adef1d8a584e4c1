from __future__ import annotations

from pathlib import Path
import logging
from typing import Iterable

from .encoders import get_encoder
from .errors import JpegTuneError
from .models import SUPPORTED_SUFFIXES, CompressOptions, CompressResult
from .scoring import DissimilarityScorer, DssimScorer
from .search import find_quality

logger = logging.getLogger(__name__)

# Result messages are codes; front ends render them. Failed results carry the error text.
MESSAGE_CONVERGED = "converged"
MESSAGE_EXHAUSTED = "exhausted"
MESSAGE_KEPT_SOURCE = "kept_source"
MESSAGE_UNSUPPORTED = "unsupported"


def compress_files(
    files: Iterable[Path],
    options: CompressOptions,
    scorer: DissimilarityScorer | None = None,
) -> list[CompressResult]:
    results = []
    for source in files:
        results.append(compress_file(source, options, scorer))
    return results


def compress_file(
    source: Path,
    options: CompressOptions,
    scorer: DissimilarityScorer | None = None,
) -> CompressResult:
    output = build_output_path(source, options)
    if source.suffix.lower() not in SUPPORTED_SUFFIXES:
        return CompressResult(source, output, 0, 0, False, MESSAGE_UNSUPPORTED, "-")
    engine = options.search.encoder
    original_size = 0
    try:
        data = source.read_bytes()
        original_size = len(data)
        encoder = get_encoder(options.search.encoder)
        engine = encoder.name
        if scorer is None:
            scorer = DssimScorer()
        outcome = find_quality(data, options.search, scorer=scorer, encoder=encoder)
        encoded = encoder.encode(data, outcome.quality)
        kept_source = source.suffix.lower() in {".jpg", ".jpeg"} and len(encoded) > original_size
        if kept_source:
            encoded = data
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(encoded)
    except (JpegTuneError, OSError) as exc:
        logger.error("%s: %s", source, exc)
        return CompressResult(source, output, original_size, original_size, False, str(exc), engine)
    if kept_source:
        message = MESSAGE_KEPT_SOURCE
    elif outcome.converged:
        message = MESSAGE_CONVERGED
    else:
        message = MESSAGE_EXHAUSTED
    logger.info(
        "%s -> %s quality=%d score=%.6f %s",
        source,
        output,
        outcome.quality,
        outcome.score,
        message,
    )
    return CompressResult(
        source,
        output,
        original_size,
        len(encoded),
        True,
        message,
        engine,
        quality=outcome.quality,
        score=outcome.score,
        status=outcome.status,
        history=outcome.history,
    )


def build_output_path(source: Path, options: CompressOptions) -> Path:
    suffix = ".jpg"
    if options.output_mode == "same_dir":
        candidate = source.parent / f"{source.stem}{suffix}"
        return ensure_unique_path(candidate, source.stem, suffix)
    if source.is_relative_to(options.input_dir):
        relative = source.relative_to(options.input_dir)
        candidate = (options.output_dir / relative).with_suffix(suffix)
    else:
        candidate = options.output_dir / f"{source.stem}{suffix}"
    return ensure_unique_path(candidate, source.stem, suffix)


def ensure_unique_path(path: Path, source_stem: str, source_suffix: str) -> Path:
    if not path.exists():
        return path
    parent = path.parent
    index = 1
    while True:
        candidate = parent / f"{source_stem}({index}){source_suffix}"
        if not candidate.exists():
            return candidate
        index += 1
