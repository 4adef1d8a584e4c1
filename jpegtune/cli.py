"""
Command-line interface for jpegtune.

Parses arguments, builds the search configuration and recompresses each
input file at the quality whose DSSIM lands inside the tolerance band.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .compress import (
    MESSAGE_CONVERGED,
    MESSAGE_EXHAUSTED,
    MESSAGE_KEPT_SOURCE,
    MESSAGE_UNSUPPORTED,
    compress_files,
)
from .encoders import get_encoder
from .errors import ConfigurationError
from .models import (
    DEFAULT_LOWER_BOUND,
    DEFAULT_UPPER_BOUND,
    CompressOptions,
    SearchConfig,
    ToleranceBand,
    iter_image_files,
)
from .scoring import DssimScorer

MESSAGES = {
    MESSAGE_CONVERGED: "converged",
    MESSAGE_EXHAUSTED: "band not reached, best effort",
    MESSAGE_KEPT_SOURCE: "kept original, re-encode was larger",
    MESSAGE_UNSUPPORTED: "unsupported format",
}


def setup_logging(verbose: bool, log_file: str | None = None) -> None:
    handlers: list[logging.Handler] = []
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    if verbose:
        handlers.append(logging.StreamHandler())
    if not handlers:
        handlers.append(logging.NullHandler())
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(message)s", handlers=handlers, force=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jpegtune",
        description="Recompress JPEGs at the quality whose DSSIM falls inside a tolerance band.",
    )
    parser.add_argument("inputs", nargs="+", help="Image files or directories")
    parser.add_argument("-o", "--output-dir", help="Output directory (mirrors the input layout)")
    parser.add_argument(
        "--same-dir", action="store_true", help="Write results next to the source files"
    )
    parser.add_argument(
        "--encoder", choices=["mozjpeg", "pillow"], default="mozjpeg", help="Encoder variant"
    )
    parser.add_argument("--quality", type=int, default=80, help="Initial quality")
    parser.add_argument("--step", type=int, default=20, help="Initial step size")
    parser.add_argument("--lower", type=float, default=DEFAULT_LOWER_BOUND, help="Lower DSSIM bound")
    parser.add_argument("--upper", type=float, default=DEFAULT_UPPER_BOUND, help="Upper DSSIM bound")
    parser.add_argument(
        "--max-iterations", dest="max_iterations", type=int, default=7, help="Encode and score rounds per file"
    )
    parser.add_argument(
        "--no-clamp",
        dest="clamp",
        action="store_false",
        help="Let the walked quality leave the 1..100 range",
    )
    parser.add_argument("--log-file", help="Log file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def build_search_config(args: argparse.Namespace) -> SearchConfig:
    return SearchConfig(
        initial_quality=args.quality,
        initial_step=args.step,
        band=ToleranceBand(args.lower, args.upper),
        max_iterations=args.max_iterations,
        encoder=args.encoder,
        clamp_quality=args.clamp,
    )


def collect_files(inputs: list[str]) -> list[Path]:
    files: list[Path] = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            files.extend(iter_image_files(path))
        elif path.is_file():
            files.append(path)
        else:
            logging.error("Input not found: %s", item)
    return list(dict.fromkeys(files))


def resolve_input_dir(inputs: list[str], files: list[Path]) -> Path:
    """Root that mirrored output paths are taken relative to.

    Directory arguments are their own root, so nested folders survive even
    when every image sits in one subfolder.
    """
    paths = [Path(item) for item in inputs]
    if all(path.is_dir() for path in paths):
        roots = [str(path.resolve()) for path in paths]
    else:
        roots = [str(path.resolve().parent) for path in files]
    return Path(os.path.commonpath(roots))


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)

    if not args.same_dir and not args.output_dir:
        parser.error("either --output-dir or --same-dir is required")

    files = collect_files(args.inputs)
    if not files:
        print("No images found", file=sys.stderr)
        return 1

    try:
        search = build_search_config(args)
        get_encoder(search.encoder)
        scorer = DssimScorer()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    input_dir = resolve_input_dir(args.inputs, files)
    output_dir = Path(args.output_dir) if args.output_dir else input_dir
    options = CompressOptions(
        input_dir=input_dir,
        output_dir=output_dir,
        output_mode="same_dir" if args.same_dir else "mirror",
        search=search,
    )
    resolved = [path.resolve() for path in files]
    results = compress_files(resolved, options, scorer)

    failed = 0
    total_before = 0
    total_after = 0
    for result in results:
        if result.success:
            total_before += result.original_size
            total_after += result.compressed_size
            print(
                f"{result.source.name}: quality {result.quality} dssim {result.score:.6f} "
                f"({MESSAGES.get(result.message, result.message)}) -> {result.output}"
            )
        else:
            failed += 1
            print(
                f"{result.source.name}: failed: {MESSAGES.get(result.message, result.message)}",
                file=sys.stderr,
            )
    saved = 1 - total_after / total_before if total_before else 0
    print(f"Done: {len(results) - failed} ok, {failed} failed, saved {saved:.1%}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
