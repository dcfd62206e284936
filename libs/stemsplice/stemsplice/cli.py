"""Command line entry point: separate one recording into crack-free stems."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from stemsplice.config import (
    SAFE_CODECS,
    AudioConfig,
    ChunkingConfig,
    ConcurrencyConfig,
    SeparationConfig,
    Settings,
)
from stemsplice.exceptions import (
    ConfigurationError,
    MissingInputFileError,
    StageExecutionError,
    StemSpliceError,
)
from stemsplice.pipeline.orchestrator import SeparationOrchestrator
from stemsplice.utils.logging_setup import setup_logging
from stemsplice.utils.stem_sets import SUPPORTED_STEM_COUNTS

EXIT_FAILED = 1
EXIT_USAGE = 2


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="stemsplice",
        description="Separate an audio file of any length into stems without chunk-boundary cracks.",
    )
    parser.add_argument("input", help="Path to the audio file")
    parser.add_argument(
        "--stems",
        type=int,
        choices=list(SUPPORTED_STEM_COUNTS),
        default=None,
        help="Number of stems (default: SEPARATION_STEMS or 5)",
    )
    parser.add_argument(
        "--codec",
        choices=list(SAFE_CODECS),
        default=None,
        help="Codec for intermediate tracks (default: AUDIO_PROCESSING_CODEC or flac)",
    )
    parser.add_argument("--chunk-s", type=int, default=None, help="Segment length in seconds (even, >= 6)")
    parser.add_argument("--output-dir", default=None, help="Root directory for separated stems")
    parser.add_argument("--work-dir", default=None, help="Root directory for intermediate files")
    parser.add_argument("--workers", type=int, default=None, help="Stems corrected concurrently")
    parser.add_argument(
        "--clean-on-failure",
        action="store_true",
        help="Delete intermediate files of a failed run instead of keeping them for inspection",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def _build_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, object] = {}
    if args.stems is not None:
        overrides["separation"] = SeparationConfig(stems=int(args.stems))
    if args.codec is not None:
        overrides["audio"] = AudioConfig(processing_codec=str(args.codec))
    if args.chunk_s is not None:
        overrides["chunking"] = ChunkingConfig(chunk_s=int(args.chunk_s))
    if args.workers is not None:
        if int(args.workers) < 1:
            raise ConfigurationError("--workers must be >= 1")
        overrides["concurrency"] = ConcurrencyConfig(correction=int(args.workers))
    if args.output_dir is not None:
        overrides["output_dir"] = str(args.output_dir)
    if args.work_dir is not None:
        overrides["work_dir"] = str(args.work_dir)
    if args.clean_on_failure:
        overrides["keep_workdir_on_failure"] = False
    return Settings(**overrides)


async def _run(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = _build_settings(args)
        setup_logging(settings, level="DEBUG" if args.verbose else None)
        orchestrator = SeparationOrchestrator(settings)
        run = orchestrator.create_run(str(args.input))
    except (ConfigurationError, MissingInputFileError, ValidationError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        await orchestrator.execute(run)
    except StageExecutionError as exc:
        print(f"failed at {exc.stage}: {exc.message}", file=sys.stderr)
        return EXIT_FAILED
    except StemSpliceError as exc:
        print(f"failed: {exc}", file=sys.stderr)
        return EXIT_FAILED

    for stem, path in run.outputs.items():
        print(f"{stem}\t{path}")
    print(f"peak_workspace_bytes={run.peak_workspace_bytes}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    raise SystemExit(asyncio.run(_run(argv)))


if __name__ == "__main__":
    main()
