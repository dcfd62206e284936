"""FFmpeg-based codec service."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path

from stemsplice.exceptions import CodecError
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.utils.binaries import resolve_ffmpeg_bin
from stemsplice.utils.segment_planner import ordered_parts
from stemsplice.utils.subprocess import RunResult, run_subprocess

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d+):(\d+(?:\.\d+)?)")


def _concat_list_line(path: str) -> str:
    escaped = str(Path(path).resolve()).replace("'", "'\\''")
    return f"file '{escaped}'\n"


class FFmpegCodecProvider(CodecProvider):
    name = "ffmpeg"

    def __init__(self, ffmpeg_bin: str = "ffmpeg", *, timeout_s: float | None = None) -> None:
        self.ffmpeg_bin = resolve_ffmpeg_bin(ffmpeg_bin)
        self.timeout_s = timeout_s

    async def _exec(self, args: list[str]) -> RunResult:
        try:
            return await run_subprocess([self.ffmpeg_bin, *args], timeout_s=self.timeout_s)
        except FileNotFoundError as exc:
            raise CodecError(
                self.name,
                f"ffmpeg binary not found: {self.ffmpeg_bin}. "
                "Install ffmpeg and ensure it is in PATH (or install `imageio-ffmpeg`, "
                "or set AUDIO_FFMPEG_BIN).",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CodecError(self.name, f"ffmpeg timed out after {self.timeout_s}s: {args}") from exc

    async def _run(self, args: list[str]) -> RunResult:
        result = await self._exec(["-hide_banner", "-nostdin", "-y", *args])
        if not result.ok:
            raise CodecError(self.name, f"ffmpeg failed ({result.describe()})")
        return result

    async def split(self, input_path: str, output_dir: str, *, unit_s: float, prefix: str) -> list[str]:
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        ext = Path(input_path).suffix
        if not ext:
            raise CodecError(self.name, f"cannot infer codec of {input_path}")
        unit = f"{float(unit_s):g}"
        await self._run(
            [
                "-i",
                str(input_path),
                "-map",
                "0:a",
                "-f",
                "segment",
                "-segment_time",
                unit,
                "-c",
                "copy",
                str(out_dir / f"{prefix}-%06d{ext}"),
            ]
        )
        parts = ordered_parts(out_dir.glob(f"{prefix}-*{ext}"))
        if not parts:
            raise CodecError(self.name, f"split produced no parts for {input_path}")
        logger.debug("split %s into %d parts of %ss", input_path, len(parts), unit)
        return parts

    async def concat(self, input_paths: Sequence[str], output_path: str) -> str:
        paths = [str(p) for p in input_paths]
        if not paths:
            raise CodecError(self.name, "concat needs at least one input")
        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        list_file = out.with_name(f"{out.name}.concat.txt")
        list_file.write_text("".join(_concat_list_line(p) for p in paths), encoding="utf-8")
        try:
            await self._run(
                ["-f", "concat", "-safe", "0", "-i", str(list_file), "-c", "copy", str(out)]
            )
        finally:
            list_file.unlink(missing_ok=True)
        return str(out)

    async def merge(self, input_paths: Sequence[str], output_path: str) -> str:
        paths = [str(p) for p in input_paths]
        if not paths:
            raise CodecError(self.name, "merge needs at least one input")
        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        inputs: list[str] = []
        for p in paths:
            inputs.extend(["-i", p])
        labels = "".join(f"[{i}:a:0]" for i in range(len(paths)))
        await self._run(
            [
                *inputs,
                "-filter_complex",
                f"{labels}concat=n={len(paths)}:v=0:a=1[out]",
                "-map",
                "[out]",
                str(out),
            ]
        )
        return str(out)

    async def transcode(self, input_path: str, output_path: str) -> str:
        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        await self._run(["-i", str(input_path), "-map", "0:a", "-vn", str(out)])
        return str(out)

    async def rewrite_timestamps(self, input_path: str, output_path: str) -> str:
        out = Path(output_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        await self._run(
            ["-fflags", "+genpts", "-i", str(input_path), "-map", "0:a?", "-c:a", "copy", str(out)]
        )
        return str(out)

    async def read_duration(self, input_path: str) -> float:
        # `ffmpeg -i` without an output exits non-zero but still prints the header.
        result = await self._exec(["-hide_banner", "-nostdin", "-i", str(input_path)])
        match = _DURATION_RE.search(result.stderr.decode(errors="ignore"))
        if match is None:
            raise CodecError(self.name, f"cannot read duration ({result.describe()})")
        hours, minutes, seconds = match.groups()
        return int(hours) * 3600 + int(minutes) * 60 + float(seconds)
