"""Spleeter-based source separation."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from pathlib import Path

from stemsplice.exceptions import EngineError
from stemsplice.providers.separation.base import SeparationProvider
from stemsplice.utils.binaries import resolve_binary, resolve_spleeter_bin
from stemsplice.utils.stem_sets import spleeter_model_name
from stemsplice.utils.subprocess import format_command, run_subprocess

logger = logging.getLogger(__name__)


class SpleeterProvider(SeparationProvider):
    """Runs `spleeter separate` once over a whole batch of segment files.

    Spleeter pads every output clip at its tail; callers correct the resulting
    cracks, this provider does not try to detect them.
    """

    name = "spleeter"

    def __init__(
        self,
        *,
        spleeter_bin: str = "spleeter",
        stem_count: int = 5,
        stft_backend: str | None = "tensorflow",
        niceness: int | None = 19,
        timeout_s: float | None = None,
    ) -> None:
        self.spleeter_bin = resolve_spleeter_bin(spleeter_bin)
        self.stem_count = int(stem_count)
        self.stft_backend = stft_backend
        self.niceness = niceness
        self.timeout_s = timeout_s

    def build_command(self, segment_paths: Sequence[str], output_dir: str, *, codec: str) -> list[str]:
        cmd: list[str] = []
        if self.niceness is not None and resolve_binary("nice"):
            cmd.extend(["nice", "-n", str(int(self.niceness))])
        cmd.extend(
            [
                self.spleeter_bin,
                "separate",
                "-p",
                spleeter_model_name(self.stem_count),
                "-o",
                str(output_dir),
                "-c",
                str(codec),
                "-f",
                "{filename}/{instrument}.{codec}",
            ]
        )
        if self.stft_backend:
            cmd.extend(["-B", str(self.stft_backend)])
        cmd.extend(str(p) for p in segment_paths)
        return cmd

    async def separate(
        self,
        segment_paths: Sequence[str],
        output_dir: str,
        *,
        stems: Sequence[str],
        codec: str,
    ) -> list[dict[str, str]]:
        if not segment_paths:
            raise EngineError(self.name, "no segments to separate")
        Path(output_dir).mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(segment_paths, output_dir, codec=codec)
        logger.info("spleeter start (segments=%d, stems=%d)", len(segment_paths), self.stem_count)
        try:
            result = await run_subprocess(cmd, timeout_s=self.timeout_s)
        except FileNotFoundError as exc:
            raise EngineError(
                self.name,
                f"spleeter binary not found: {self.spleeter_bin}. "
                "Install spleeter in the environment or set SEPARATION_SPLEETER_BIN.",
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise EngineError(
                self.name, f"timed out after {self.timeout_s}s: {format_command(cmd)}"
            ) from exc
        if not result.ok:
            raise EngineError(self.name, f"spleeter failed ({result.describe()})")
        return self.match_outputs(segment_paths, output_dir, stems=stems, codec=codec)
