"""Async-friendly subprocess helpers.

External tools (ffmpeg, spleeter) run through `subprocess.run()` in a worker
thread via `asyncio.to_thread()`; the awaiting stage resumes only after the
process has exited and its output files are closed.
"""

from __future__ import annotations

import asyncio
import shlex
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    args: tuple[str, ...]
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self, *, tail_chars: int = 4000) -> str:
        """Human readable summary for error messages (stderr tail only)."""
        stderr = self.stderr.decode(errors="ignore")
        if len(stderr) > tail_chars:
            stderr = "..." + stderr[-tail_chars:]
        return f"code={self.returncode}\ncmd: {format_command(self.args)}\nstderr: {stderr}"


def format_command(args: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(a)) for a in args)


async def run_subprocess(
    args: Sequence[str],
    *,
    capture_output: bool = True,
    timeout_s: float | None = None,
) -> RunResult:
    argv = [str(a) for a in args]

    def _run() -> subprocess.CompletedProcess[bytes]:
        return subprocess.run(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if capture_output else subprocess.DEVNULL,
            stderr=subprocess.PIPE if capture_output else subprocess.DEVNULL,
            timeout=timeout_s,
        )

    cp = await asyncio.to_thread(_run)
    return RunResult(
        args=tuple(argv),
        returncode=int(cp.returncode),
        stdout=cp.stdout or b"",
        stderr=cp.stderr or b"",
    )
