"""Locate the external programs the pipeline drives.

ffmpeg comes from PATH or, failing that, from the `imageio-ffmpeg` wheel.
spleeter is usually installed into the same environment as stemsplice, whose
`bin/` directory is not necessarily on PATH.
"""

from __future__ import annotations

import logging
import shutil
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def resolve_binary(name: str) -> str | None:
    """Return an explicit path that exists, or the PATH match for a bare name."""
    name = (name or "").strip()
    if not name:
        return None
    if Path(name).exists():
        return name
    return shutil.which(name)


def resolve_ffmpeg_bin(ffmpeg_bin: str = "ffmpeg") -> str:
    ffmpeg_bin = (ffmpeg_bin or "ffmpeg").strip()
    found = resolve_binary(ffmpeg_bin)
    if found:
        return found
    try:
        import imageio_ffmpeg

        bundled = str(imageio_ffmpeg.get_ffmpeg_exe())
    except Exception as exc:
        logger.warning("no ffmpeg on PATH and no bundled binary (%s); using %r", exc, ffmpeg_bin)
        return ffmpeg_bin
    logger.info("using bundled ffmpeg (path=%s)", bundled)
    return bundled


def resolve_spleeter_bin(spleeter_bin: str = "spleeter") -> str:
    spleeter_bin = (spleeter_bin or "spleeter").strip()
    found = resolve_binary(spleeter_bin)
    if found:
        return found
    sibling = Path(sys.executable).with_name(spleeter_bin)
    if sibling.exists():
        return str(sibling)
    # Left as given; a missing binary surfaces as EngineError on first use.
    return spleeter_bin
