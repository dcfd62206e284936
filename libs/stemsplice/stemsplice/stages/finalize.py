"""Final stages: timestamp normalization and conversion back to the input codec."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import cast

from stemsplice.config import Settings
from stemsplice.models.run import RunState
from stemsplice.pipeline.context import PipelineContext, require_workspace
from stemsplice.providers import get_codec_provider
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.stages.base import Stage
from stemsplice.utils.stem_sets import ALL_STEM_NAMES

logger = logging.getLogger(__name__)


class NormalizeTimestampsStage(Stage):
    """Rewrite timestamps of the reassembled stems without re-encoding.

    Fragment concatenation leaves timestamps some players and editors treat as
    malformed.
    """

    name = RunState.NORMALIZE_TIMESTAMPS.value
    state = RunState.NORMALIZE_TIMESTAMPS

    def __init__(self, settings: Settings, *, codec: CodecProvider | None = None) -> None:
        self.settings = settings
        self.codec = codec or get_codec_provider(settings.audio.model_dump())

    def validate_input(self, context: PipelineContext) -> bool:
        corrected = dict(context.get("corrected") or {})
        stems = list(context.get("stems") or [])
        return bool(stems) and all(stem in corrected for stem in stems)

    async def execute(self, context: PipelineContext) -> PipelineContext:
        ws = require_workspace(context)
        corrected = dict(context.get("corrected") or {})
        normalized: dict[str, str] = {}
        for stem in list(context.get("stems") or []):
            src = corrected[stem]
            out = ws.path("normalized", Path(src).name)
            await self.codec.rewrite_timestamps(src, str(out))
            ws.release(src)
            normalized[stem] = str(out)
        ws.release(ws.area("corrected"))

        context = cast(PipelineContext, dict(context))
        context["corrected"] = {}
        context["normalized"] = normalized
        return context


class ConvertToOriginalCodecStage(Stage):
    """Convert stems to the input's codec, then publish them all at once.

    Every stem is staged inside the workspace first; the output directory only
    receives files after all conversions succeeded.
    """

    name = RunState.CONVERT_TO_ORIGINAL_CODEC.value
    state = RunState.CONVERT_TO_ORIGINAL_CODEC

    def __init__(self, settings: Settings, *, codec: CodecProvider | None = None) -> None:
        self.settings = settings
        self.codec = codec or get_codec_provider(settings.audio.model_dump())

    def validate_input(self, context: PipelineContext) -> bool:
        normalized = dict(context.get("normalized") or {})
        stems = list(context.get("stems") or [])
        return (
            bool(stems)
            and bool(context.get("input_codec"))
            and bool(context.get("output_dir"))
            and all(stem in normalized for stem in stems)
        )

    async def execute(self, context: PipelineContext) -> PipelineContext:
        ws = require_workspace(context)
        normalized = dict(context.get("normalized") or {})
        ext = str(context["input_codec"])
        stems = list(context.get("stems") or [])

        staged: dict[str, Path] = {}
        for stem in stems:
            src = Path(normalized[stem])
            dst = ws.path("staging", f"{stem}.{ext}")
            if src.suffix.lstrip(".").lower() == ext:
                os.replace(src, dst)
            else:
                await self.codec.transcode(str(src), str(dst))
                ws.release(src)
            staged[stem] = dst
        ws.release(ws.area("normalized"))

        output_dir = Path(str(context["output_dir"]))
        output_dir.mkdir(parents=True, exist_ok=True)
        finals = {f"{stem}.{ext}" for stem in stems}
        for stale in sorted(output_dir.iterdir()):
            if stale.is_file() and stale.stem in ALL_STEM_NAMES and stale.name not in finals:
                stale.unlink()
                logger.info("removed stale stem (run_id=%s, path=%s)", context.get("run_id"), stale)
        outputs: dict[str, str] = {}
        for stem in stems:
            final = output_dir / f"{stem}.{ext}"
            shutil.move(str(staged[stem]), str(final))
            outputs[stem] = str(final)
            logger.info("published stem (run_id=%s, stem=%s, path=%s)", context.get("run_id"), stem, final)

        context = cast(PipelineContext, dict(context))
        context["normalized"] = {}
        context["outputs"] = outputs
        return context
