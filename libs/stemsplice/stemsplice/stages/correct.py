"""Splice correction stage: remove the cracks at primary segment boundaries."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import cast

from stemsplice.config import FRAGMENT_CODEC, Settings
from stemsplice.models.run import RunState
from stemsplice.models.segment import PlanKind
from stemsplice.pipeline.context import PipelineContext, require_workspace
from stemsplice.providers import get_codec_provider
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.stages.base import Stage
from stemsplice.storage.workspace import Workspace
from stemsplice.utils.splice import FRAGMENT_S, correction_windows, splice_fragments

logger = logging.getLogger(__name__)


class SpliceCorrectionStage(Stage):
    """Correct every stem, several stems at a time.

    Per stem, at most three full-length tracks' worth of files exist at any
    moment, so the pool size bounds the peak disk footprint.
    """

    name = RunState.CORRECT_STEMS.value
    state = RunState.CORRECT_STEMS

    def __init__(self, settings: Settings, *, codec: CodecProvider | None = None) -> None:
        self.settings = settings
        self.codec = codec or get_codec_provider(settings.audio.model_dump())

    def validate_input(self, context: PipelineContext) -> bool:
        tracks = dict(context.get("plan_tracks") or {})
        stems = list(context.get("stems") or [])
        plans = [PlanKind.PRIMARY.value]
        if not context.get("short_input"):
            plans.append(PlanKind.OFFSET.value)
        return bool(stems) and all(stem in dict(tracks.get(p) or {}) for p in plans for stem in stems)

    async def execute(self, context: PipelineContext) -> PipelineContext:
        ws = require_workspace(context)
        stems = list(context.get("stems") or [])
        tracks = dict(context.get("plan_tracks") or {})
        primary = dict(tracks.get(PlanKind.PRIMARY.value) or {})
        offset = dict(tracks.get(PlanKind.OFFSET.value) or {})
        chunk_s = int(context.get("chunk_s") or self.settings.chunk_s)
        short_input = bool(context.get("short_input"))
        run_id = context.get("run_id")

        semaphore = asyncio.Semaphore(max(1, int(self.settings.concurrency.correction)))

        async def _one(stem: str) -> tuple[str, str]:
            async with semaphore:
                out = ws.path("corrected", f"{stem}.{self.settings.processing_codec}")
                if short_input:
                    os.replace(primary[stem], out)
                    logger.info("short input, primary kept (run_id=%s, stem=%s)", run_id, stem)
                else:
                    await self._correct_stem(ws, stem, primary[stem], offset[stem], out, chunk_s=chunk_s)
                    logger.info("corrected stem (run_id=%s, stem=%s)", run_id, stem)
                return stem, str(out)

        # Let in-flight stems finish before failing so no tool is still writing
        # into the workspace when it is released.
        outcomes = await asyncio.gather(*[_one(stem) for stem in stems], return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        results = cast(list[tuple[str, str]], outcomes)
        ws.release(ws.area("fragments"))
        ws.release(ws.area("tracks"))

        context = cast(PipelineContext, dict(context))
        context["plan_tracks"] = {}
        context["corrected"] = dict(results)
        return context

    async def _fragment(self, ws: Workspace, stem: str, plan: PlanKind, track: str) -> list[str]:
        """Cut one full-length track into 1-second WAV fragments, consuming the track."""
        wav = ws.path("fragments", stem, f"{plan.value}.{FRAGMENT_CODEC}")
        if Path(track).suffix.lstrip(".") == FRAGMENT_CODEC:
            os.replace(track, wav)
        else:
            await self.codec.transcode(track, str(wav))
            ws.release(track)
        fragments = await self.codec.split(
            str(wav),
            str(ws.area("fragments", stem, plan.value)),
            unit_s=FRAGMENT_S,
            prefix=f"{stem}-{plan.value}",
        )
        ws.release(wav)
        return fragments

    async def _correct_stem(
        self,
        ws: Workspace,
        stem: str,
        primary_track: str,
        offset_track: str,
        out: Path,
        *,
        chunk_s: int,
    ) -> None:
        primary = await self._fragment(ws, stem, PlanKind.PRIMARY, primary_track)
        offset = await self._fragment(ws, stem, PlanKind.OFFSET, offset_track)
        windows = correction_windows(len(offset), chunk_s)
        if abs(len(primary) - len(offset)) > 1:
            logger.warning(
                "fragment count mismatch (stem=%s, primary=%d, offset=%d)",
                stem,
                len(primary),
                len(offset),
            )
        spliced = splice_fragments(primary, offset, chunk_s)
        logger.debug("splice (stem=%s, fragments=%d, windows=%d)", stem, len(spliced), len(windows))

        joined = ws.path("corrected", f"{stem}.spliced.{FRAGMENT_CODEC}")
        await self.codec.concat(spliced, str(joined))
        ws.release(ws.area("fragments", stem))

        if out.suffix.lstrip(".") == FRAGMENT_CODEC:
            os.replace(joined, out)
        else:
            await self.codec.transcode(str(joined), str(out))
            ws.release(joined)
