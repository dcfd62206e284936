"""Split stages: materialize the primary and offset segment plans as files."""

from __future__ import annotations

import logging
import os
from typing import cast

from stemsplice.config import Settings
from stemsplice.exceptions import CodecError
from stemsplice.models.run import RunState
from stemsplice.models.segment import PlanKind
from stemsplice.pipeline.context import PipelineContext, require_workspace
from stemsplice.providers import get_codec_provider
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.stages.base import Stage
from stemsplice.utils.segment_planner import group_offset_parts, offset_plan, primary_plan

logger = logging.getLogger(__name__)


class SplitPrimaryStage(Stage):
    """Cut the input into `L`-second segments and discover its duration.

    A single resulting segment means the input is shorter than one chunk; the
    offset pass is then skipped for the whole run.
    """

    name = RunState.SPLIT_PRIMARY.value
    state = RunState.SPLIT_PRIMARY

    def __init__(self, settings: Settings, *, codec: CodecProvider | None = None) -> None:
        self.settings = settings
        self.codec = codec or get_codec_provider(settings.audio.model_dump())

    def validate_input(self, context: PipelineContext) -> bool:
        return bool(context.get("input_path")) and context.get("workspace") is not None

    async def execute(self, context: PipelineContext) -> PipelineContext:
        ws = require_workspace(context)
        input_path = str(context["input_path"])
        chunk_s = int(context.get("chunk_s") or self.settings.chunk_s)

        duration_s: float | None
        try:
            duration_s = await self.codec.read_duration(input_path)
        except CodecError as exc:
            # Only the drift check needs the duration; the part count drives the rest.
            logger.warning("duration lookup failed (run_id=%s): %s", context.get("run_id"), exc)
            duration_s = None
        parts = await self.codec.split(
            input_path,
            str(ws.area(PlanKind.PRIMARY.value, "segments")),
            unit_s=chunk_s,
            prefix="segment",
        )
        if duration_s is not None and len(primary_plan(duration_s, chunk_s)) != len(parts):
            logger.warning(
                "primary split drift (run_id=%s, planned=%d, actual=%d, duration_s=%.3f)",
                context.get("run_id"),
                len(primary_plan(duration_s, chunk_s)),
                len(parts),
                duration_s,
            )

        context = cast(PipelineContext, dict(context))
        context["duration_s"] = duration_s
        context["short_input"] = len(parts) <= 1
        context["segments"] = {**dict(context.get("segments") or {}), PlanKind.PRIMARY.value: parts}
        logger.info(
            "split primary done (run_id=%s, segments=%d, duration_s=%s, short_input=%s)",
            context.get("run_id"),
            len(parts),
            duration_s,
            context["short_input"],
        )
        return context


class SplitOffsetStage(Stage):
    """Build the offset plan: one `L/2` head segment, then pairs of `L/2` parts."""

    name = RunState.SPLIT_OFFSET.value
    state = RunState.SPLIT_OFFSET

    def __init__(self, settings: Settings, *, codec: CodecProvider | None = None) -> None:
        self.settings = settings
        self.codec = codec or get_codec_provider(settings.audio.model_dump())

    def should_skip(self, context: PipelineContext) -> bool:
        return bool(context.get("short_input"))

    def validate_input(self, context: PipelineContext) -> bool:
        return bool(context.get("input_path")) and context.get("workspace") is not None

    async def execute(self, context: PipelineContext) -> PipelineContext:
        ws = require_workspace(context)
        input_path = str(context["input_path"])
        chunk_s = int(context.get("chunk_s") or self.settings.chunk_s)
        plan = PlanKind.OFFSET.value

        halves = await self.codec.split(
            input_path,
            str(ws.area(plan, "halves")),
            unit_s=chunk_s // 2,
            prefix="half",
        )
        ext = os.path.splitext(halves[0])[1]
        segments_dir = ws.area(plan, "segments")
        segments: list[str] = []
        for index, group in enumerate(group_offset_parts(len(halves))):
            out = segments_dir / f"segment-{index:06d}{ext}"
            members = [halves[i] for i in group]
            if len(members) == 1:
                os.replace(members[0], out)
            else:
                await self.codec.merge(members, str(out))
                ws.release(members)
            segments.append(str(out))
        ws.release(ws.area(plan, "halves"))

        duration_s = context.get("duration_s")
        if duration_s is not None and len(offset_plan(float(duration_s), chunk_s)) != len(segments):
            logger.warning(
                "offset split drift (run_id=%s, planned=%d, actual=%d)",
                context.get("run_id"),
                len(offset_plan(float(duration_s), chunk_s)),
                len(segments),
            )

        context = cast(PipelineContext, dict(context))
        context["segments"] = {**dict(context.get("segments") or {}), plan: segments}
        logger.info(
            "split offset done (run_id=%s, halves=%d, segments=%d)",
            context.get("run_id"),
            len(halves),
            len(segments),
        )
        return context
