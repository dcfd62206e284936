"""Join stages: per-segment clips -> one full-length track per stem and plan."""

from __future__ import annotations

import logging
from typing import cast

from stemsplice.config import Settings
from stemsplice.models.run import RunState
from stemsplice.models.segment import PlanKind
from stemsplice.pipeline.context import PipelineContext, require_workspace
from stemsplice.providers import get_codec_provider
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.stages.base import Stage

logger = logging.getLogger(__name__)

_STATES = {
    PlanKind.PRIMARY: RunState.JOIN_PRIMARY,
    PlanKind.OFFSET: RunState.JOIN_OFFSET,
}


class JoinStage(Stage):
    def __init__(
        self,
        settings: Settings,
        plan: PlanKind,
        *,
        codec: CodecProvider | None = None,
    ) -> None:
        self.settings = settings
        self.plan = plan
        self.state = _STATES[plan]
        self.name = self.state.value
        self.codec = codec or get_codec_provider(settings.audio.model_dump())

    def should_skip(self, context: PipelineContext) -> bool:
        return self.plan == PlanKind.OFFSET and bool(context.get("short_input"))

    def validate_input(self, context: PipelineContext) -> bool:
        clips = dict(context.get("separated") or {}).get(self.plan.value)
        stems = list(context.get("stems") or [])
        if not clips or not stems:
            return False
        return all(stem in per_segment for per_segment in clips for stem in stems)

    async def execute(self, context: PipelineContext) -> PipelineContext:
        ws = require_workspace(context)
        plan = self.plan.value
        clips = list(dict(context.get("separated") or {})[plan])
        stems = list(context.get("stems") or [])
        engine_codec = str(self.settings.separation.codec)
        processing_codec = self.settings.processing_codec

        tracks: dict[str, str] = {}
        for stem in stems:
            # `clips` is indexed by segment index; this order is the timeline.
            ordered = [per_segment[stem] for per_segment in clips]
            track = ws.path("tracks", f"{stem}-{plan}.{processing_codec}")
            if engine_codec == processing_codec:
                await self.codec.concat(ordered, str(track))
            else:
                joined = ws.path(plan, "joined", f"{stem}.{engine_codec}")
                await self.codec.concat(ordered, str(joined))
                await self.codec.transcode(str(joined), str(track))
                ws.release(joined)
            ws.release(ordered)
            tracks[stem] = str(track)
            logger.info(
                "joined stem (run_id=%s, plan=%s, stem=%s, clips=%d)",
                context.get("run_id"),
                plan,
                stem,
                len(ordered),
            )
        ws.release(ws.root / plan)

        context = cast(PipelineContext, dict(context))
        remaining = dict(context.get("separated") or {})
        remaining.pop(plan, None)
        context["separated"] = remaining
        context["plan_tracks"] = {**dict(context.get("plan_tracks") or {}), plan: tracks}
        return context
