"""Separation stages: one engine batch per plan."""

from __future__ import annotations

import logging
from typing import cast

from stemsplice.config import Settings
from stemsplice.exceptions import EngineError
from stemsplice.models.run import RunState
from stemsplice.models.segment import PlanKind
from stemsplice.pipeline.context import PipelineContext, require_workspace
from stemsplice.providers import get_separation_provider
from stemsplice.providers.separation.base import SeparationProvider
from stemsplice.stages.base import Stage

logger = logging.getLogger(__name__)

_STATES = {
    PlanKind.PRIMARY: RunState.SEPARATE_PRIMARY,
    PlanKind.OFFSET: RunState.SEPARATE_OFFSET,
}


class SeparateStage(Stage):
    """Submit a plan's segments to the engine in one call.

    The segment files are deleted once the engine has produced every clip; a
    failed call leaves them in place and aborts the run.
    """

    def __init__(
        self,
        settings: Settings,
        plan: PlanKind,
        *,
        engine: SeparationProvider | None = None,
    ) -> None:
        self.settings = settings
        self.plan = plan
        self.state = _STATES[plan]
        self.name = self.state.value
        self.engine = engine or get_separation_provider(settings.separation.model_dump())

    def should_skip(self, context: PipelineContext) -> bool:
        return self.plan == PlanKind.OFFSET and bool(context.get("short_input"))

    def validate_input(self, context: PipelineContext) -> bool:
        segments = dict(context.get("segments") or {}).get(self.plan.value)
        return bool(segments) and bool(context.get("stems"))

    async def execute(self, context: PipelineContext) -> PipelineContext:
        ws = require_workspace(context)
        plan = self.plan.value
        segments = list(dict(context.get("segments") or {})[plan])
        stems = list(context.get("stems") or [])

        logger.info(
            "separate start (run_id=%s, plan=%s, segments=%d, stems=%s)",
            context.get("run_id"),
            plan,
            len(segments),
            ",".join(stems),
        )
        clips = await self.engine.separate(
            segments,
            str(ws.area(plan, "separated")),
            stems=stems,
            codec=str(self.settings.separation.codec),
        )
        if len(clips) != len(segments):
            raise EngineError(
                self.engine.name,
                f"engine returned {len(clips)} results for {len(segments)} segments",
            )
        ws.release(segments)
        ws.release(ws.area(plan, "segments"))

        context = cast(PipelineContext, dict(context))
        remaining = dict(context.get("segments") or {})
        remaining.pop(plan, None)
        context["segments"] = remaining
        context["separated"] = {**dict(context.get("separated") or {}), plan: clips}
        logger.info("separate done (run_id=%s, plan=%s)", context.get("run_id"), plan)
        return context
