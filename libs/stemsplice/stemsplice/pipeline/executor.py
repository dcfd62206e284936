"""Pipeline executor (the run state machine)."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from stemsplice.error_codes import ErrorCode
from stemsplice.exceptions import StageExecutionError, StemSpliceError
from stemsplice.models.run import Run, RunState, StageRun, StageRunStatus
from stemsplice.pipeline.context import PipelineContext
from stemsplice.stages.base import Stage

logger = logging.getLogger(__name__)

RunUpdateHook = Callable[[Run], Awaitable[None]]

_ENGINE_STATES = {RunState.SEPARATE_PRIMARY, RunState.SEPARATE_OFFSET}


def infer_error_code(stage: Stage, exc: BaseException) -> str:
    if isinstance(exc, StemSpliceError) and exc.error_code != ErrorCode.UNKNOWN:
        code = exc.error_code
        return str(getattr(code, "value", code))
    if stage.state in _ENGINE_STATES:
        return ErrorCode.ENGINE_FAILED.value
    return ErrorCode.UNKNOWN.value


def infer_error_message(exc: BaseException) -> str:
    if isinstance(exc, StageExecutionError):
        return str(exc.message or "")
    return str(exc) or type(exc).__name__


class PipelineExecutor:
    """Run stages strictly in order; the first failure moves the run to `failed`.

    No stage is retried. After every stage the workspace is sampled so the run
    records its peak disk footprint.
    """

    def __init__(self, stages: list[Stage], *, on_update: RunUpdateHook | None = None):
        self.stages = stages
        self._on_update = on_update

    async def _notify(self, run: Run) -> None:
        run.touch()
        if self._on_update is not None:
            await self._on_update(run)

    async def run(self, initial_context: PipelineContext, run: Run) -> PipelineContext:
        context: PipelineContext = dict(initial_context)  # type: ignore[assignment]
        workspace = context.get("workspace")
        for stage in self.stages:
            stage_run = StageRun(state=stage.state)
            run.stage_runs.append(stage_run)

            if stage.should_skip(context):
                stage_run.mark_finished(StageRunStatus.SKIPPED)
                logger.info("stage skipped (run_id=%s, stage=%s)", run.id, stage.name)
                continue

            run.state = stage.state
            stage_run.mark_running()
            await self._notify(run)
            logger.info("stage start (run_id=%s, stage=%s)", run.id, stage.name)
            try:
                if not stage.validate_input(context):
                    raise StageExecutionError(
                        stage.name, "input validation failed", run_id=run.id
                    )
                context = await stage.execute(context)
            except Exception as exc:
                code = infer_error_code(stage, exc)
                message = infer_error_message(exc)
                stage_run.error_code = code
                stage_run.error_message = message
                stage_run.mark_finished(StageRunStatus.FAILED)
                run.state = RunState.FAILED
                run.error_code = code
                run.error_message = f"{stage.name}: {message}"
                logger.exception("stage failed (run_id=%s, stage=%s)", run.id, stage.name)
                await self._notify(run)
                if isinstance(exc, StageExecutionError):
                    exc.error_code = code
                    raise
                raise StageExecutionError(stage.name, message, run_id=run.id, error_code=code) from exc

            if workspace is not None:
                stage_run.workspace_bytes = workspace.sample()
                run.peak_workspace_bytes = max(run.peak_workspace_bytes, workspace.peak_bytes)
            stage_run.mark_finished(StageRunStatus.COMPLETED)
            logger.info(
                "stage done (run_id=%s, stage=%s, duration_ms=%s, workspace_bytes=%s)",
                run.id,
                stage.name,
                stage_run.duration_ms,
                stage_run.workspace_bytes,
            )

        run.state = RunState.DONE
        run.outputs = dict(context.get("outputs") or {})
        await self._notify(run)
        return context
