"""Run orchestrator: validation, workspace lifecycle and the stage pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

from stemsplice.config import Settings, validate_codec
from stemsplice.exceptions import ConfigurationError, MissingInputFileError
from stemsplice.models.run import Run
from stemsplice.pipeline.context import PipelineContext
from stemsplice.pipeline.executor import RunUpdateHook
from stemsplice.pipeline.factory import create_separation_pipeline
from stemsplice.providers import get_codec_provider, get_separation_provider
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.providers.separation.base import SeparationProvider
from stemsplice.storage.workspace import Workspace
from stemsplice.utils.logging_setup import run_log
from stemsplice.utils.segment_planner import validate_chunk_s
from stemsplice.utils.stem_sets import resolve_stem_set

logger = logging.getLogger(__name__)


class SeparationOrchestrator:
    """Separate one recording into stems and correct the chunk-boundary cracks.

    Invalid configuration and a missing input are rejected before any file is
    written. A failed run raises `StageExecutionError`; its workspace is kept
    for inspection unless `keep_workdir_on_failure` is off, and the output
    directory never receives partial results.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        codec: CodecProvider | None = None,
        engine: SeparationProvider | None = None,
        on_run_update: RunUpdateHook | None = None,
    ) -> None:
        self.settings = settings
        self._codec = codec
        self._engine = engine
        self._on_run_update = on_run_update

    def create_run(self, input_path: str) -> Run:
        path = Path(input_path)
        if not path.is_file():
            raise MissingInputFileError(f"input file not found: {input_path}")
        if not path.suffix.lstrip("."):
            raise ConfigurationError(f"cannot infer codec of input without extension: {input_path}")
        stems = resolve_stem_set(self.settings.separation.stems)
        validate_chunk_s(self.settings.chunking.chunk_s)
        validate_codec(self.settings.audio.processing_codec)
        validate_codec(self.settings.separation.codec)

        run_id = path.stem
        return Run(
            id=run_id,
            input_path=str(path.resolve()),
            output_dir=str(Path(self.settings.output_dir) / run_id),
            stems=list(stems),
        )

    async def execute(self, run: Run) -> Run:
        owns_codec = self._codec is None
        owns_engine = self._engine is None
        codec = self._codec or get_codec_provider(self.settings.audio.model_dump())
        engine = self._engine or get_separation_provider(self.settings.separation.model_dump())
        executor = create_separation_pipeline(
            self.settings, codec=codec, engine=engine, on_update=self._on_run_update
        )
        workspace = Workspace(
            self.settings.work_dir,
            run.id,
            keep_on_failure=bool(self.settings.keep_workdir_on_failure),
        )
        input_path = Path(run.input_path)
        context: PipelineContext = {
            "run_id": run.id,
            "input_path": str(input_path),
            "input_codec": input_path.suffix.lstrip(".").lower(),
            "output_dir": run.output_dir,
            "stems": list(run.stems),
            "chunk_s": int(self.settings.chunk_s),
            "workspace": workspace,
        }
        logger.info(
            "run start (run_id=%s, stems=%s, chunk_s=%d, processing_codec=%s)",
            run.id,
            ",".join(run.stems),
            self.settings.chunk_s,
            self.settings.processing_codec,
        )
        try:
            with run_log(self.settings, run.id), workspace:
                await executor.run(context, run)
        finally:
            run.peak_workspace_bytes = max(run.peak_workspace_bytes, workspace.peak_bytes)
            if owns_codec:
                await codec.close()
            if owns_engine:
                await engine.close()
        logger.info(
            "run done (run_id=%s, outputs=%d, peak_workspace_bytes=%d)",
            run.id,
            len(run.outputs),
            run.peak_workspace_bytes,
        )
        return run

    async def run(self, input_path: str) -> Run:
        return await self.execute(self.create_run(input_path))
