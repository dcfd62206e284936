"""Pipeline orchestration.

This package is imported by pipeline stages for type hints. Keep imports lazy to
avoid circular-import issues between `stemsplice.pipeline` and
`stemsplice.stages`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stemsplice.pipeline.executor import PipelineExecutor
    from stemsplice.pipeline.factory import create_separation_pipeline
    from stemsplice.pipeline.orchestrator import SeparationOrchestrator

__all__ = ["PipelineExecutor", "SeparationOrchestrator", "create_separation_pipeline"]


def __getattr__(name: str) -> Any:
    if name == "PipelineExecutor":
        from stemsplice.pipeline.executor import PipelineExecutor

        return PipelineExecutor
    if name == "SeparationOrchestrator":
        from stemsplice.pipeline.orchestrator import SeparationOrchestrator

        return SeparationOrchestrator
    if name == "create_separation_pipeline":
        from stemsplice.pipeline.factory import create_separation_pipeline

        return create_separation_pipeline
    raise AttributeError(name)
