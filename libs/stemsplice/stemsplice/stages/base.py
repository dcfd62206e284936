"""Stage abstractions for pipeline execution."""

from __future__ import annotations

from abc import ABC, abstractmethod

from stemsplice.models.run import RunState
from stemsplice.pipeline.context import PipelineContext


class Stage(ABC):
    """One state of the run state machine."""

    name: str
    state: RunState

    @abstractmethod
    async def execute(self, context: PipelineContext) -> PipelineContext:
        """Run the stage and return the updated context."""

    @abstractmethod
    def validate_input(self, context: PipelineContext) -> bool:
        """Check that earlier stages produced what this stage consumes."""

    def should_skip(self, context: PipelineContext) -> bool:
        return False
