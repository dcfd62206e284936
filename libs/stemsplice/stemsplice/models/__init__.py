"""Core data models for stemsplice."""

from stemsplice.models.run import Run, RunState, StageRun, StageRunStatus
from stemsplice.models.segment import PlanKind, Segment

__all__ = ["PlanKind", "Run", "RunState", "Segment", "StageRun", "StageRunStatus"]
