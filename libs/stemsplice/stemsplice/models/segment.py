"""Segment models for the two segmentation plans."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class PlanKind(str, Enum):
    PRIMARY = "primary"
    OFFSET = "offset"


@dataclass(frozen=True)
class Segment:
    plan: PlanKind
    index: int
    start_s: float
    duration_s: float

    @property
    def end_s(self) -> float:
        return self.start_s + self.duration_s
