"""Run model (one pipeline execution over one input file)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class RunState(str, Enum):
    PENDING = "pending"
    SPLIT_PRIMARY = "split_primary"
    SEPARATE_PRIMARY = "separate_primary"
    JOIN_PRIMARY = "join_primary"
    SPLIT_OFFSET = "split_offset"
    SEPARATE_OFFSET = "separate_offset"
    JOIN_OFFSET = "join_offset"
    CORRECT_STEMS = "correct_stems"
    NORMALIZE_TIMESTAMPS = "normalize_timestamps"
    CONVERT_TO_ORIGINAL_CODEC = "convert_to_original_codec"
    DONE = "done"
    FAILED = "failed"


class StageRunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _dt_to_iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


@dataclass
class StageRun:
    state: RunState
    status: StageRunStatus = StageRunStatus.PENDING
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    workspace_bytes: int | None = None
    error_code: str | None = None
    error_message: str | None = None

    def mark_running(self) -> None:
        self.status = StageRunStatus.RUNNING
        self.started_at = _utcnow()

    def mark_finished(self, status: StageRunStatus) -> None:
        self.status = status
        self.completed_at = _utcnow()
        if self.started_at is not None:
            self.duration_ms = int((self.completed_at - self.started_at).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "status": self.status.value,
            "started_at": _dt_to_iso(self.started_at),
            "completed_at": _dt_to_iso(self.completed_at),
            "duration_ms": self.duration_ms,
            "workspace_bytes": self.workspace_bytes,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


@dataclass
class Run:
    id: str
    input_path: str
    output_dir: str
    stems: list[str] = field(default_factory=list)
    state: RunState = RunState.PENDING
    stage_runs: list[StageRun] = field(default_factory=list)
    outputs: dict[str, str] = field(default_factory=dict)
    peak_workspace_bytes: int = 0
    error_code: str | None = None
    error_message: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def stage_run(self, state: RunState) -> StageRun | None:
        return next((sr for sr in self.stage_runs if sr.state == state), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "stems": list(self.stems),
            "state": self.state.value,
            "stage_runs": [sr.to_dict() for sr in self.stage_runs],
            "outputs": dict(self.outputs),
            "peak_workspace_bytes": int(self.peak_workspace_bytes),
            "error_code": self.error_code,
            "error_message": self.error_message,
            "created_at": _dt_to_iso(self.created_at),
            "updated_at": _dt_to_iso(self.updated_at),
        }
