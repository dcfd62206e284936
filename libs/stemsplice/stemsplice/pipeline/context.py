"""Pipeline context typing.

The pipeline passes a context dict between stages. This module defines the
known keys. Plan-keyed entries use `PlanKind.value` ("primary"/"offset").
"""

from __future__ import annotations

from typing import TypedDict

from stemsplice.storage.workspace import Workspace


class PipelineContext(TypedDict, total=False):
    run_id: str
    input_path: str
    input_codec: str
    output_dir: str
    stems: list[str]
    chunk_s: int
    workspace: Workspace

    duration_s: float | None
    short_input: bool

    segments: dict[str, list[str]]
    separated: dict[str, list[dict[str, str]]]
    plan_tracks: dict[str, dict[str, str]]

    corrected: dict[str, str]
    normalized: dict[str, str]
    outputs: dict[str, str]


def require_workspace(ctx: PipelineContext) -> Workspace:
    ws = ctx.get("workspace")
    if ws is None:
        raise KeyError("workspace")
    return ws
