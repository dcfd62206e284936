"""Two-pass segmentation of the input timeline.

The primary plan cuts the timeline at multiples of the chunk length `L`. The
offset plan starts with a single `L/2` segment and continues with `L`-long
segments, so each of its boundaries falls at the midpoint of a primary segment.
Every interior primary boundary `b` is therefore covered by the interior of an
offset segment `[b - L/2, b + L/2)`, which is what makes splice correction
possible.

The planner works on nominal durations. Physically the offset plan is realized
by splitting the input into `L/2` parts and gluing them with
`group_offset_parts`; the actual duration is only known once the codec service
has produced the parts.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from stemsplice.exceptions import ConfigurationError
from stemsplice.models.segment import PlanKind, Segment

MIN_CHUNK_S = 6
DEFAULT_CHUNK_S = 30


def validate_chunk_s(chunk_s: Any) -> int:
    """Validate the chunk length `L` (seconds).

    `L` must be even so `L/2` lands on a whole fragment, and at least
    `MIN_CHUNK_S` so the offset segment's own tail artifact (fragment
    `b + L/2 - 1`) stays outside the correction window `{b-1, b, b+1}`.
    """
    if isinstance(chunk_s, bool):
        raise ConfigurationError(f"chunk length must be an integer, got {chunk_s!r}")
    if isinstance(chunk_s, float) and chunk_s.is_integer():
        chunk_s = int(chunk_s)
    if not isinstance(chunk_s, int):
        raise ConfigurationError(f"chunk length must be an integer, got {chunk_s!r}")
    if chunk_s < MIN_CHUNK_S:
        raise ConfigurationError(f"chunk length must be >= {MIN_CHUNK_S}s, got {chunk_s}")
    if chunk_s % 2 != 0:
        raise ConfigurationError(f"chunk length must be even, got {chunk_s}")
    return chunk_s


def _cut(plan: PlanKind, duration_s: float, starts: Iterable[float]) -> list[Segment]:
    bounds = [s for s in starts if s < duration_s]
    out: list[Segment] = []
    for i, start in enumerate(bounds):
        end = bounds[i + 1] if i + 1 < len(bounds) else float(duration_s)
        out.append(Segment(plan=plan, index=i, start_s=float(start), duration_s=float(end - start)))
    return out


def primary_plan(duration_s: float, chunk_s: int = DEFAULT_CHUNK_S) -> list[Segment]:
    """`[0, L), [L, 2L), ...` up to `duration_s`; the last segment may be shorter."""
    chunk_s = validate_chunk_s(chunk_s)
    duration_s = float(duration_s)
    if duration_s <= 0:
        return []
    count = int(-(-duration_s // chunk_s))
    return _cut(PlanKind.PRIMARY, duration_s, (float(i * chunk_s) for i in range(count)))


def offset_plan(duration_s: float, chunk_s: int = DEFAULT_CHUNK_S) -> list[Segment]:
    """`[0, L/2)`, then `[L/2, 3L/2)`, `[3L/2, 5L/2)`, ... up to `duration_s`."""
    chunk_s = validate_chunk_s(chunk_s)
    duration_s = float(duration_s)
    if duration_s <= 0:
        return []
    half = chunk_s // 2
    count = int(-(-(duration_s + half) // chunk_s)) + 1
    starts = [0.0] + [float(half + i * chunk_s) for i in range(count)]
    return _cut(PlanKind.OFFSET, duration_s, starts)


def interior_boundaries(duration_s: float, chunk_s: int = DEFAULT_CHUNK_S) -> list[int]:
    """Primary boundaries `b = kL` with `0 < b < duration_s`."""
    chunk_s = validate_chunk_s(chunk_s)
    return [b for b in range(chunk_s, int(-(-float(duration_s) // 1)), chunk_s) if b < duration_s]


def group_offset_parts(part_count: int) -> list[list[int]]:
    """Group `L/2` parts into offset-plan segments.

    The first part stays alone; the rest are merged pairwise (1+2, 3+4, ...).
    A trailing unpaired part stays alone.
    """
    part_count = int(part_count)
    if part_count <= 0:
        return []
    groups: list[list[int]] = [[0]]
    for i in range(1, part_count, 2):
        groups.append([i, i + 1] if i + 1 < part_count else [i])
    return groups


_INDEX_RE = re.compile(r"(\d+)$")


def part_index(path: str | Path) -> int:
    match = _INDEX_RE.search(Path(path).stem)
    if match is None:
        raise ValueError(f"part file has no numeric index: {path}")
    return int(match.group(1))


def ordered_parts(paths: Iterable[str | Path]) -> list[str]:
    """Order part files by their trailing numeric index.

    Joins must run in strictly increasing index order; lexicographic order
    breaks as soon as indices outgrow their zero padding.
    """
    indexed = [(part_index(p), str(p)) for p in paths]
    indexed.sort(key=lambda x: x[0])
    for (a, pa), (b, pb) in zip(indexed, indexed[1:]):
        if a == b:
            raise ValueError(f"duplicate part index {a}: {pa}, {pb}")
    return [p for _, p in indexed]
