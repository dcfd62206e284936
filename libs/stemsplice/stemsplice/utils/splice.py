"""Splice correction over 1-second fragments.

Both full-length tracks of a stem are cut into fragments indexed by whole
seconds. Around every primary boundary `b` the primary fragments `b-1`, `b`
and `b+1` are swapped for the offset fragments at the same indices; the offset
track is artifact-free there because `b` is the midpoint of one of its
segments.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

from stemsplice.utils.segment_planner import validate_chunk_s

T = TypeVar("T")

FRAGMENT_S = 1
WINDOW_RADIUS = 1


def correction_windows(offset_fragment_count: int, chunk_s: int) -> list[tuple[int, ...]]:
    """Windows `(b-1, b, b+1)` for `b = L, 2L, ...` while offset fragment `b` exists."""
    chunk_s = validate_chunk_s(chunk_s)
    count = max(0, int(offset_fragment_count))
    return [
        tuple(range(b - WINDOW_RADIUS, b + WINDOW_RADIUS + 1))
        for b in range(chunk_s, count, chunk_s)
    ]


def splice_fragments(primary: Sequence[T], offset: Sequence[T], chunk_s: int) -> list[T]:
    """Return the primary fragment sequence with every correction window replaced.

    Indices present in only one of the two tracks (the tracks can drift apart
    by a fragment) keep the primary fragment.
    """
    out = list(primary)
    for window in correction_windows(len(offset), chunk_s):
        for i in window:
            if i < len(out) and i < len(offset):
                out[i] = offset[i]
    return out
