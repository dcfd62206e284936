"""Utility helpers."""

from stemsplice.utils.segment_planner import (
    group_offset_parts,
    interior_boundaries,
    offset_plan,
    ordered_parts,
    primary_plan,
    validate_chunk_s,
)
from stemsplice.utils.splice import correction_windows, splice_fragments
from stemsplice.utils.stem_sets import resolve_stem_set, spleeter_model_name

__all__ = [
    "correction_windows",
    "group_offset_parts",
    "interior_boundaries",
    "offset_plan",
    "ordered_parts",
    "primary_plan",
    "resolve_stem_set",
    "splice_fragments",
    "spleeter_model_name",
    "validate_chunk_s",
]
