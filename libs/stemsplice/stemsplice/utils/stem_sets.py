"""Stem set resolution (stem count -> named output channels)."""

from __future__ import annotations

from typing import Any

from stemsplice.exceptions import ConfigurationError

_STEM_SETS: dict[int, tuple[str, ...]] = {
    2: ("vocals", "accompaniment"),
    4: ("vocals", "drums", "bass", "other"),
    5: ("vocals", "drums", "bass", "piano", "other"),
}

SUPPORTED_STEM_COUNTS: tuple[int, ...] = tuple(sorted(_STEM_SETS))

# Every name any stem set can produce; used to spot stale stems in an output directory.
ALL_STEM_NAMES: frozenset[str] = frozenset(name for stems in _STEM_SETS.values() for name in stems)


def resolve_stem_set(count: Any) -> tuple[str, ...]:
    """Return the ordered stem names produced for `count` stems.

    Only one stem set is active per run; `accompaniment` never appears together
    with `drums`/`bass`/`other`.
    """
    if isinstance(count, bool) or not isinstance(count, int):
        raise ConfigurationError(f"stem count must be an integer, got {count!r}")
    stems = _STEM_SETS.get(count)
    if stems is None:
        raise ConfigurationError(
            f"unsupported stem count: {count} (expected one of {list(SUPPORTED_STEM_COUNTS)})"
        )
    return stems


def spleeter_model_name(count: int) -> str:
    resolve_stem_set(count)
    return f"spleeter:{int(count)}stems"
