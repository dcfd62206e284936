"""Codec service abstractions.

A track's codec is its file extension; `transcode` picks the target codec from
the output path.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence


class CodecProvider(ABC):
    @abstractmethod
    async def split(self, input_path: str, output_dir: str, *, unit_s: float, prefix: str) -> list[str]:
        """Cut `input_path` into `unit_s` parts named `<prefix>-<index>.<ext>`, in index order."""
        raise NotImplementedError

    @abstractmethod
    async def concat(self, input_paths: Sequence[str], output_path: str) -> str:
        """Join same-codec tracks in the given order without re-encoding."""
        raise NotImplementedError

    @abstractmethod
    async def merge(self, input_paths: Sequence[str], output_path: str) -> str:
        """Join tracks in the given order, re-encoding to the output codec."""
        raise NotImplementedError

    @abstractmethod
    async def transcode(self, input_path: str, output_path: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def rewrite_timestamps(self, input_path: str, output_path: str) -> str:
        """Regenerate timestamps without re-encoding."""
        raise NotImplementedError

    @abstractmethod
    async def read_duration(self, input_path: str) -> float:
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover
        return None
