"""Separation engine abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from stemsplice.exceptions import EngineError


class SeparationProvider(ABC):
    name: str = "engine"

    @abstractmethod
    async def separate(
        self,
        segment_paths: Sequence[str],
        output_dir: str,
        *,
        stems: Sequence[str],
        codec: str,
    ) -> list[dict[str, str]]:
        """Separate every segment in one batch.

        Returns one `{stem: path}` mapping per submitted segment, in submission
        order. Every clip carries the engine's trailing padding.
        """
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover
        return None

    def match_outputs(
        self,
        segment_paths: Sequence[str],
        output_dir: str,
        *,
        stems: Sequence[str],
        codec: str,
    ) -> list[dict[str, str]]:
        """Map engine outputs (`<output_dir>/<segment name>/<stem>.<codec>`) back to segments.

        Raises EngineError when a segment has no output, when two segments share
        a name, or when the engine produced outputs that belong to no segment.
        """
        root = Path(output_dir)
        names = [Path(p).stem for p in segment_paths]
        if len(set(names)) != len(names):
            raise EngineError(self.name, "segment names are not unique; outputs cannot be matched")

        results: list[dict[str, str]] = []
        missing: list[str] = []
        for name in names:
            clips: dict[str, str] = {}
            for stem in stems:
                clip = root / name / f"{stem}.{codec}"
                if clip.is_file():
                    clips[stem] = str(clip)
                else:
                    missing.append(str(clip))
            results.append(clips)
        if missing:
            preview = ", ".join(missing[:5])
            raise EngineError(self.name, f"missing {len(missing)} expected outputs (e.g. {preview})")

        produced = {p.name for p in root.iterdir() if p.is_dir()} if root.exists() else set()
        unexpected = sorted(produced - set(names))
        if unexpected:
            raise EngineError(
                self.name, f"outputs do not match submitted segments: {unexpected[:5]}"
            )
        return results
