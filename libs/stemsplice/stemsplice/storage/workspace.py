"""Per-run workspace for intermediate files.

A workspace lives at `<base_dir>/<run_id>` and is owned by exactly one run at a
time (enforced with a pid lock file). Stages ask it for paths and hand paths
back through `release()` as soon as they are consumed, which is what keeps the
peak disk footprint bounded.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Iterable
from pathlib import Path
from types import TracebackType

from stemsplice.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOCK_NAME = ".lock"


def _pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class Workspace:
    def __init__(self, base_dir: str, run_id: str, *, keep_on_failure: bool = True) -> None:
        safe_run_id = run_id.strip().replace("/", "_")
        if not safe_run_id:
            raise ConfigurationError("run id must not be empty")
        self.base_dir = Path(base_dir)
        self.run_id = safe_run_id
        self.keep_on_failure = bool(keep_on_failure)
        self.peak_bytes = 0
        self._locked = False

    @property
    def root(self) -> Path:
        return self.base_dir / self.run_id

    @property
    def lock_path(self) -> Path:
        return self.root / _LOCK_NAME

    def area(self, *parts: str) -> Path:
        """Return (and create) a directory inside the workspace."""
        safe = [p.strip().replace("/", "_") for p in parts if p and p.strip()]
        path = self.root.joinpath(*safe)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def path(self, *parts: str) -> Path:
        """Return a file path inside the workspace; its directory is created."""
        if not parts:
            raise ValueError("path needs at least a file name")
        return self.area(*parts[:-1]) / parts[-1].strip().replace("/", "_")

    def release(self, *paths: str | Path | Iterable[str | Path]) -> int:
        """Delete files or directories that are no longer needed.

        Returns the number of files removed. Missing paths are ignored.
        """
        removed = 0
        for item in paths:
            if isinstance(item, (str, Path)):
                targets: Iterable[str | Path] = [item]
            else:
                targets = item
            for target in targets:
                p = Path(target)
                if p.is_dir():
                    removed += sum(1 for f in p.rglob("*") if f.is_file())
                    shutil.rmtree(p)
                elif p.exists():
                    p.unlink()
                    removed += 1
        return removed

    def disk_usage(self) -> int:
        if not self.root.exists():
            return 0
        return sum(f.stat().st_size for f in self.root.rglob("*") if f.is_file() and f.name != _LOCK_NAME)

    def sample(self) -> int:
        """Measure current usage and fold it into `peak_bytes`."""
        usage = self.disk_usage()
        self.peak_bytes = max(self.peak_bytes, usage)
        return usage

    def _claim_lock(self) -> bool:
        """Create the lock file atomically; False if it already exists."""
        try:
            fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(str(os.getpid()))
        return True

    def _lock_owner(self) -> int | None:
        """Pid recorded in the lock; None while it is being written or unreadable."""
        try:
            return int(self.lock_path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return 0
        except (OSError, ValueError):
            return None

    def open(self) -> "Workspace":
        """Acquire the workspace, purging leftovers of an earlier failed run."""
        self.root.mkdir(parents=True, exist_ok=True)
        if not self._claim_lock():
            owner = self._lock_owner()
            if owner is None or _pid_alive(owner):
                raise ConfigurationError(
                    f"workspace {self.root} is in use by another run (pid={owner}); "
                    f"remove {self.lock_path} if that run is gone"
                )
            logger.info("taking over stale lock (run_id=%s, pid=%s)", self.run_id, owner)
            self.lock_path.unlink(missing_ok=True)
            if not self._claim_lock():
                raise ConfigurationError(f"workspace {self.root} was claimed by another run")

        leftovers = [p for p in self.root.iterdir() if p.name != _LOCK_NAME]
        if leftovers:
            logger.info("purge stale workspace (run_id=%s, path=%s)", self.run_id, self.root)
            self.release(leftovers)
        self._locked = True
        return self

    def close(self, *, failed: bool = False) -> None:
        if not self._locked:
            return
        self._locked = False
        if failed and self.keep_on_failure:
            self.lock_path.unlink(missing_ok=True)
            logger.warning("workspace kept for inspection (run_id=%s, path=%s)", self.run_id, self.root)
            return
        shutil.rmtree(self.root, ignore_errors=True)

    def __enter__(self) -> "Workspace":
        return self.open()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close(failed=exc_type is not None)
