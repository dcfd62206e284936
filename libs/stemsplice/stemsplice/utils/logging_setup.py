"""Logging initialization helpers.

Only the `stemsplice` logger tree is configured; the root logger and other
libraries' loggers are left alone.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from stemsplice.config import Settings

_LOGGER_NAME = "stemsplice"


def _level(settings: Settings, override: str | None = None) -> int:
    name = str(override or settings.logging.level or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _formatter(settings: Settings) -> logging.Formatter:
    return logging.Formatter(fmt=str(settings.logging.format), datefmt=str(settings.logging.datefmt))


def _log_path(settings: Settings, name: str) -> Path:
    path = Path(name)
    if not path.is_absolute():
        path = Path(settings.log_dir) / path
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def setup_logging(settings: Settings, *, level: str | None = None) -> None:
    """Attach console and rotating-file handlers once per process.

    `level` overrides `LOG_LEVEL` (the CLI's `--verbose`).
    """
    logger = logging.getLogger(_LOGGER_NAME)
    if getattr(logger, "_stemsplice_configured", False):
        return

    resolved = _level(settings, level)
    formatter = _formatter(settings)
    handlers: list[logging.Handler] = []
    if settings.logging.console:
        handlers.append(logging.StreamHandler())
    if settings.logging.file:
        handlers.append(
            RotatingFileHandler(
                _log_path(settings, str(settings.logging.file)),
                maxBytes=int(settings.logging.max_bytes),
                backupCount=int(settings.logging.backup_count),
                encoding="utf-8",
            )
        )
    for handler in handlers:
        handler.setLevel(resolved)
        handler.setFormatter(formatter)

    logger.setLevel(resolved)
    logger.handlers = handlers
    logger.propagate = False
    setattr(logger, "_stemsplice_configured", True)


@contextmanager
def run_log(settings: Settings, run_id: str) -> Iterator[Path | None]:
    """Copy everything logged during one run into `<log_dir>/runs/<run_id>.log`.

    Disabled unless `LOG_RUN_FILES` is set. The file is truncated per run.
    """
    if not settings.logging.run_files:
        yield None
        return

    path = _log_path(settings, str(Path("runs") / f"{run_id}.log"))
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(_level(settings))
    handler.setFormatter(_formatter(settings))

    logger = logging.getLogger(_LOGGER_NAME)
    previous_level = logger.level
    if logger.getEffectiveLevel() > handler.level:
        logger.setLevel(handler.level)
    logger.addHandler(handler)
    try:
        yield path
    finally:
        logger.removeHandler(handler)
        handler.close()
        logger.setLevel(previous_level)
