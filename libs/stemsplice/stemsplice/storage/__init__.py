"""Run-scoped intermediate file storage."""

from stemsplice.storage.workspace import Workspace

__all__ = ["Workspace"]
