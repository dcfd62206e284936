from __future__ import annotations

import os
from pathlib import Path

import pytest

from stemsplice.exceptions import ConfigurationError
from stemsplice.storage.workspace import Workspace


def test_open_purges_stale_workspace(tmp_path: Path) -> None:
    stale = tmp_path / "work" / "song"
    stale.mkdir(parents=True)
    (stale / "leftover.wav").write_bytes(b"old")
    (stale / ".lock").write_text("0", encoding="utf-8")

    ws = Workspace(str(tmp_path / "work"), "song").open()

    assert not (stale / "leftover.wav").exists()
    assert ws.lock_path.read_text(encoding="utf-8") == str(os.getpid())
    ws.close()


def test_open_refuses_workspace_locked_by_live_process(tmp_path: Path) -> None:
    root = tmp_path / "work" / "song"
    root.mkdir(parents=True)
    (root / ".lock").write_text(str(os.getpid()), encoding="utf-8")
    (root / "keep.wav").write_bytes(b"busy")

    with pytest.raises(ConfigurationError, match="in use"):
        Workspace(str(tmp_path / "work"), "song").open()
    assert (root / "keep.wav").exists()


def test_release_deletes_files_and_directories(tmp_path: Path) -> None:
    with Workspace(str(tmp_path / "work"), "song") as ws:
        a = ws.path("primary", "segments", "segment-000000.wav")
        b = ws.path("primary", "segments", "segment-000001.wav")
        c = ws.path("tracks", "vocals-primary.flac")
        for p in (a, b, c):
            p.write_bytes(b"1234")
        assert ws.disk_usage() == 12

        assert ws.release([a], ws.root / "missing.wav") == 1
        assert ws.release(ws.root / "primary") == 1
        assert not (ws.root / "primary").exists()
        assert c.exists()
        assert ws.sample() == 4
        assert ws.peak_bytes == 4


def test_successful_close_removes_workspace(tmp_path: Path) -> None:
    with Workspace(str(tmp_path / "work"), "song") as ws:
        ws.path("x.wav").write_bytes(b"1")
    assert not ws.root.exists()


def test_failed_run_keeps_workspace_without_lock(tmp_path: Path) -> None:
    ws = Workspace(str(tmp_path / "work"), "song")
    with pytest.raises(RuntimeError):
        with ws:
            ws.path("x.wav").write_bytes(b"1")
            raise RuntimeError("boom")

    assert (ws.root / "x.wav").exists()
    assert not ws.lock_path.exists()


def test_failed_run_can_clean_up(tmp_path: Path) -> None:
    ws = Workspace(str(tmp_path / "work"), "song", keep_on_failure=False)
    with pytest.raises(RuntimeError):
        with ws:
            ws.path("x.wav").write_bytes(b"1")
            raise RuntimeError("boom")

    assert not ws.root.exists()


def test_run_id_must_not_be_empty(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        Workspace(str(tmp_path), "  ")


def test_second_open_of_the_same_workspace_is_refused(tmp_path: Path) -> None:
    first = Workspace(str(tmp_path / "work"), "song").open()
    first.path("busy.wav").write_bytes(b"1")

    with pytest.raises(ConfigurationError, match="in use"):
        Workspace(str(tmp_path / "work"), "song").open()

    assert (first.root / "busy.wav").exists()
    assert first.lock_path.read_text(encoding="utf-8") == str(os.getpid())
    first.close()


def test_unreadable_lock_is_not_taken_over(tmp_path: Path) -> None:
    root = tmp_path / "work" / "song"
    root.mkdir(parents=True)
    # A lock being written by another run has no pid yet.
    (root / ".lock").write_text("", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="in use"):
        Workspace(str(tmp_path / "work"), "song").open()
    assert (root / ".lock").read_text(encoding="utf-8") == ""
