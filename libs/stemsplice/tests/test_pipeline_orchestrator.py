from __future__ import annotations

from pathlib import Path

import pytest

from fakes import ARTIFACT, LINE_BYTES, DiskMeter, FakeCodecProvider, read_lines, write_fake_audio
from stemsplice.config import ConcurrencyConfig, SeparationConfig, Settings
from stemsplice.error_codes import ErrorCode
from stemsplice.exceptions import CodecError, ConfigurationError, MissingInputFileError, StageExecutionError
from stemsplice.models.run import Run, RunState, StageRunStatus
from stemsplice.pipeline.orchestrator import SeparationOrchestrator
from stemsplice.storage.workspace import Workspace
from stemsplice.utils.segment_planner import interior_boundaries


def _expected(i: int) -> str:
    return f"{i:07d}"


def _orchestrator(settings: Settings, codec: FakeCodecProvider, engine, meter: DiskMeter, run_id: str):  # noqa: ANN001, ANN202
    meter.root = Path(settings.work_dir) / run_id
    return SeparationOrchestrator(settings, codec=codec, engine=engine)


@pytest.mark.asyncio
async def test_boundaries_are_corrected_and_timeline_is_in_order(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    duration_s = 95
    input_path = write_fake_audio(tmp_path / "in" / "song.wav", duration_s)
    engine = make_engine()
    orchestrator = _orchestrator(settings, fake_codec, engine, meter, "song")

    run = await orchestrator.run(str(input_path))

    assert run.state == RunState.DONE
    assert engine.calls == [4, 4]
    assert set(run.outputs) == {"vocals", "accompaniment"}
    for stem, path in run.outputs.items():
        assert Path(path) == Path(settings.output_dir) / "song" / f"{stem}.wav"
        lines = read_lines(path)
        assert len(lines) == duration_s
        for b in interior_boundaries(duration_s, 30):
            assert lines[b - 1 : b + 2] == [_expected(b - 1), _expected(b), _expected(b + 1)]
        # Only the engine padding at the very end of the track survives.
        assert lines[:-1] == [_expected(i) for i in range(duration_s - 1)]
        assert lines[-1] == ARTIFACT
    assert not (Path(settings.work_dir) / "song").exists()


@pytest.mark.asyncio
async def test_offset_plan_is_built_from_merged_halves(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "song.wav", 95)

    await _orchestrator(settings, fake_codec, make_engine(), meter, "song").run(str(input_path))

    splits = [c for c in fake_codec.calls if c[0] == "split" and c[1] == str(input_path.resolve())]
    assert [c[2] for c in splits] == ["30", "15"]
    merges = [c for c in fake_codec.calls if c[0] == "merge"]
    # 7 halves -> head + 3 pairs.
    assert len(merges) == 3
    assert all(c[2] == "2" for c in merges)


@pytest.mark.asyncio
async def test_short_input_runs_engine_once_and_skips_offset_stages(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "short.wav", 10)
    engine = make_engine()

    run = await _orchestrator(settings, fake_codec, engine, meter, "short").run(str(input_path))

    assert engine.calls == [1]
    for state in (RunState.SPLIT_OFFSET, RunState.SEPARATE_OFFSET, RunState.JOIN_OFFSET):
        stage_run = run.stage_run(state)
        assert stage_run is not None
        assert stage_run.status == StageRunStatus.SKIPPED
    assert run.stage_run(RunState.CORRECT_STEMS).status == StageRunStatus.COMPLETED
    for path in run.outputs.values():
        lines = read_lines(path)
        assert lines[:-1] == [_expected(i) for i in range(9)]
        assert lines[-1] == ARTIFACT
    assert [c for c in fake_codec.calls if c[0] == "merge"] == []


@pytest.mark.asyncio
async def test_output_keeps_input_codec(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "album.mp3", 40)

    run = await _orchestrator(settings, fake_codec, make_engine(), meter, "album").run(str(input_path))

    assert sorted(Path(p).name for p in run.outputs.values()) == ["accompaniment.mp3", "vocals.mp3"]
    assert run.output_dir == str(Path(settings.output_dir) / "album")


@pytest.mark.asyncio
@pytest.mark.parametrize(("duration_s", "workers"), [(7200, 1), (1800, 5)])
async def test_peak_workspace_stays_under_twenty_times_input(
    tmp_path: Path, meter: DiskMeter, make_engine, duration_s: int, workers: int
) -> None:
    settings = Settings(
        work_dir=str(tmp_path / "work"),
        output_dir=str(tmp_path / "separated"),
        log_dir=str(tmp_path / "logs"),
        separation=SeparationConfig(stems=5, niceness=None),
        concurrency=ConcurrencyConfig(correction=workers),
    )
    input_path = write_fake_audio(tmp_path / "long.wav", duration_s)
    input_bytes = input_path.stat().st_size
    assert input_bytes == duration_s * LINE_BYTES
    codec = FakeCodecProvider(meter)

    run = await _orchestrator(settings, codec, make_engine(), meter, "long").run(str(input_path))

    bound = input_bytes * 5 * 4
    assert meter.peak > 0
    assert meter.peak <= bound
    assert run.peak_workspace_bytes <= bound
    assert len(run.outputs) == 5


@pytest.mark.asyncio
async def test_without_releases_the_footprint_exceeds_the_bound(
    tmp_path: Path, meter: DiskMeter, make_engine, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(Workspace, "release", lambda self, *paths: 0)
    settings = Settings(
        work_dir=str(tmp_path / "work"),
        output_dir=str(tmp_path / "separated"),
        log_dir=str(tmp_path / "logs"),
        separation=SeparationConfig(stems=5, niceness=None),
        concurrency=ConcurrencyConfig(correction=1),
    )
    input_path = write_fake_audio(tmp_path / "long.wav", 600)

    await _orchestrator(settings, FakeCodecProvider(meter), make_engine(), meter, "long").run(str(input_path))

    assert meter.peak > input_path.stat().st_size * 5 * 4


@pytest.mark.asyncio
async def test_engine_failure_on_offset_pass_publishes_nothing(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "song.wav", 95)
    updates: list[str] = []

    async def _on_update(run: Run) -> None:
        updates.append(run.state.value)

    meter.root = Path(settings.work_dir) / "song"
    orchestrator = SeparationOrchestrator(
        settings, codec=fake_codec, engine=make_engine(fail_on_call=2), on_run_update=_on_update
    )
    run = orchestrator.create_run(str(input_path))

    with pytest.raises(StageExecutionError) as exc_info:
        await orchestrator.execute(run)

    assert exc_info.value.stage == "separate_offset"
    assert exc_info.value.error_code == ErrorCode.ENGINE_FAILED.value
    assert "model crashed" in exc_info.value.message
    assert run.state == RunState.FAILED
    assert run.error_code == ErrorCode.ENGINE_FAILED.value
    assert run.stage_run(RunState.SEPARATE_OFFSET).status == StageRunStatus.FAILED
    assert updates[-1] == "failed"
    output_dir = Path(settings.output_dir) / "song"
    assert not output_dir.exists() or not any(output_dir.iterdir())
    # Kept for inspection, unlocked.
    workspace = Path(settings.work_dir) / "song"
    assert workspace.exists()
    assert not (workspace / ".lock").exists()


@pytest.mark.asyncio
async def test_engine_outputs_that_do_not_match_segments_fail_the_run(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "song.wav", 65)
    engine = make_engine(rename=lambda name: name.replace("segment", "clip"))

    with pytest.raises(StageExecutionError) as exc_info:
        await _orchestrator(settings, fake_codec, engine, meter, "song").run(str(input_path))

    assert exc_info.value.stage == "separate_primary"
    assert exc_info.value.error_code == ErrorCode.ENGINE_FAILED.value


@pytest.mark.asyncio
async def test_missing_input_is_rejected_before_any_work(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine
) -> None:
    engine = make_engine()
    orchestrator = SeparationOrchestrator(settings, codec=fake_codec, engine=engine)

    with pytest.raises(MissingInputFileError):
        await orchestrator.run(str(tmp_path / "nope.wav"))

    assert engine.calls == []
    assert fake_codec.calls == []
    assert not Path(settings.work_dir).exists()


def test_input_without_extension_is_rejected(settings: Settings, tmp_path: Path) -> None:
    path = tmp_path / "recording"
    path.write_text("0000000\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="extension"):
        SeparationOrchestrator(settings).create_run(str(path))


@pytest.mark.asyncio
async def test_run_report_records_every_stage(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "song.wav", 65)

    run = await _orchestrator(settings, fake_codec, make_engine(), meter, "song").run(str(input_path))

    report = run.to_dict()
    assert report["state"] == "done"
    assert [sr["state"] for sr in report["stage_runs"]] == [
        "split_primary",
        "separate_primary",
        "join_primary",
        "split_offset",
        "separate_offset",
        "join_offset",
        "correct_stems",
        "normalize_timestamps",
        "convert_to_original_codec",
    ]
    assert all(sr["status"] == "completed" for sr in report["stage_runs"])
    assert report["peak_workspace_bytes"] > 0


class _DurationlessCodec(FakeCodecProvider):
    async def read_duration(self, input_path: str) -> float:
        raise CodecError("ffmpeg", "cannot read duration (Duration: N/A)")


@pytest.mark.asyncio
async def test_unknown_duration_does_not_stop_the_run(
    settings: Settings, tmp_path: Path, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "song.wav", 95)
    engine = make_engine()

    run = await _orchestrator(settings, _DurationlessCodec(meter), engine, meter, "song").run(str(input_path))

    assert run.state == RunState.DONE
    assert engine.calls == [4, 4]
    for path in run.outputs.values():
        lines = read_lines(path)
        assert lines[:-1] == [_expected(i) for i in range(94)]


@pytest.mark.asyncio
async def test_rerun_with_fewer_stems_leaves_only_the_new_stem_set(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "song.wav", 65)
    unrelated = Path(settings.output_dir) / "song" / "notes.txt"
    unrelated.parent.mkdir(parents=True)
    unrelated.write_text("keep me", encoding="utf-8")
    five = settings.model_copy(update={"separation": SeparationConfig(stems=5, niceness=None)})

    await _orchestrator(five, fake_codec, make_engine(), meter, "song").run(str(input_path))
    run = await _orchestrator(settings, fake_codec, make_engine(), meter, "song").run(str(input_path))

    output_dir = Path(settings.output_dir) / "song"
    assert sorted(p.name for p in output_dir.iterdir()) == ["accompaniment.wav", "notes.txt", "vocals.wav"]
    assert sorted(run.outputs) == ["accompaniment", "vocals"]


@pytest.mark.asyncio
async def test_repeated_runs_on_identical_input_agree(
    settings: Settings, tmp_path: Path, fake_codec: FakeCodecProvider, make_engine, meter: DiskMeter
) -> None:
    input_path = write_fake_audio(tmp_path / "song.wav", 125)
    orchestrator = _orchestrator(settings, fake_codec, make_engine(), meter, "song")

    first = await orchestrator.run(str(input_path))
    first_lines = {stem: read_lines(path) for stem, path in first.outputs.items()}
    second = await orchestrator.run(str(input_path))

    assert set(second.outputs) == set(first_lines)
    for stem, path in second.outputs.items():
        lines = read_lines(path)
        # One line per second: durations agree within one fragment.
        assert abs(len(lines) - len(first_lines[stem])) <= 1
        assert lines == first_lines[stem]
