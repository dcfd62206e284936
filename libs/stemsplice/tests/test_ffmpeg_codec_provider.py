from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from stemsplice.exceptions import CodecError
from stemsplice.providers.codec import ffmpeg as ffmpeg_module
from stemsplice.providers.codec.ffmpeg import FFmpegCodecProvider
from stemsplice.utils.subprocess import RunResult


class _Recorder:
    def __init__(self, *, returncode: int = 0, stderr: bytes = b"", on_call=None) -> None:  # noqa: ANN001
        self.returncode = returncode
        self.stderr = stderr
        self.on_call = on_call
        self.calls: list[list[str]] = []

    async def __call__(self, args, **kwargs) -> RunResult:  # noqa: ANN001, ANN003
        argv = [str(a) for a in args]
        self.calls.append(argv)
        if self.on_call is not None:
            self.on_call(argv)
        return RunResult(args=tuple(argv), returncode=self.returncode, stdout=b"", stderr=self.stderr)


@pytest.fixture()
def provider(tmp_path: Path) -> FFmpegCodecProvider:
    binary = tmp_path / "ffmpeg"
    binary.write_text("", encoding="utf-8")
    return FFmpegCodecProvider(str(binary))


@pytest.mark.asyncio
async def test_split_uses_stream_copy_and_returns_numeric_order(
    provider: FFmpegCodecProvider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    out_dir = tmp_path / "parts"

    def _fake_segment_muxer(argv: list[str]) -> None:
        for i in (10, 2, 0, 1):
            (out_dir / f"segment-{i}.wav").write_bytes(b"x")

    recorder = _Recorder(on_call=_fake_segment_muxer)
    monkeypatch.setattr(ffmpeg_module, "run_subprocess", recorder)

    parts = await provider.split(str(tmp_path / "in.wav"), str(out_dir), unit_s=30, prefix="segment")

    argv = recorder.calls[0]
    assert argv[0] == provider.ffmpeg_bin
    assert argv[argv.index("-f") + 1] == "segment"
    assert argv[argv.index("-segment_time") + 1] == "30"
    assert argv[argv.index("-c") + 1] == "copy"
    assert argv[-1] == str(out_dir / "segment-%06d.wav")
    assert [Path(p).name for p in parts] == [f"segment-{i}.wav" for i in (0, 1, 2, 10)]


@pytest.mark.asyncio
async def test_split_without_parts_fails(
    provider: FFmpegCodecProvider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _Recorder())

    with pytest.raises(CodecError, match="no parts"):
        await provider.split(str(tmp_path / "in.wav"), str(tmp_path / "parts"), unit_s=1, prefix="f")


@pytest.mark.asyncio
async def test_concat_writes_escaped_list_and_removes_it(
    provider: FFmpegCodecProvider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: dict[str, str] = {}

    def _capture_list(argv: list[str]) -> None:
        list_file = Path(argv[argv.index("-i") + 1])
        seen["list"] = list_file.read_text(encoding="utf-8")

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _Recorder(on_call=_capture_list))
    a = tmp_path / "it's.wav"
    b = tmp_path / "b.wav"
    out = tmp_path / "out" / "joined.wav"

    await provider.concat([str(a), str(b)], str(out))

    lines = seen["list"].splitlines()
    assert lines[0] == "file '" + str(a.resolve()).replace("'", "'\\''") + "'"
    assert lines[1] == f"file '{b.resolve()}'"
    assert not list(out.parent.glob("*.concat.txt"))


@pytest.mark.asyncio
async def test_merge_reencodes_through_concat_filter(
    provider: FFmpegCodecProvider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    recorder = _Recorder()
    monkeypatch.setattr(ffmpeg_module, "run_subprocess", recorder)

    await provider.merge(["a.wav", "b.wav"], str(tmp_path / "m.wav"))

    argv = recorder.calls[0]
    assert argv[argv.index("-filter_complex") + 1] == "[0:a:0][1:a:0]concat=n=2:v=0:a=1[out]"
    assert "copy" not in argv


@pytest.mark.asyncio
async def test_rewrite_timestamps_regenerates_pts_without_reencoding(
    provider: FFmpegCodecProvider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    recorder = _Recorder()
    monkeypatch.setattr(ffmpeg_module, "run_subprocess", recorder)

    await provider.rewrite_timestamps("in.flac", str(tmp_path / "out.flac"))

    argv = recorder.calls[0]
    assert argv[argv.index("-fflags") + 1] == "+genpts"
    assert argv[argv.index("-c:a") + 1] == "copy"


@pytest.mark.asyncio
async def test_read_duration_parses_header(
    provider: FFmpegCodecProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    header = b"Input #0, wav, from 'in.wav':\n  Duration: 01:02:03.50, bitrate: 1411 kb/s\n"
    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _Recorder(returncode=1, stderr=header))

    assert await provider.read_duration("in.wav") == pytest.approx(3723.5)


@pytest.mark.asyncio
async def test_read_duration_without_header_fails(
    provider: FFmpegCodecProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _Recorder(returncode=1, stderr=b"no such file"))

    with pytest.raises(CodecError, match="cannot read duration"):
        await provider.read_duration("missing.wav")


@pytest.mark.asyncio
async def test_non_zero_exit_becomes_codec_error(
    provider: FFmpegCodecProvider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _Recorder(returncode=1, stderr=b"bad data"))

    with pytest.raises(CodecError) as exc_info:
        await provider.transcode("in.wav", str(tmp_path / "out.flac"))
    assert "bad data" in str(exc_info.value)
    assert exc_info.value.error_code == "CODEC_FAILED"


@pytest.mark.asyncio
async def test_missing_binary_and_timeout_become_codec_errors(
    provider: FFmpegCodecProvider, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def _missing(args, **kwargs):  # noqa: ANN001, ANN003, ANN202
        raise FileNotFoundError(args[0])

    async def _slow(args, **kwargs):  # noqa: ANN001, ANN003, ANN202
        raise subprocess.TimeoutExpired(args, 1)

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _missing)
    with pytest.raises(CodecError, match="not found"):
        await provider.transcode("in.wav", str(tmp_path / "out.flac"))

    monkeypatch.setattr(ffmpeg_module, "run_subprocess", _slow)
    with pytest.raises(CodecError, match="timed out"):
        await provider.transcode("in.wav", str(tmp_path / "out.flac"))
