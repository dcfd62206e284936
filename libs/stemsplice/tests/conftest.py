from __future__ import annotations

from collections.abc import Callable

import pytest

from fakes import DiskMeter, FakeCodecProvider, FakeSeparationProvider
from stemsplice.config import (
    AudioConfig,
    ChunkingConfig,
    ConcurrencyConfig,
    SeparationConfig,
    Settings,
)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        work_dir=str(tmp_path / "work"),
        output_dir=str(tmp_path / "separated"),
        log_dir=str(tmp_path / "logs"),
        chunking=ChunkingConfig(chunk_s=30),
        separation=SeparationConfig(stems=2, codec="wav", niceness=None),
        audio=AudioConfig(processing_codec="flac"),
        concurrency=ConcurrencyConfig(correction=2),
    )


@pytest.fixture()
def meter() -> DiskMeter:
    return DiskMeter()


@pytest.fixture()
def fake_codec(meter: DiskMeter) -> FakeCodecProvider:
    return FakeCodecProvider(meter)


@pytest.fixture()
def make_engine(meter: DiskMeter) -> Callable[..., FakeSeparationProvider]:
    def _make(**kwargs) -> FakeSeparationProvider:  # noqa: ANN003
        return FakeSeparationProvider(meter, **kwargs)

    return _make
