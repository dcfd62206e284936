"""Configuration management using pydantic-settings."""

import os
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stemsplice.exceptions import ConfigurationError
from stemsplice.utils.segment_planner import DEFAULT_CHUNK_S, validate_chunk_s
from stemsplice.utils.stem_sets import resolve_stem_set

_ENV_FILES = (".env",)

# Codecs that split and concatenate without re-encoding (or whose re-encode is
# exact); anything else can leave gaps at part boundaries.
SAFE_CODECS: tuple[str, ...] = ("wav", "flac", "mp3")

# Fragments are always cut from WAV; other containers lose or pad frames when
# split into 1-second pieces.
FRAGMENT_CODEC = "wav"


def _resolve_path(value: str) -> str:
    raw = str(value or "").strip()
    if not raw:
        return raw
    return str(Path(raw).expanduser().resolve())


def validate_codec(value: Any) -> str:
    codec = str(value or "").strip().lower().lstrip(".")
    if codec not in SAFE_CODECS:
        raise ConfigurationError(f"unsupported codec: {value!r} (expected one of {list(SAFE_CODECS)})")
    return codec


class ChunkingConfig(BaseSettings):
    """Segment planning configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CHUNK_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    chunk_s: int = DEFAULT_CHUNK_S

    @model_validator(mode="after")
    def _validate_chunk(self) -> "ChunkingConfig":
        self.chunk_s = validate_chunk_s(self.chunk_s)
        return self


class SeparationConfig(BaseSettings):
    """Separation engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SEPARATION_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "spleeter"
    spleeter_bin: str = "spleeter"
    stems: int = 5
    codec: str = "wav"  # engine output codec, concatenated losslessly
    stft_backend: str | None = "tensorflow"  # spleeter `-B`; None lets spleeter decide
    niceness: int | None = 19  # run the engine under `nice -n`; None disables
    timeout_s: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _validate_engine(self) -> "SeparationConfig":
        resolve_stem_set(self.stems)
        self.codec = validate_codec(self.codec)
        return self


class AudioConfig(BaseSettings):
    """Codec service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AUDIO_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: str = "ffmpeg"
    ffmpeg_bin: str = "ffmpeg"
    processing_codec: str = "flac"
    timeout_s: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _validate_codec(self) -> "AudioConfig":
        self.processing_codec = validate_codec(self.processing_codec)
        return self


class ConcurrencyConfig(BaseSettings):
    """Worker pool limits."""

    model_config = SettingsConfigDict(
        env_prefix="CONCURRENCY_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    correction: int = Field(default_factory=lambda: os.cpu_count() or 1, ge=1)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=_ENV_FILES,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"
    console: bool = True
    file: str | None = None
    max_bytes: int = Field(default=10 * 1024 * 1024, ge=0)
    backup_count: int = Field(default=5, ge=0)
    run_files: bool = False  # per-run copy under <log_dir>/runs/


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILES, env_file_encoding="utf-8", extra="ignore"
    )

    work_dir: str = "./work"
    output_dir: str = "./separated"
    log_dir: str = "./logs"
    keep_workdir_on_failure: bool = True

    # Nested configs read the environment when Settings is instantiated.
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    separation: SeparationConfig = Field(default_factory=SeparationConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("work_dir", "output_dir", "log_dir")
    @classmethod
    def _resolve_dirs(cls, value: str) -> str:
        resolved = _resolve_path(value)
        if not resolved:
            raise ConfigurationError("directory settings must not be empty")
        return resolved

    @property
    def stems(self) -> tuple[str, ...]:
        return resolve_stem_set(self.separation.stems)

    @property
    def chunk_s(self) -> int:
        return int(self.chunking.chunk_s)

    @property
    def processing_codec(self) -> str:
        return str(self.audio.processing_codec)
