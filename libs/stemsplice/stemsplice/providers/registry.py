"""Provider factory and registry."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from stemsplice.exceptions import ConfigurationError
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.providers.separation.base import SeparationProvider


def get_codec_provider(config: Mapping[str, Any]) -> CodecProvider:
    """Get codec provider based on configuration (`AudioConfig.model_dump()`)."""
    provider_type = str(config.get("provider", "ffmpeg")).strip().lower()

    match provider_type:
        case "ffmpeg":
            from stemsplice.providers.codec.ffmpeg import FFmpegCodecProvider

            return FFmpegCodecProvider(
                ffmpeg_bin=str(config.get("ffmpeg_bin") or "ffmpeg"),
                timeout_s=config.get("timeout_s"),
            )
        case _:
            raise ConfigurationError(f"Unknown codec provider: {provider_type}")


def get_separation_provider(config: Mapping[str, Any]) -> SeparationProvider:
    """Get separation provider based on configuration (`SeparationConfig.model_dump()`)."""
    provider_type = str(config.get("provider", "spleeter")).strip().lower()

    match provider_type:
        case "spleeter":
            from stemsplice.providers.separation.spleeter import SpleeterProvider

            return SpleeterProvider(
                spleeter_bin=str(config.get("spleeter_bin") or "spleeter"),
                stem_count=int(config.get("stems", 5)),
                stft_backend=config.get("stft_backend"),
                niceness=config.get("niceness"),
                timeout_s=config.get("timeout_s"),
            )
        case _:
            raise ConfigurationError(f"Unknown separation provider: {provider_type}")
