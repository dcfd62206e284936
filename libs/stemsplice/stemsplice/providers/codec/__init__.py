"""Codec service Provider implementations."""

from stemsplice.providers.codec.base import CodecProvider
from stemsplice.providers.codec.ffmpeg import FFmpegCodecProvider

__all__ = ["CodecProvider", "FFmpegCodecProvider"]
