"""Provider abstractions for external tools."""

from stemsplice.providers.registry import get_codec_provider, get_separation_provider

__all__ = ["get_codec_provider", "get_separation_provider"]
