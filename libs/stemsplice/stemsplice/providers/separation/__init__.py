"""Separation engine Provider implementations."""

from stemsplice.providers.separation.base import SeparationProvider
from stemsplice.providers.separation.spleeter import SpleeterProvider

__all__ = ["SeparationProvider", "SpleeterProvider"]
