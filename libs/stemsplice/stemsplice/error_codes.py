"""Canonical error codes surfaced to the CLI and run reports."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    MISSING_INPUT_FILE = "MISSING_INPUT_FILE"

    ENGINE_FAILED = "ENGINE_FAILED"
    CODEC_FAILED = "CODEC_FAILED"
