"""stemsplice exception hierarchy."""

from __future__ import annotations

from stemsplice.error_codes import ErrorCode


class StemSpliceError(Exception):
    """Base error for stemsplice."""

    error_code: ErrorCode = ErrorCode.UNKNOWN


class ConfigurationError(StemSpliceError):
    """Raised when configuration or inputs are invalid."""

    error_code = ErrorCode.INVALID_CONFIGURATION


class MissingInputFileError(StemSpliceError):
    """Raised when the input recording does not exist."""

    error_code = ErrorCode.MISSING_INPUT_FILE


class ProviderError(StemSpliceError):
    """Raised when an external tool (engine, codec) fails."""

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message
        if error_code is not None:
            self.error_code = error_code


class EngineError(ProviderError):
    """Separation engine exited non-zero or its outputs could not be matched."""

    error_code = ErrorCode.ENGINE_FAILED


class CodecError(ProviderError):
    """Codec service (ffmpeg) failed to split, concat or transcode."""

    error_code = ErrorCode.CODEC_FAILED


class StageExecutionError(StemSpliceError):
    """Raised when a pipeline stage fails."""

    def __init__(
        self,
        stage: str,
        message: str,
        *,
        run_id: str | None = None,
        error_code: ErrorCode | str | None = None,
    ) -> None:
        prefix = f"{stage}"
        if run_id:
            prefix = f"{prefix} (run_id={run_id})"
        super().__init__(f"{prefix}: {message}")
        self.stage = stage
        self.run_id = run_id
        self.message = message
        if error_code is not None:
            self.error_code = error_code
