"""Pipeline factories."""

from __future__ import annotations

from stemsplice.config import Settings
from stemsplice.models.segment import PlanKind
from stemsplice.pipeline.executor import PipelineExecutor, RunUpdateHook
from stemsplice.providers import get_codec_provider, get_separation_provider
from stemsplice.providers.codec.base import CodecProvider
from stemsplice.providers.separation.base import SeparationProvider
from stemsplice.stages import (
    ConvertToOriginalCodecStage,
    JoinStage,
    NormalizeTimestampsStage,
    SeparateStage,
    SpliceCorrectionStage,
    SplitOffsetStage,
    SplitPrimaryStage,
)


def create_separation_pipeline(
    settings: Settings,
    *,
    codec: CodecProvider | None = None,
    engine: SeparationProvider | None = None,
    on_update: RunUpdateHook | None = None,
) -> PipelineExecutor:
    """Create the two-pass separation pipeline.

    The primary plan runs through its join before the offset plan is split, so
    only one plan's segment set exists at a time.
    """
    codec = codec or get_codec_provider(settings.audio.model_dump())
    engine = engine or get_separation_provider(settings.separation.model_dump())
    stages = [
        SplitPrimaryStage(settings, codec=codec),
        SeparateStage(settings, PlanKind.PRIMARY, engine=engine),
        JoinStage(settings, PlanKind.PRIMARY, codec=codec),
        SplitOffsetStage(settings, codec=codec),
        SeparateStage(settings, PlanKind.OFFSET, engine=engine),
        JoinStage(settings, PlanKind.OFFSET, codec=codec),
        SpliceCorrectionStage(settings, codec=codec),
        NormalizeTimestampsStage(settings, codec=codec),
        ConvertToOriginalCodecStage(settings, codec=codec),
    ]
    return PipelineExecutor(stages, on_update=on_update)
