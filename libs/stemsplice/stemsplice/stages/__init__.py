"""Processing stages."""

from stemsplice.stages.base import Stage
from stemsplice.stages.correct import SpliceCorrectionStage
from stemsplice.stages.finalize import ConvertToOriginalCodecStage, NormalizeTimestampsStage
from stemsplice.stages.join import JoinStage
from stemsplice.stages.separate import SeparateStage
from stemsplice.stages.split import SplitOffsetStage, SplitPrimaryStage

__all__ = [
    "ConvertToOriginalCodecStage",
    "JoinStage",
    "NormalizeTimestampsStage",
    "SeparateStage",
    "SpliceCorrectionStage",
    "SplitOffsetStage",
    "SplitPrimaryStage",
    "Stage",
]
