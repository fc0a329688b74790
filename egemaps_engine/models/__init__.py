"""Data models"""

from egemaps_engine.models.frames import DecodedAudio, SignalBuffer, Frame
from egemaps_engine.models.series import LLDSeries
from egemaps_engine.models.features import FeatureVector, FEATURE_NAMES, UNDEFINED
from egemaps_engine.models.results import (
    EngineError,
    InitializationResult,
    AnalysisResult,
)
from egemaps_engine.models.enums import EngineState, ErrorCode, Scope

__all__ = [
    # Frames
    "DecodedAudio",
    "SignalBuffer",
    "Frame",
    # Series
    "LLDSeries",
    # Features
    "FeatureVector",
    "FEATURE_NAMES",
    "UNDEFINED",
    # Results
    "EngineError",
    "InitializationResult",
    "AnalysisResult",
    # Enums
    "EngineState",
    "ErrorCode",
    "Scope",
]
