"""eGeMAPSv02 acoustic feature extraction engine"""

__version__ = "1.0.0"

# Bumped whenever the LLD algorithms or the functional recipe change;
# feature values are not comparable across revisions.
FEATURE_SET = "eGeMAPSv02"
RECIPE_REVISION = 1

ENGINE_VERSION = f"{__version__}+{FEATURE_SET}.r{RECIPE_REVISION}"

from egemaps_engine.engine import EGeMAPSEngine, AnalysisOptions  # noqa: E402
from egemaps_engine.models import (  # noqa: E402
    DecodedAudio,
    FeatureVector,
    FEATURE_NAMES,
    UNDEFINED,
    AnalysisResult,
    InitializationResult,
    EngineError,
    ErrorCode,
    EngineState,
)

__all__ = [
    "__version__",
    "ENGINE_VERSION",
    "FEATURE_SET",
    "RECIPE_REVISION",
    "EGeMAPSEngine",
    "AnalysisOptions",
    "DecodedAudio",
    "FeatureVector",
    "FEATURE_NAMES",
    "UNDEFINED",
    "AnalysisResult",
    "InitializationResult",
    "EngineError",
    "ErrorCode",
    "EngineState",
]
