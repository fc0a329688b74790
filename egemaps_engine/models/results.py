"""Data models for engine results"""

from dataclasses import dataclass
from typing import Dict, Optional

from egemaps_engine.models.enums import ErrorCode
from egemaps_engine.models.features import FeatureVector


@dataclass(frozen=True)
class EngineError:
    """Error reported by the engine

    Attributes:
        code: Error kind
        message: Human-readable detail
    """
    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass(frozen=True)
class InitializationResult:
    """Outcome of EGeMAPSEngine.initialize()

    Attributes:
        error: None on success
    """
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of EGeMAPSEngine.analyze()

    Exactly one of ``features`` and ``error`` is set; a failed analysis never
    carries a partial feature vector.

    Attributes:
        features: Complete feature vector on success
        error: Error record on failure
        version: Engine version that produced the result
        lld_time_series: Frame-level series, only when requested
    """
    features: Optional[FeatureVector] = None
    error: Optional[EngineError] = None
    version: str = ""
    lld_time_series: Optional[Dict[str, list]] = None

    def __post_init__(self):
        """Validate result data"""
        assert (self.features is None) != (self.error is None), \
            "Exactly one of features and error must be set"
        assert self.error is None or self.lld_time_series is None, \
            "Failed results carry no time series"

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, code: ErrorCode, message: str, version: str = "") -> "AnalysisResult":
        return cls(error=EngineError(code=code, message=message), version=version)

    def unwrap(self) -> FeatureVector:
        """Return the feature vector or raise the matching engine exception"""
        if self.error is not None:
            from egemaps_engine.errors import exception_for
            raise exception_for(self.error.code, self.error.message)
        return self.features
