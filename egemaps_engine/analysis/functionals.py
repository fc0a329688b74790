"""Functional aggregation of LLD series into the eGeMAPSv02 feature vector

Every LLD is smoothed with a symmetric 3-frame moving average before any
statistic is taken. Series restricted to voiced or unvoiced frames are
masked first and smoothed over present neighbours only, so missing frames
never leak into a value.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.signal import find_peaks

from egemaps_engine.analysis.pitch import voiced_runs
from egemaps_engine.analysis.spectral import equivalent_sound_level
from egemaps_engine.config.recipe import FunctionalParams
from egemaps_engine.models.enums import Scope
from egemaps_engine.models.features import FEATURE_NAMES, UNDEFINED, FeatureVector
from egemaps_engine.models.series import LLDSeries


logger = logging.getLogger(__name__)

# |mean| below this makes stddevNorm undefined
MEAN_EPSILON = 1e-10

AMEAN = "amean"
STDDEV_NORM = "stddevNorm"
FULL_FUNCTIONALS = (
    "amean", "stddevNorm",
    "percentile20.0", "percentile50.0", "percentile80.0", "pctlrange0-2",
    "meanRisingSlope", "stddevRisingSlope", "meanFallingSlope", "stddevFallingSlope",
)
MEAN_AND_CV = (AMEAN, STDDEV_NORM)
MEAN_ONLY = (AMEAN,)


@dataclass(frozen=True)
class FunctionalGroup:
    """One LLD, one frame scope and the functionals computed over it

    Attributes:
        lld: Name of the source series in LLDSeries
        output: Output name prefix (before ``_sma3``/``_sma3nz``)
        scope: Frames the statistics are taken over
        functionals: Functional names, in output order
    """
    lld: str
    output: str
    scope: Scope
    functionals: Tuple[str, ...]

    @property
    def smoothed_name(self) -> str:
        suffix = "_sma3" if self.scope is Scope.ALL else "_sma3nz"
        return f"{self.output}{suffix}"

    def feature_names(self) -> List[str]:
        return [f"{self.smoothed_name}_{f}" for f in self.functionals]


def _groups() -> Tuple[FunctionalGroup, ...]:
    g = FunctionalGroup
    groups = [
        g("F0semitoneFrom27.5Hz", "F0semitoneFrom27.5Hz", Scope.VOICED, FULL_FUNCTIONALS),
        g("loudness", "loudness", Scope.ALL, FULL_FUNCTIONALS),
        g("spectralFlux", "spectralFlux", Scope.ALL, MEAN_AND_CV),
    ]
    groups += [g(f"mfcc{k}", f"mfcc{k}", Scope.ALL, MEAN_AND_CV) for k in range(1, 5)]
    groups += [
        g("jitterLocal", "jitterLocal", Scope.VOICED, MEAN_AND_CV),
        g("shimmerLocaldB", "shimmerLocaldB", Scope.VOICED, MEAN_AND_CV),
        g("HNRdBACF", "HNRdBACF", Scope.VOICED, MEAN_AND_CV),
        g("logRelF0-H1-H2", "logRelF0-H1-H2", Scope.VOICED, MEAN_AND_CV),
        g("logRelF0-H1-A3", "logRelF0-H1-A3", Scope.VOICED, MEAN_AND_CV),
    ]
    for k in range(1, 4):
        groups += [
            g(f"F{k}frequency", f"F{k}frequency", Scope.VOICED, MEAN_AND_CV),
            g(f"F{k}bandwidth", f"F{k}bandwidth", Scope.VOICED, MEAN_AND_CV),
            g(f"F{k}amplitudeLogRelF0", f"F{k}amplitudeLogRelF0", Scope.VOICED, MEAN_AND_CV),
        ]
    groups += [
        g("alphaRatio", "alphaRatioV", Scope.VOICED, MEAN_AND_CV),
        g("hammarbergIndex", "hammarbergIndexV", Scope.VOICED, MEAN_AND_CV),
        g("slope0-500", "slopeV0-500", Scope.VOICED, MEAN_AND_CV),
        g("slope500-1500", "slopeV500-1500", Scope.VOICED, MEAN_AND_CV),
        g("spectralFlux", "spectralFluxV", Scope.VOICED, MEAN_AND_CV),
    ]
    groups += [g(f"mfcc{k}", f"mfcc{k}V", Scope.VOICED, MEAN_AND_CV) for k in range(1, 5)]
    groups += [
        g("alphaRatio", "alphaRatioUV", Scope.UNVOICED, MEAN_ONLY),
        g("hammarbergIndex", "hammarbergIndexUV", Scope.UNVOICED, MEAN_ONLY),
        g("slope0-500", "slopeUV0-500", Scope.UNVOICED, MEAN_ONLY),
        g("slope500-1500", "slopeUV500-1500", Scope.UNVOICED, MEAN_ONLY),
        g("spectralFlux", "spectralFluxUV", Scope.UNVOICED, MEAN_ONLY),
    ]
    return tuple(groups)


FUNCTIONAL_GROUPS = _groups()

TEMPORAL_FEATURES = (
    "loudnessPeaksPerSec",
    "VoicedSegmentsPerSec",
    "MeanVoicedSegmentLengthSec",
    "StddevVoicedSegmentLengthSec",
    "MeanUnvoicedSegmentLength",
    "StddevUnvoicedSegmentLength",
    "equivalentSoundLevel_dBp",
)

assert tuple(
    [name for group in FUNCTIONAL_GROUPS for name in group.feature_names()] + list(TEMPORAL_FEATURES)
) == FEATURE_NAMES, "Functional groups must produce the canonical feature order"


def smooth(values: np.ndarray, window: int = 3) -> np.ndarray:
    """Symmetric moving average over present (non-NaN) neighbours

    At the edges, and next to missing frames, only the neighbours that exist
    are averaged. Missing frames stay missing.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.size == 0 or window <= 1:
        return values.copy()
    half = window // 2
    present = ~np.isnan(values)
    sums = sliding_window_view(np.pad(np.where(present, values, 0.0), half), window).sum(axis=1)
    counts = sliding_window_view(np.pad(present.astype(np.float64), half), window).sum(axis=1)
    out = np.full(values.shape, np.nan)
    out[present] = sums[present] / counts[present]
    return out


def restrict(values: np.ndarray, voiced: np.ndarray, scope: Scope) -> np.ndarray:
    """Mask frames outside ``scope`` as missing"""
    values = np.asarray(values, dtype=np.float64)
    if scope is Scope.VOICED:
        return np.where(voiced, values, np.nan)
    if scope is Scope.UNVOICED:
        return np.where(voiced, np.nan, values)
    return values


def _lsq_slope(t: np.ndarray, y: np.ndarray) -> float:
    t = t - t.mean()
    return float(np.dot(t, y - y.mean()) / np.dot(t, t))


def monotonic_slopes(values: np.ndarray, times: np.ndarray) -> Tuple[List[float], List[float]]:
    """Least-squares slopes of every rising and every falling run

    A run is a maximal stretch of strictly increasing (or strictly
    decreasing) consecutive present values; flat steps and missing frames
    end a run.

    Returns:
        (rising slopes, falling slopes) in units per second; falling slopes
        are negative
    """
    rising: List[float] = []
    falling: List[float] = []
    for start, end in voiced_runs(~np.isnan(values)):
        y = values[start:end]
        t = times[start:end]
        direction = np.sign(np.diff(y))
        i = 0
        while i < direction.size:
            if direction[i] == 0:
                i += 1
                continue
            j = i
            while j + 1 < direction.size and direction[j + 1] == direction[i]:
                j += 1
            slope = _lsq_slope(t[i:j + 2], y[i:j + 2])
            (rising if direction[i] > 0 else falling).append(slope)
            i = j + 1
    return rising, falling


def _mean(values) -> Optional[float]:
    return float(np.mean(values)) if len(values) else UNDEFINED


def _std(values) -> Optional[float]:
    return float(np.std(values)) if len(values) else UNDEFINED


def _finite_or_undefined(value: Optional[float]) -> Optional[float]:
    if value is UNDEFINED or not np.isfinite(value):
        return UNDEFINED
    return float(value)


class FunctionalAggregator:
    """Reduces an LLDSeries to the 88 eGeMAPSv02 functionals

    Attributes:
        params: Smoothing window, percentiles and energy floor
    """

    def __init__(self, params: Optional[FunctionalParams] = None):
        self.params = params or FunctionalParams()
        assert len(self.params.percentiles) == 3, "Exactly three percentiles are reported"

    def statistics(self, contour: np.ndarray, times: np.ndarray,
                   functionals: Tuple[str, ...]) -> Dict[str, Optional[float]]:
        """Compute the named functionals of one smoothed, masked contour"""
        present = contour[~np.isnan(contour)]
        out: Dict[str, Optional[float]] = {}
        if present.size == 0:
            return {name: UNDEFINED for name in functionals}

        mean = float(np.mean(present))
        out[AMEAN] = mean
        out[STDDEV_NORM] = (float(np.std(present)) / abs(mean)
                            if abs(mean) > MEAN_EPSILON else UNDEFINED)

        if any(name.startswith("percentile") or name.startswith("pctl") for name in functionals):
            pct = np.percentile(present, self.params.percentiles)
            for q, value in zip(self.params.percentiles, pct):
                out[f"percentile{float(q):.1f}"] = float(value)
            out["pctlrange0-2"] = float(pct[2] - pct[0])

        if any(name.endswith("Slope") for name in functionals):
            rising, falling = monotonic_slopes(contour, times)
            out["meanRisingSlope"] = _mean(rising)
            out["stddevRisingSlope"] = _std(rising)
            out["meanFallingSlope"] = _mean(falling)
            out["stddevFallingSlope"] = _std(falling)

        return {name: _finite_or_undefined(out.get(name, UNDEFINED)) for name in functionals}

    def temporal(self, series: LLDSeries, duration: float) -> Dict[str, Optional[float]]:
        """Rate and segment-length features plus the equivalent sound level"""
        window = self.params.smoothing_window
        loudness = smooth(series["loudness"], window)
        peaks, _ = find_peaks(loudness)

        voiced_segments = voiced_runs(series.voiced)
        unvoiced_segments = voiced_runs(~series.voiced)
        voiced_lengths = [(end - start) * series.hop_seconds for start, end in voiced_segments]
        unvoiced_lengths = [(end - start) * series.hop_seconds for start, end in unvoiced_segments]

        level = equivalent_sound_level(series["rmsEnergy"], self.params.energy_floor)

        return {
            "loudnessPeaksPerSec": peaks.size / duration,
            "VoicedSegmentsPerSec": len(voiced_segments) / duration,
            "MeanVoicedSegmentLengthSec": _mean(voiced_lengths),
            "StddevVoicedSegmentLengthSec": _std(voiced_lengths),
            "MeanUnvoicedSegmentLength": _mean(unvoiced_lengths),
            "StddevUnvoicedSegmentLength": _std(unvoiced_lengths),
            "equivalentSoundLevel_dBp": level,
        }

    def aggregate(self, series: LLDSeries, duration: float) -> FeatureVector:
        """Build the complete feature vector

        Args:
            series: LLD series of one signal
            duration: Signal duration in seconds (denominator of the rates)

        Returns:
            FeatureVector with all 88 names; empty scopes yield UNDEFINED
        """
        assert duration > 0, "Duration must be positive"
        window = self.params.smoothing_window
        values: Dict[str, Optional[float]] = {}

        for group in FUNCTIONAL_GROUPS:
            contour = smooth(restrict(series[group.lld], series.voiced, group.scope), window)
            stats = self.statistics(contour, series.frame_times, group.functionals)
            for functional in group.functionals:
                values[f"{group.smoothed_name}_{functional}"] = stats[functional]

        for name, value in self.temporal(series, duration).items():
            values[name] = _finite_or_undefined(value)

        features = FeatureVector(values)
        logger.debug(
            f"Aggregated {series.frame_count} frames into {len(features)} features "
            f"({len(features.undefined_names())} undefined)"
        )
        return features
