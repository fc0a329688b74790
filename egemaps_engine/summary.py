"""Human-readable voice summary derived from a FeatureVector"""

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from egemaps_engine.models.features import FeatureVector


logger = logging.getLogger(__name__)

SEMITONE_REFERENCE_HZ = 27.5
SPEED_OF_SOUND_CM_S = 35000.0

# Reference adult male F0 distribution
REFERENCE_PITCH_MEAN_HZ = 120.0
REFERENCE_PITCH_STD_HZ = 20.0

PITCH_CATEGORIES = (
    (100.0, "very_deep"),
    (130.0, "deep"),
    (165.0, "average"),
)

# Upper bounds, Hz
PITCH_COMPARISONS = (
    (85.0, "Deeper than Morgan Freeman"),
    (100.0, "Similar to Morgan Freeman"),
    (115.0, "Deeper than average"),
    (130.0, "Slightly below average"),
)
DEFAULT_PITCH_COMPARISON = "Average male range"

CLINICAL_RANGES = {
    # Upper bounds, percent
    "jitter": {"excellent": 1.0, "good": 2.0, "normal": 3.0},
    # Upper bounds, dB
    "shimmer": {"excellent": 1.0, "good": 2.0, "normal": 3.0},
    # Lower bounds, dB
    "hnr": {"excellent": 18.0, "good": 12.0, "normal": 7.0},
}


@dataclass
class VoiceSummary:
    """Summary of the voice in one recording

    Every field is None when the underlying functional is undefined (for
    example when no frame was voiced).
    """
    pitch_hz: Optional[float] = None
    pitch_category: Optional[str] = None
    pitch_percentile: Optional[int] = None
    pitch_comparison: Optional[str] = None
    jitter_percent: Optional[float] = None
    jitter_status: Optional[str] = None
    shimmer_db: Optional[float] = None
    shimmer_status: Optional[str] = None
    hnr_db: Optional[float] = None
    hnr_status: Optional[str] = None
    f1_hz: Optional[float] = None
    f2_hz: Optional[float] = None
    f3_hz: Optional[float] = None
    vocal_tract_length_cm: Optional[float] = None
    alpha_ratio_db: Optional[float] = None
    hammarberg_index_db: Optional[float] = None
    loudness: Optional[float] = None
    h1_h2_db: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def semitones_to_hz(semitones: float, reference_hz: float = SEMITONE_REFERENCE_HZ) -> float:
    return reference_hz * 2.0 ** (semitones / 12.0)


def categorize_pitch(pitch_hz: float) -> str:
    for upper, category in PITCH_CATEGORIES:
        if pitch_hz < upper:
            return category
    return "higher"


def compare_pitch(pitch_hz: float) -> str:
    """Plain-language comparison against the reference male range"""
    for upper, label in PITCH_COMPARISONS:
        if pitch_hz < upper:
            return label
    return DEFAULT_PITCH_COMPARISON


def pitch_percentile(pitch_hz: float,
                     mean: float = REFERENCE_PITCH_MEAN_HZ,
                     std: float = REFERENCE_PITCH_STD_HZ) -> int:
    """Share of the reference distribution with a higher pitch, in percent

    Uses the logistic approximation of the normal CDF.
    """
    z = (pitch_hz - mean) / std
    return int(round((1.0 - 1.0 / (1.0 + math.exp(-1.7 * z))) * 100.0))


def _status_upper(value: float, ranges: Dict[str, float]) -> str:
    for status in ("excellent", "good", "normal"):
        if value <= ranges[status]:
            return status
    return "high"


def _status_lower(value: float, ranges: Dict[str, float]) -> str:
    for status in ("excellent", "good", "normal"):
        if value >= ranges[status]:
            return status
    return "low"


def jitter_status(jitter_percent: float) -> str:
    return _status_upper(jitter_percent, CLINICAL_RANGES["jitter"])


def shimmer_status(shimmer_db: float) -> str:
    return _status_upper(shimmer_db, CLINICAL_RANGES["shimmer"])


def hnr_status(hnr_db: float) -> str:
    return _status_lower(hnr_db, CLINICAL_RANGES["hnr"])


def vocal_tract_length(f1_hz: float, f3_hz: float, c: float = SPEED_OF_SOUND_CM_S) -> Optional[float]:
    """Vocal tract length in cm from F1 and the mean formant spacing

    Averages the quarter-wavelength estimate c / (4 * F1) and the
    dispersion estimate c / (2 * (F3 - F1) / 2).
    """
    spacing = (f3_hz - f1_hz) / 2.0
    if f1_hz <= 0.0 or spacing <= 0.0:
        return None
    return (c / (4.0 * f1_hz) + c / (2.0 * spacing)) / 2.0


def summarize(features: FeatureVector) -> VoiceSummary:
    """Derive a VoiceSummary from the 88 functionals

    Args:
        features: Feature vector returned by EGeMAPSEngine.analyze()

    Returns:
        VoiceSummary; fields whose inputs are undefined stay None
    """
    summary = VoiceSummary()

    semitones = features["F0semitoneFrom27.5Hz_sma3nz_amean"]
    if semitones is not None:
        summary.pitch_hz = semitones_to_hz(semitones)
        summary.pitch_category = categorize_pitch(summary.pitch_hz)
        summary.pitch_percentile = pitch_percentile(summary.pitch_hz)
        summary.pitch_comparison = compare_pitch(summary.pitch_hz)

    jitter = features["jitterLocal_sma3nz_amean"]
    if jitter is not None:
        summary.jitter_percent = jitter * 100.0
        summary.jitter_status = jitter_status(summary.jitter_percent)

    shimmer = features["shimmerLocaldB_sma3nz_amean"]
    if shimmer is not None:
        summary.shimmer_db = shimmer
        summary.shimmer_status = shimmer_status(shimmer)

    hnr = features["HNRdBACF_sma3nz_amean"]
    if hnr is not None:
        summary.hnr_db = hnr
        summary.hnr_status = hnr_status(hnr)

    summary.f1_hz = features["F1frequency_sma3nz_amean"]
    summary.f2_hz = features["F2frequency_sma3nz_amean"]
    summary.f3_hz = features["F3frequency_sma3nz_amean"]
    if summary.f1_hz is not None and summary.f3_hz is not None:
        summary.vocal_tract_length_cm = vocal_tract_length(summary.f1_hz, summary.f3_hz)

    summary.alpha_ratio_db = features["alphaRatioV_sma3nz_amean"]
    summary.hammarberg_index_db = features["hammarbergIndexV_sma3nz_amean"]
    summary.loudness = features["loudness_sma3_amean"]
    summary.h1_h2_db = features["logRelF0-H1-H2_sma3nz_amean"]

    logger.debug(f"Voice summary: {summary}")
    return summary


@dataclass
class VoiceComparison:
    """Change between a baseline and a current VoiceSummary

    A lower pitch and a higher HNR count as improvements. Changes are None
    when either side lacks the value.
    """
    pitch_change_hz: Optional[float] = None
    pitch_improved: bool = False
    hnr_change_db: Optional[float] = None
    quality_improved: bool = False
    jitter_change_percent: Optional[float] = None
    shimmer_change_db: Optional[float] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _change(baseline: Optional[float], current: Optional[float]) -> Optional[float]:
    if baseline is None or current is None:
        return None
    return current - baseline


def compare_summaries(baseline: VoiceSummary, current: VoiceSummary) -> VoiceComparison:
    """Describe the progress from ``baseline`` to ``current``

    Args:
        baseline: Summary of the earlier recording
        current: Summary of the later recording

    Returns:
        VoiceComparison with per-metric changes and a short message
    """
    comparison = VoiceComparison(
        pitch_change_hz=_change(baseline.pitch_hz, current.pitch_hz),
        hnr_change_db=_change(baseline.hnr_db, current.hnr_db),
        jitter_change_percent=_change(baseline.jitter_percent, current.jitter_percent),
        shimmer_change_db=_change(baseline.shimmer_db, current.shimmer_db),
    )
    comparison.pitch_improved = comparison.pitch_change_hz is not None and comparison.pitch_change_hz < 0.0
    comparison.quality_improved = comparison.hnr_change_db is not None and comparison.hnr_change_db > 0.0

    if comparison.pitch_improved and comparison.quality_improved:
        comparison.message = "Great progress! Your voice is deeper and clearer."
    elif comparison.pitch_improved:
        comparison.message = (
            f"Your pitch dropped {abs(round(comparison.pitch_change_hz))} Hz. "
            f"Keep working on projection."
        )
    elif comparison.quality_improved:
        comparison.message = "Your voice quality improved. Keep training for deeper pitch."
    else:
        comparison.message = "Keep practicing! Consistent training leads to results."

    logger.debug(f"Voice comparison: {comparison}")
    return comparison
