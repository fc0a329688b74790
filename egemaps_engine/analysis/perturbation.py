"""Cycle-to-cycle perturbation: local jitter and shimmer"""

import logging
from typing import Tuple

import numpy as np


logger = logging.getLogger(__name__)


def _refine_peak(x: np.ndarray, index: int) -> Tuple[float, float]:
    """Parabolic refinement of a waveform maximum -> (position, amplitude)"""
    if index <= 0 or index >= x.size - 1:
        return float(index), float(x[index])
    a, b, c = x[index - 1], x[index], x[index + 1]
    curvature = a - 2.0 * b + c
    if curvature >= 0.0:
        return float(index), float(b)
    delta = float(np.clip(0.5 * (a - c) / curvature, -0.5, 0.5))
    return index + delta, float(b - 0.25 * (a - c) * delta)


def find_period_peaks(x: np.ndarray, sample_rate: int, f0_hz: float,
                      search_range_rel: float = 0.1) -> Tuple[np.ndarray, np.ndarray]:
    """Track one waveform maximum per pitch period

    The first peak is the maximum of the first period; every following peak
    is searched within +/- ``search_range_rel`` of one period after the
    previous one.

    Returns:
        (peak positions in samples, peak amplitudes)
    """
    period = sample_rate / f0_hz
    first_end = int(np.ceil(period))
    if first_end >= x.size:
        return np.empty(0), np.empty(0)

    indices = [int(np.argmax(x[:first_end]))]
    while True:
        expected = indices[-1] + period
        lo = max(int(np.floor(expected - search_range_rel * period)), indices[-1] + 1)
        hi = int(np.ceil(expected + search_range_rel * period)) + 1
        if hi > x.size:
            break
        indices.append(lo + int(np.argmax(x[lo:hi])))

    refined = [_refine_peak(x, i) for i in indices]
    positions = np.array([p for p, _ in refined])
    amplitudes = np.array([a for _, a in refined])
    return positions, amplitudes


def local_perturbation(x: np.ndarray, sample_rate: int, f0_hz: float,
                       search_range_rel: float = 0.1,
                       min_periods: int = 2) -> Tuple[float, float]:
    """Local jitter and shimmer of one voiced frame

    Args:
        x: Unpadded waveform around the frame
        sample_rate: Sample rate of ``x``
        f0_hz: Frame F0 from the pitch tracker
        search_range_rel: Peak search half-width relative to the period
        min_periods: Fewest complete periods needed for a value

    Returns:
        (jitter as a fraction of the mean period, shimmer in dB); NaN for
        values that cannot be measured
    """
    if not np.isfinite(f0_hz) or f0_hz <= 0.0:
        return np.nan, np.nan

    positions, amplitudes = find_period_peaks(x, sample_rate, f0_hz, search_range_rel)
    periods = np.diff(positions)
    if periods.size < max(2, min_periods):
        return np.nan, np.nan

    jitter = float(np.mean(np.abs(np.diff(periods))) / np.mean(periods))

    if np.all(amplitudes > 0.0):
        shimmer = float(np.mean(np.abs(20.0 * np.log10(amplitudes[1:] / amplitudes[:-1]))))
    else:
        shimmer = np.nan
    return jitter, shimmer
