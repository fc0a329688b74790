"""LPC formant estimation (autocorrelation method)"""

import logging
from typing import Optional, Tuple

import numpy as np

from egemaps_engine.errors import ExtractionError


logger = logging.getLogger(__name__)


def autocorrelation(x: np.ndarray, max_lag: int) -> np.ndarray:
    """Biased autocorrelation r[0..max_lag]"""
    full = np.correlate(x, x, mode='full')
    mid = x.size - 1
    r = full[mid:mid + max_lag + 1]
    if r.size < max_lag + 1:
        r = np.pad(r, (0, max_lag + 1 - r.size))
    return r


def levinson_durbin(r: np.ndarray, order: int) -> Tuple[np.ndarray, float]:
    """Solve the normal equations for the prediction-error filter

    Args:
        r: Autocorrelation r[0..order]
        order: Predictor order

    Returns:
        (a, err) with a[0] == 1 and the final prediction error

    Raises:
        ExtractionError: If the recursion becomes unstable
    """
    a = np.zeros(order + 1)
    a[0] = 1.0
    err = float(r[0])
    if err <= 0.0:
        raise ExtractionError("LPC: autocorrelation has no energy")

    for i in range(1, order + 1):
        acc = r[i] + np.dot(a[1:i], r[i - 1:0:-1])
        k = -acc / err
        a[1:i] = a[1:i] + k * a[i - 1:0:-1]
        a[i] = k
        err *= 1.0 - k * k
        if not np.isfinite(err) or err <= 0.0:
            raise ExtractionError(f"LPC recursion unstable at order {i}")
    return a, err


def lpc_coefficients(frame: np.ndarray, order: int,
                     white_noise_correction: float = 1e-6) -> Optional[np.ndarray]:
    """Prediction-error filter of one windowed frame, or None if silent"""
    r = autocorrelation(frame, order)
    if r[0] <= 0.0:
        return None
    r = r.copy()
    r[0] *= 1.0 + white_noise_correction
    a, _ = levinson_durbin(r, order)
    return a


def formants_from_lpc(a: np.ndarray, sample_rate: int, count: int,
                      min_freq: float, max_freq: float) -> Tuple[np.ndarray, np.ndarray]:
    """Formant frequencies and bandwidths from the LPC polynomial roots

    Returns:
        (frequencies, bandwidths) of length ``count`` in Hz, ascending by
        frequency; slots without a root hold NaN

    Raises:
        ExtractionError: If root solving fails
    """
    try:
        roots = np.roots(a)
    except np.linalg.LinAlgError as e:
        raise ExtractionError(f"LPC root solving failed: {e}") from e
    if not np.all(np.isfinite(roots)):
        raise ExtractionError("LPC roots are not finite")

    roots = roots[np.imag(roots) > 0.0]
    freqs = np.angle(roots) * sample_rate / (2.0 * np.pi)
    with np.errstate(divide='ignore'):
        bandwidths = -np.log(np.abs(roots)) * sample_rate / np.pi
    keep = (freqs > min_freq) & (freqs < max_freq) & np.isfinite(bandwidths)
    freqs, bandwidths = freqs[keep], bandwidths[keep]
    order = np.argsort(freqs, kind='stable')[:count]

    out_f = np.full(count, np.nan)
    out_bw = np.full(count, np.nan)
    out_f[:order.size] = freqs[order]
    out_bw[:order.size] = bandwidths[order]
    return out_f, out_bw


def frame_at(signal: np.ndarray, center: int, size: int) -> np.ndarray:
    """Zero-padded slice of ``size`` samples centred on ``center``"""
    lo = center - size // 2
    out = np.zeros(size)
    src_lo, src_hi = max(lo, 0), min(lo + size, signal.size)
    if src_hi > src_lo:
        out[src_lo - lo:src_hi - lo] = signal[src_lo:src_hi]
    return out


def track_formants(signal: np.ndarray, sample_rate: int, times: np.ndarray,
                   mask: np.ndarray, window: np.ndarray, order: int, count: int,
                   min_freq: float, max_freq: float,
                   white_noise_correction: float = 1e-6) -> Tuple[np.ndarray, np.ndarray]:
    """Formants for every masked frame

    Args:
        signal: Pre-emphasized signal at ``sample_rate``
        times: Frame centre times in seconds
        mask: Frames to analyse (voiced frames)
        window: Analysis window, its length is the frame size

    Returns:
        (frequencies, bandwidths), both (n_frames, count) with NaN where
        nothing was measured
    """
    n = len(times)
    freqs = np.full((n, count), np.nan)
    bandwidths = np.full((n, count), np.nan)
    for i in np.flatnonzero(mask):
        center = int(round(times[i] * sample_rate))
        frame = frame_at(signal, center, window.size) * window
        a = lpc_coefficients(frame, order, white_noise_correction)
        if a is None:
            continue
        freqs[i], bandwidths[i] = formants_from_lpc(a, sample_rate, count, min_freq, max_freq)
    return freqs, bandwidths
