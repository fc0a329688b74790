"""Spectral and energy descriptors on 20 ms frames

All functions take frame matrices (one frame per row) and return one value
per frame.
"""

import logging
from typing import Sequence, Tuple

import numpy as np
import librosa


logger = logging.getLogger(__name__)


def power_spectrum(frames: np.ndarray, window: np.ndarray, n_fft: int) -> np.ndarray:
    """|FFT|^2 of windowed frames, shape (n, n_fft // 2 + 1)"""
    spec = np.fft.rfft(frames * window, n=n_fft, axis=1)
    return np.abs(spec) ** 2


def loudness(power: np.ndarray, bark_fb: np.ndarray, weights: np.ndarray,
             compression: float = 0.33) -> np.ndarray:
    """Auditory loudness: Bark bands, equal-loudness weighting, power compression

    Args:
        power: Power spectra (n, bins)
        bark_fb: Bark filterbank (bands, bins)
        weights: Equal-loudness weight per band
        compression: Intensity-to-loudness exponent

    Returns:
        Summed specific loudness per frame
    """
    bands = power @ bark_fb.T
    return np.sum((bands * weights) ** compression, axis=1)


def _db_ratio(num: np.ndarray, den: np.ndarray, floor: float) -> np.ndarray:
    return 10.0 * np.log10(np.maximum(num, floor) / np.maximum(den, floor))


def alpha_ratio(power: np.ndarray, low_mask: np.ndarray, high_mask: np.ndarray,
                floor: float = 1e-12) -> np.ndarray:
    """Summed low-band energy over summed high-band energy, in dB"""
    return _db_ratio(power[:, low_mask].sum(axis=1), power[:, high_mask].sum(axis=1), floor)


def hammarberg_index(power: np.ndarray, low_mask: np.ndarray, high_mask: np.ndarray,
                     floor: float = 1e-12) -> np.ndarray:
    """Strongest low-band peak over strongest high-band peak, in dB"""
    return _db_ratio(power[:, low_mask].max(axis=1), power[:, high_mask].max(axis=1), floor)


def spectral_slope(power: np.ndarray, freqs: np.ndarray, mask: np.ndarray,
                   floor: float = 1e-12) -> np.ndarray:
    """Least-squares slope of the dB power spectrum over a band, in dB/Hz"""
    x = freqs[mask]
    x = x - x.mean()
    y = 10.0 * np.log10(np.maximum(power[:, mask], floor))
    y = y - y.mean(axis=1, keepdims=True)
    return (y @ x) / np.dot(x, x)


def spectral_flux(magnitude: np.ndarray) -> np.ndarray:
    """Squared difference of consecutive sum-normalized magnitude spectra

    The first frame, and any frame following or being silence, yields 0.
    """
    totals = magnitude.sum(axis=1, keepdims=True)
    normalized = np.zeros_like(magnitude)
    np.divide(magnitude, totals, out=normalized, where=totals > 0.0)
    flux = np.zeros(magnitude.shape[0])
    if magnitude.shape[0] > 1:
        diff = normalized[1:] - normalized[:-1]
        flux[1:] = np.sum(diff ** 2, axis=1)
        silent = totals[:, 0] <= 0.0
        flux[1:][silent[1:] | silent[:-1]] = 0.0
    return flux


def mfcc(power: np.ndarray, mel_fb: np.ndarray, count: int = 4, lifter: int = 22,
         floor: float = 1e-12) -> np.ndarray:
    """MFCC 1..count of each frame (coefficient 0 is dropped)

    Returns:
        (n, count) matrix
    """
    mel = np.maximum(power @ mel_fb.T, floor)
    coeffs = librosa.feature.mfcc(
        S=np.log(mel).T,
        n_mfcc=count + 1,
        dct_type=2,
        norm='ortho',
        lifter=lifter,
    )
    return coeffs[1:count + 1].T


def rms_energy(frames: np.ndarray) -> np.ndarray:
    return np.sqrt(np.mean(frames ** 2, axis=1))


def equivalent_sound_level(rms: np.ndarray, floor: float = 1e-10) -> float:
    """Equivalent sound level in dB (power average of frame RMS)"""
    if rms.size == 0:
        return float(10.0 * np.log10(floor))
    return float(10.0 * np.log10(max(float(np.mean(rms ** 2)), floor)))


def harmonic_amplitudes(magnitude: np.ndarray, freqs: np.ndarray, f0_hz: float,
                        harmonics: Sequence[int], search_rel: float = 0.25) -> np.ndarray:
    """Peak magnitude around each k * F0

    Args:
        magnitude: Magnitude spectrum of one frame
        freqs: Bin frequencies of ``magnitude``
        f0_hz: Fundamental frequency
        harmonics: Harmonic numbers (1 = fundamental)
        search_rel: Search half-width as a fraction of F0

    Returns:
        Amplitude per harmonic; NaN when F0 is missing or the band lies
        beyond the spectrum
    """
    out = np.full(len(harmonics), np.nan)
    if not np.isfinite(f0_hz) or f0_hz <= 0.0:
        return out
    half_width = search_rel * f0_hz
    nyquist = freqs[-1]
    for i, k in enumerate(harmonics):
        target = k * f0_hz
        if target + half_width > nyquist:
            continue
        band = (freqs >= target - half_width) & (freqs <= target + half_width)
        if band.any():
            out[i] = magnitude[band].max()
    return out


def nearest_harmonic(formant_hz: float, f0_hz: float) -> int:
    """Harmonic number closest to a formant frequency (at least 1)"""
    return max(1, int(round(formant_hz / f0_hz)))


def log_ratio_db(num: np.ndarray, den: np.ndarray, floor: float = 1e-10) -> np.ndarray:
    """20 * log10(num / den) with amplitude flooring; NaN inputs stay NaN"""
    with np.errstate(invalid='ignore'):
        return 20.0 * np.log10(np.maximum(num, floor) / np.maximum(den, floor))


def band_slopes(power: np.ndarray, freqs: np.ndarray, masks: Sequence[np.ndarray],
                floor: float = 1e-12) -> Tuple[np.ndarray, ...]:
    return tuple(spectral_slope(power, freqs, mask, floor) for mask in masks)
