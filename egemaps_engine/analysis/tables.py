"""Precomputed analysis tables

Windows, window autocorrelation, Bark and mel filterbanks and band masks
depend only on the recipe and the analysis sample rate. They are built once
by ``EGeMAPSEngine.initialize()`` and shared read-only by every call.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import librosa

from egemaps_engine.analysis.windowing import gaussian_window, hamming_window, ms_to_samples
from egemaps_engine.config.recipe import Recipe


logger = logging.getLogger(__name__)


def next_pow2(n: int) -> int:
    return 1 << (int(n) - 1).bit_length()


def hz_to_bark(f):
    """Hermansky's Bark warping, 6 * asinh(f / 600)"""
    return 6.0 * np.arcsinh(np.asarray(f, dtype=np.float64) / 600.0)


def bark_to_hz(b):
    return 600.0 * np.sinh(np.asarray(b, dtype=np.float64) / 6.0)


def bark_filterbank(n_bands: int, n_fft: int, sample_rate: int,
                    fmin: float, fmax: float) -> Tuple[np.ndarray, np.ndarray]:
    """Triangular filters equally spaced on the Bark scale

    Returns:
        (filterbank of shape (n_bands, n_fft // 2 + 1), band centre frequencies in Hz)
    """
    fmax = min(fmax, sample_rate / 2.0)
    edges = np.linspace(hz_to_bark(fmin), hz_to_bark(fmax), n_bands + 2)
    bin_bark = hz_to_bark(np.fft.rfftfreq(n_fft, d=1.0 / sample_rate))

    fb = np.zeros((n_bands, bin_bark.size))
    for i in range(n_bands):
        lo, mid, hi = edges[i], edges[i + 1], edges[i + 2]
        rising = (bin_bark - lo) / (mid - lo)
        falling = (hi - bin_bark) / (hi - mid)
        fb[i] = np.clip(np.minimum(rising, falling), 0.0, None)
    return fb, bark_to_hz(edges[1:-1])


def equal_loudness_weights(freqs: np.ndarray) -> np.ndarray:
    """Equal-loudness pre-emphasis of PLP analysis (Hermansky 1990)"""
    w2 = (2.0 * np.pi * np.asarray(freqs, dtype=np.float64)) ** 2
    return ((w2 + 56.8e6) * w2 ** 2) / ((w2 + 6.3e6) ** 2 * (w2 + 0.38e9))


def band_mask(freqs: np.ndarray, band: Tuple[float, float]) -> np.ndarray:
    lo, hi = band
    return (freqs >= lo) & (freqs <= hi)


@dataclass(frozen=True)
class AnalysisTables:
    """Read-only tables for one (recipe, sample rate) pair"""
    sample_rate: int
    # 20 ms spectral frames
    frame_size: int
    hop_size: int
    spectral_nfft: int
    spectral_window: np.ndarray
    spectral_freqs: np.ndarray
    bark_fb: np.ndarray
    loudness_weights: np.ndarray
    mel_fb: np.ndarray
    alpha_low_mask: np.ndarray
    alpha_high_mask: np.ndarray
    hammarberg_low_mask: np.ndarray
    hammarberg_high_mask: np.ndarray
    slope_masks: Tuple[np.ndarray, ...]
    # 60 ms pitch / voice quality frames
    pitch_size: int
    pitch_window: np.ndarray
    pitch_nfft: int
    window_acf: np.ndarray
    harmonic_nfft: int
    harmonic_freqs: np.ndarray
    # LPC formant frames
    formant_rate: int
    formant_size: int
    formant_window: np.ndarray


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


def build_tables(recipe: Recipe, sample_rate: int) -> AnalysisTables:
    """Build every table the LLD extractor needs"""
    spectral = recipe.spectral

    frame_size = ms_to_samples(recipe.frame.window_ms, sample_rate)
    hop_size = max(1, ms_to_samples(recipe.frame.hop_ms, sample_rate))
    spectral_nfft = next_pow2(frame_size)
    spectral_freqs = np.fft.rfftfreq(spectral_nfft, d=1.0 / sample_rate)

    bark_fb, bark_centers = bark_filterbank(
        spectral.loudness_bands, spectral_nfft, sample_rate,
        spectral.loudness_fmin, spectral.loudness_fmax,
    )
    mel_fb = librosa.filters.mel(
        sr=sample_rate,
        n_fft=spectral_nfft,
        n_mels=spectral.mfcc_bands,
        fmin=spectral.mfcc_fmin,
        fmax=min(spectral.mfcc_fmax, sample_rate / 2.0),
        htk=True,
        norm=None,
    )

    pitch_size = ms_to_samples(recipe.pitch.window_ms, sample_rate)
    pitch_window = gaussian_window(pitch_size, recipe.pitch.gaussian_sigma)
    pitch_nfft = next_pow2(2 * pitch_size)
    window_spec = np.fft.rfft(pitch_window, n=pitch_nfft)
    window_acf = np.fft.irfft(np.abs(window_spec) ** 2, n=pitch_nfft)[:pitch_size]
    window_acf = window_acf / window_acf[0]

    harmonic_nfft = max(4096, next_pow2(pitch_size))

    formant_rate = int(recipe.formants.sample_rate)
    formant_size = ms_to_samples(recipe.formants.window_ms, formant_rate)

    tables = AnalysisTables(
        sample_rate=sample_rate,
        frame_size=frame_size,
        hop_size=hop_size,
        spectral_nfft=spectral_nfft,
        spectral_window=_readonly(hamming_window(frame_size)),
        spectral_freqs=_readonly(spectral_freqs),
        bark_fb=_readonly(bark_fb),
        loudness_weights=_readonly(equal_loudness_weights(bark_centers)),
        mel_fb=_readonly(np.asarray(mel_fb, dtype=np.float64)),
        alpha_low_mask=_readonly(band_mask(spectral_freqs, spectral.alpha_low)),
        alpha_high_mask=_readonly(band_mask(spectral_freqs, spectral.alpha_high)),
        hammarberg_low_mask=_readonly(band_mask(spectral_freqs, spectral.hammarberg_low)),
        hammarberg_high_mask=_readonly(band_mask(spectral_freqs, spectral.hammarberg_high)),
        slope_masks=tuple(_readonly(band_mask(spectral_freqs, band)) for band in spectral.slope_bands),
        pitch_size=pitch_size,
        pitch_window=_readonly(pitch_window),
        pitch_nfft=pitch_nfft,
        window_acf=_readonly(window_acf),
        harmonic_nfft=harmonic_nfft,
        harmonic_freqs=_readonly(np.fft.rfftfreq(harmonic_nfft, d=1.0 / sample_rate)),
        formant_rate=formant_rate,
        formant_size=formant_size,
        formant_window=_readonly(hamming_window(formant_size)),
    )

    for name, mask in (('alpha_low', tables.alpha_low_mask), ('alpha_high', tables.alpha_high_mask),
                       ('hammarberg_low', tables.hammarberg_low_mask),
                       ('hammarberg_high', tables.hammarberg_high_mask)):
        if not mask.any():
            raise ValueError(f"Band {name} contains no FFT bins at {sample_rate} Hz")
    for mask in tables.slope_masks:
        if np.count_nonzero(mask) < 2:
            raise ValueError(f"Slope band has fewer than two FFT bins at {sample_rate} Hz")

    logger.debug(
        f"Built analysis tables @ {sample_rate} Hz: frame={frame_size}, hop={hop_size}, "
        f"pitch={pitch_size}, formant={formant_size}@{formant_rate} Hz"
    )
    return tables
