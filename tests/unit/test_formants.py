"""Unit tests for LPC formant estimation"""

import numpy as np
import pytest
from scipy.linalg import solve_toeplitz
from scipy.signal import lfilter

from egemaps_engine.analysis.formants import (
    autocorrelation,
    formants_from_lpc,
    levinson_durbin,
    lpc_coefficients,
    track_formants,
)
from egemaps_engine.analysis.windowing import hamming_window
from egemaps_engine.errors import ExtractionError


SR = 11000


def resonator_polynomial(freqs, bandwidths, sample_rate=SR):
    """Prediction-error polynomial with one conjugate pole pair per resonance"""
    roots = []
    for f, bw in zip(freqs, bandwidths):
        radius = np.exp(-np.pi * bw / sample_rate)
        angle = 2.0 * np.pi * f / sample_rate
        roots += [radius * np.exp(1j * angle), radius * np.exp(-1j * angle)]
    return np.real(np.poly(roots))


class TestLevinson:

    def test_matches_toeplitz_solution(self):
        rng = np.random.RandomState(7)
        x = rng.normal(size=400) * hamming_window(400)
        r = autocorrelation(x, 11)
        a, err = levinson_durbin(r, 11)
        expected = -solve_toeplitz(r[:11], r[1:12])
        assert a[0] == 1.0
        assert np.allclose(a[1:], expected, atol=1e-8)
        assert err > 0.0

    def test_zero_energy_raises(self):
        with pytest.raises(ExtractionError):
            levinson_durbin(np.zeros(12), 11)

    def test_silent_frame_has_no_coefficients(self):
        assert lpc_coefficients(np.zeros(220), 11) is None


class TestRoots:

    def test_known_resonances_recovered(self):
        a = resonator_polynomial([700.0, 1200.0, 2600.0], [80.0, 100.0, 150.0])
        freqs, bandwidths = formants_from_lpc(a, SR, 3, 50.0, 5500.0)
        assert np.allclose(freqs, [700.0, 1200.0, 2600.0], atol=1e-3)
        assert np.allclose(bandwidths, [80.0, 100.0, 150.0], atol=1e-3)

    def test_out_of_range_roots_dropped(self):
        a = resonator_polynomial([30.0, 900.0], [50.0, 90.0])
        freqs, bandwidths = formants_from_lpc(a, SR, 3, 50.0, 5500.0)
        assert freqs[0] == pytest.approx(900.0, abs=1e-3)
        assert np.all(np.isnan(freqs[1:]))
        assert np.all(np.isnan(bandwidths[1:]))

    def test_formants_sorted_ascending(self):
        a = resonator_polynomial([2500.0, 500.0, 1500.0], [100.0, 100.0, 100.0])
        freqs, _ = formants_from_lpc(a, SR, 3, 50.0, 5500.0)
        assert np.all(np.diff(freqs) > 0)


class TestTracking:

    def test_resonant_signal(self):
        a = resonator_polynomial([500.0, 1500.0, 2500.0], [60.0, 80.0, 100.0])
        excitation = np.zeros(SR)
        excitation[::110] = 1.0
        signal = lfilter([1.0], a, excitation)
        times = np.array([0.25, 0.5, 0.75])
        window = hamming_window(220)
        freqs, bandwidths = track_formants(signal, SR, times, np.ones(3, dtype=bool),
                                           window, 6, 3, 50.0, 5500.0)
        assert freqs.shape == (3, 3)
        assert np.allclose(freqs[:, 0], 500.0, rtol=0.1)
        assert np.allclose(freqs[:, 1], 1500.0, rtol=0.1)

    def test_unmasked_frames_are_missing(self):
        signal = np.random.RandomState(3).normal(size=SR)
        times = np.array([0.25, 0.5])
        freqs, bandwidths = track_formants(signal, SR, times, np.array([False, False]),
                                           hamming_window(220), 11, 3, 50.0, 5500.0)
        assert np.all(np.isnan(freqs))
        assert np.all(np.isnan(bandwidths))
