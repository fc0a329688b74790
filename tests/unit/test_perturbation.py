"""Unit tests for jitter and shimmer"""

import numpy as np
import pytest

from egemaps_engine.analysis.perturbation import find_period_peaks, local_perturbation


SR = 16000


def sine(freq, n=960, amplitude=0.5):
    return amplitude * np.sin(2.0 * np.pi * freq * np.arange(n) / SR)


class TestPeakTracking:

    def test_one_peak_per_period(self):
        positions, amplitudes = find_period_peaks(sine(200.0), SR, 200.0)
        # 200 Hz -> 80-sample periods, first maximum at sample 20
        assert positions[0] == pytest.approx(20.0, abs=1e-6)
        assert np.allclose(np.diff(positions), 80.0, atol=1e-6)
        assert np.allclose(amplitudes, 0.5, atol=1e-6)

    def test_period_longer_than_signal(self):
        positions, amplitudes = find_period_peaks(sine(200.0, n=60), SR, 200.0)
        assert positions.size == 0


class TestLocalPerturbation:

    def test_stable_tone_has_no_perturbation(self):
        jitter, shimmer = local_perturbation(sine(200.0), SR, 200.0)
        assert jitter == pytest.approx(0.0, abs=1e-6)
        assert shimmer == pytest.approx(0.0, abs=1e-6)

    def test_alternating_amplitude_shimmer(self):
        n = np.arange(960)
        amplitude = np.where((n // 80) % 2 == 0, 1.0, 0.5)
        x = amplitude * np.sin(2.0 * np.pi * 200.0 * n / SR)
        jitter, shimmer = local_perturbation(x, SR, 200.0)
        assert shimmer == pytest.approx(20.0 * np.log10(2.0), abs=1e-3)
        assert jitter == pytest.approx(0.0, abs=1e-6)

    def test_alternating_period_jitter(self):
        # Pulses with periods alternating 78 / 82 samples
        x = np.zeros(960)
        position = 10
        periods = []
        while position < 960:
            x[position] = 1.0
            period = 78 if len(periods) % 2 == 0 else 82
            periods.append(period)
            position += period
        jitter, shimmer = local_perturbation(x, SR, 200.0)
        assert jitter == pytest.approx(4.0 / 80.0, rel=0.05)
        assert shimmer == pytest.approx(0.0, abs=1e-9)

    def test_missing_f0(self):
        jitter, shimmer = local_perturbation(sine(200.0), SR, np.nan)
        assert np.isnan(jitter) and np.isnan(shimmer)

    def test_too_few_periods(self):
        jitter, shimmer = local_perturbation(sine(200.0, n=200), SR, 200.0)
        assert np.isnan(jitter) and np.isnan(shimmer)

    def test_non_positive_peaks_give_no_shimmer(self):
        x = np.full(960, -0.1)
        jitter, shimmer = local_perturbation(x, SR, 200.0)
        assert np.isnan(shimmer)
