"""Unit tests for the autocorrelation pitch tracker"""

import numpy as np
import pytest

from egemaps_engine.analysis.pitch import (
    find_candidates,
    hnr_db,
    hz_to_semitones,
    normalized_autocorrelation,
    track_pitch,
    viterbi_path,
    voiced_runs,
)
from egemaps_engine.analysis.tables import build_tables
from egemaps_engine.config.recipe import load_recipe


@pytest.fixture(scope="module")
def recipe():
    return load_recipe()


@pytest.fixture(scope="module")
def tables(recipe):
    return build_tables(recipe, 16000)


def context_frames(signal: np.ndarray, size: int = 960, hop: int = 160) -> np.ndarray:
    starts = range(0, signal.size - size + 1, hop)
    return np.stack([signal[s:s + size] for s in starts])


def sine(freq, duration=0.5, sample_rate=16000, amplitude=0.5):
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return amplitude * np.sin(2.0 * np.pi * freq * t)


class TestAutocorrelation:

    def test_lag_zero_is_one(self, tables):
        frames = context_frames(sine(200.0))
        r = normalized_autocorrelation(frames, tables)
        assert np.allclose(r[:, 0], 1.0)

    def test_silent_frames_are_zero(self, tables):
        r = normalized_autocorrelation(np.zeros((3, 960)), tables)
        assert np.all(r == 0.0)

    def test_periodic_signal_peaks_at_period(self, tables):
        frames = context_frames(sine(200.0))
        r = normalized_autocorrelation(frames, tables)
        # 200 Hz at 16 kHz -> 80 samples
        assert r[0, 80] > 0.95
        assert r[0, 40] < 0.0


class TestCandidates:

    def test_strongest_candidate_is_a_period_multiple(self, tables):
        frames = context_frames(sine(200.0))
        r = normalized_autocorrelation(frames, tables)
        freqs, strengths = find_candidates(r, 16000, 55.0, 1000.0, 6)
        assert freqs.shape == (frames.shape[0], 6)
        valid = freqs[0][~np.isnan(freqs[0])]
        assert np.any(np.abs(valid - 200.0) < 2.0)
        assert np.nanmax(strengths[0]) <= 1.0

    def test_candidates_stay_in_range(self, tables):
        frames = context_frames(sine(150.0))
        r = normalized_autocorrelation(frames, tables)
        freqs, _ = find_candidates(r, 16000, 100.0, 400.0, 6)
        valid = freqs[~np.isnan(freqs)]
        assert valid.size > 0
        assert np.all((valid >= 100.0) & (valid <= 400.0))

    @pytest.mark.parametrize("freq", [440.0, 600.0, 800.0])
    def test_true_period_ranks_first(self, tables, recipe, freq):
        frames = context_frames(sine(freq))
        r = normalized_autocorrelation(frames, tables)
        freqs, strengths = find_candidates(r, 16000, 55.0, 1000.0, 6, recipe.pitch.octave_cost)
        assert np.allclose(freqs[:, 0], freq, rtol=0.01)
        assert np.all(strengths[~np.isnan(strengths)] <= 1.0)

    def test_values_above_one_are_reflected(self):
        r = np.zeros((1, 400))
        r[0, 0] = 1.0
        r[0, 99:102] = [1.0, 1.25, 1.0]
        freqs, strengths = find_candidates(r, 16000, 55.0, 1000.0, 6)
        assert freqs[0, 0] == pytest.approx(160.0)
        assert strengths[0, 0] == pytest.approx(0.8)

    def test_no_candidates_in_silence(self, tables):
        r = normalized_autocorrelation(np.zeros((2, 960)), tables)
        freqs, strengths = find_candidates(r, 16000, 55.0, 1000.0, 6)
        assert np.all(np.isnan(freqs))
        assert np.all(np.isnan(strengths))


class TestViterbi:

    def test_prefers_consistent_higher_octave(self):
        freqs = np.array([[200.0, 100.0], [100.0, 200.0], [200.0, 100.0]])
        strengths = np.full((3, 2), 0.9)
        path = viterbi_path(freqs, strengths, 55.0, 0.01, 0.35)
        chosen = freqs[np.arange(3), path]
        assert np.all(chosen == 200.0)

    def test_avoids_single_frame_octave_jump(self):
        # Middle frame slightly favours the octave above; the jump cost wins
        freqs = np.array([[150.0, np.nan], [300.0, 150.0], [150.0, np.nan]])
        strengths = np.array([[0.9, np.nan], [0.95, 0.9], [0.9, np.nan]])
        path = viterbi_path(freqs, strengths, 55.0, 0.01, 0.35)
        chosen = freqs[np.arange(3), path]
        assert np.all(chosen == 150.0)

    def test_single_frame(self):
        freqs = np.array([[120.0, 240.0]])
        strengths = np.array([[0.95, 0.7]])
        path = viterbi_path(freqs, strengths, 55.0, 0.01, 0.35)
        assert path.tolist() == [0]


class TestTrackPitch:

    def test_sine_is_voiced_at_its_frequency(self, tables, recipe):
        frames = context_frames(sine(200.0))
        track = track_pitch(frames, tables, recipe.pitch)
        assert np.all(track.voiced)
        assert np.allclose(track.f0_hz, 200.0, rtol=0.01)
        assert np.all(track.voicing_probability >= recipe.pitch.voicing_cutoff)

    @pytest.mark.parametrize("freq", [100.0, 150.0, 220.0, 300.0, 440.0, 600.0, 800.0])
    def test_tracks_sines_across_range(self, tables, recipe, freq):
        track = track_pitch(context_frames(sine(freq)), tables, recipe.pitch)
        assert np.all(track.voiced)
        assert np.allclose(track.f0_hz, freq, rtol=0.01)

    def test_silence_is_unvoiced(self, tables, recipe):
        track = track_pitch(np.zeros((5, 960)), tables, recipe.pitch)
        assert not np.any(track.voiced)
        assert np.all(np.isnan(track.f0_hz))
        assert np.all(track.voicing_probability == 0.0)

    def test_noise_is_mostly_unvoiced(self, tables, recipe):
        rng = np.random.RandomState(1234)
        frames = context_frames(rng.normal(0.0, 0.3, 8000))
        track = track_pitch(frames, tables, recipe.pitch)
        assert np.mean(track.voiced) < 0.1

    def test_pitch_range_override(self, tables, recipe):
        # 200 Hz is outside [80, 150]; the subharmonic at 100 Hz is found
        frames = context_frames(sine(200.0))
        track = track_pitch(frames, tables, recipe.with_pitch_range(80.0, 150.0).pitch)
        voiced_f0 = track.f0_hz[track.voiced]
        assert voiced_f0.size > 0
        assert np.allclose(voiced_f0, 100.0, rtol=0.01)


class TestConversions:

    def test_semitones(self):
        st = hz_to_semitones(np.array([27.5, 55.0, 110.0, np.nan]), 27.5)
        assert np.allclose(st[:3], [0.0, 12.0, 24.0])
        assert np.isnan(st[3])

    def test_hnr(self):
        assert hnr_db(np.array([0.5]), 1e-6)[0] == pytest.approx(0.0)
        assert hnr_db(np.array([0.9]), 1e-6)[0] == pytest.approx(10 * np.log10(9.0))
        assert np.isfinite(hnr_db(np.array([1.0]), 1e-6)[0])
        assert np.isnan(hnr_db(np.array([np.nan]), 1e-6)[0])

    def test_voiced_runs(self):
        mask = np.array([False, True, True, False, True, False, False, True])
        assert voiced_runs(mask) == [(1, 3), (4, 5), (7, 8)]
        assert voiced_runs(np.zeros(3, dtype=bool)) == []
