"""Autocorrelation pitch tracker

Candidates come from the normalized autocorrelation of Gaussian-windowed
frames, corrected by the autocorrelation of the window itself (Boersma 1993).
A frame is voiced when its strongest candidate reaches the voicing cutoff.
Within every voiced run a Viterbi pass picks the candidate path that
maximizes strength plus a small octave bonus, minus a cost for octave jumps.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from egemaps_engine.analysis.tables import AnalysisTables
from egemaps_engine.config.recipe import PitchParams


logger = logging.getLogger(__name__)

# Frames whose windowed energy is below this (per sample) have no candidates
SILENCE_ENERGY = 1e-14


@dataclass
class PitchTrack:
    """Frame-level pitch analysis result

    Attributes:
        f0_hz: Chosen F0 per frame, NaN when unvoiced
        strength: Autocorrelation strength of the chosen candidate, NaN when unvoiced
        voicing_probability: Strongest candidate per frame in [0, 1]
        voiced: Boolean voicing decision
    """
    f0_hz: np.ndarray
    strength: np.ndarray
    voicing_probability: np.ndarray
    voiced: np.ndarray

    def __post_init__(self):
        n = len(self.voiced)
        assert len(self.f0_hz) == n and len(self.strength) == n, "Pitch arrays must align"
        assert len(self.voicing_probability) == n, "Pitch arrays must align"


def normalized_autocorrelation(frames: np.ndarray, tables: AnalysisTables) -> np.ndarray:
    """Window-corrected normalized autocorrelation of each row

    Args:
        frames: (n, pitch_size) matrix of raw context frames

    Returns:
        (n, pitch_size) matrix with r[:, 0] == 1 for frames with energy and
        all zeros for silent frames
    """
    x = frames - frames.mean(axis=1, keepdims=True)
    x = x * tables.pitch_window
    spec = np.fft.rfft(x, n=tables.pitch_nfft, axis=1)
    ac = np.fft.irfft(np.abs(spec) ** 2, n=tables.pitch_nfft, axis=1)[:, :tables.pitch_size]

    energy = ac[:, 0]
    has_energy = energy > SILENCE_ENERGY * tables.pitch_size
    r = np.zeros_like(ac)
    r[has_energy] = ac[has_energy] / energy[has_energy, None]

    # Lags where the window autocorrelation vanishes carry no information
    usable = tables.window_acf > 1e-3
    r[:, usable] /= tables.window_acf[usable]
    r[:, ~usable] = 0.0
    return r


def find_candidates(r: np.ndarray, sample_rate: int, f0_min: float, f0_max: float,
                    n_candidates: int, octave_cost: float = 0.0) -> Tuple[np.ndarray, np.ndarray]:
    """Pick the strongest autocorrelation peaks in the F0 lag range

    Peaks are refined by parabolic interpolation. Interpolated values above 1,
    which the window correction produces at long lags, are reflected around 1.
    Peaks are ranked by strength plus the octave bonus of the path search.

    Returns:
        (frequencies, strengths), both (n, n_candidates) and ordered by rank;
        unused slots hold NaN
    """
    n_frames, size = r.shape
    freqs = np.full((n_frames, n_candidates), np.nan)
    strengths = np.full((n_frames, n_candidates), np.nan)

    lag_min = max(2, int(np.floor(sample_rate / f0_max)))
    lag_max = min(size - 2, int(np.ceil(sample_rate / f0_min)))
    if n_frames == 0 or lag_max <= lag_min:
        return freqs, strengths

    left = r[:, lag_min - 1:lag_max]
    mid = r[:, lag_min:lag_max + 1]
    right = r[:, lag_min + 1:lag_max + 2]
    is_peak = (mid > left) & (mid >= right) & (mid > 0.0)
    rows, cols = np.nonzero(is_peak)
    if rows.size == 0:
        return freqs, strengths

    a, b, c = left[rows, cols], mid[rows, cols], right[rows, cols]
    curvature = a - 2.0 * b + c
    delta = np.zeros_like(b)
    np.divide(0.5 * (a - c), curvature, out=delta, where=curvature < 0.0)
    delta = np.clip(delta, -0.5, 0.5)
    peak = b - 0.25 * (a - c) * delta
    lag = (cols + lag_min) + delta
    freq = sample_rate / lag
    strength = np.where(peak > 1.0, 1.0 / peak, peak)

    in_range = (freq >= f0_min) & (freq <= f0_max)
    rows, freq, strength = rows[in_range], freq[in_range], strength[in_range]
    score = strength + octave_cost * np.log2(freq / f0_min)

    boundaries = np.searchsorted(rows, np.arange(n_frames + 1))
    for i in range(n_frames):
        lo, hi = boundaries[i], boundaries[i + 1]
        if lo == hi:
            continue
        order = np.argsort(-score[lo:hi], kind='stable')[:n_candidates]
        freqs[i, :order.size] = freq[lo:hi][order]
        strengths[i, :order.size] = strength[lo:hi][order]
    return freqs, strengths


def voiced_runs(voiced: np.ndarray) -> List[Tuple[int, int]]:
    """Half-open [start, end) index ranges of consecutive True values"""
    padded = np.concatenate(([False], np.asarray(voiced, dtype=bool), [False]))
    edges = np.flatnonzero(np.diff(padded.astype(np.int8)))
    return list(zip(edges[0::2].tolist(), edges[1::2].tolist()))


def viterbi_path(freqs: np.ndarray, strengths: np.ndarray, f0_min: float,
                 octave_cost: float, octave_jump_cost: float) -> np.ndarray:
    """Best candidate index per frame for one voiced run

    Args:
        freqs: (n, k) candidate frequencies, NaN for empty slots
        strengths: (n, k) candidate strengths

    Returns:
        Integer array of length n with the chosen candidate column
    """
    valid = ~np.isnan(freqs)
    with np.errstate(invalid='ignore', divide='ignore'):
        local = np.where(valid, strengths + octave_cost * np.log2(freqs / f0_min), -np.inf)
        log_f = np.log2(freqs)

    n, k = freqs.shape
    score = local[0].copy()
    backpointers = np.zeros((n, k), dtype=np.int64)
    columns = np.arange(k)
    for t in range(1, n):
        jump = np.abs(log_f[t][None, :] - log_f[t - 1][:, None])
        jump = np.nan_to_num(jump, nan=0.0, posinf=0.0)
        total = score[:, None] - octave_jump_cost * jump
        best = np.argmax(total, axis=0)
        backpointers[t] = best
        score = total[best, columns] + local[t]

    path = np.zeros(n, dtype=np.int64)
    path[-1] = int(np.argmax(score))
    for t in range(n - 1, 0, -1):
        path[t - 1] = backpointers[t, path[t]]
    return path


def track_pitch(frames: np.ndarray, tables: AnalysisTables, params: PitchParams) -> PitchTrack:
    """Run candidate search, voicing decision and path smoothing

    Args:
        frames: (n, pitch_size) matrix of context frames centred on the frame grid
        tables: Precomputed analysis tables
        params: Pitch parameters (F0 range may be overridden per call)

    Returns:
        PitchTrack aligned with the frame grid
    """
    r = normalized_autocorrelation(frames, tables)
    freqs, strengths = find_candidates(
        r, tables.sample_rate, params.f0_min, params.f0_max, params.n_candidates,
        params.octave_cost,
    )

    n = frames.shape[0]
    probability = np.zeros(n)
    has_candidate = ~np.all(np.isnan(strengths), axis=1)
    probability[has_candidate] = np.nanmax(strengths[has_candidate], axis=1)
    voiced = probability >= params.voicing_cutoff

    f0 = np.full(n, np.nan)
    chosen_strength = np.full(n, np.nan)
    for start, end in voiced_runs(voiced):
        path = viterbi_path(
            freqs[start:end], strengths[start:end],
            params.f0_min, params.octave_cost, params.octave_jump_cost,
        )
        rows = np.arange(start, end)
        f0[start:end] = freqs[rows, path]
        chosen_strength[start:end] = strengths[rows, path]

    logger.debug(f"Pitch: {int(voiced.sum())}/{n} voiced frames")
    return PitchTrack(
        f0_hz=f0,
        strength=chosen_strength,
        voicing_probability=probability,
        voiced=voiced,
    )


def hz_to_semitones(f0_hz: np.ndarray, reference_hz: float) -> np.ndarray:
    with np.errstate(invalid='ignore', divide='ignore'):
        return 12.0 * np.log2(f0_hz / reference_hz)


def hnr_db(strength: np.ndarray, r_clip: float) -> np.ndarray:
    """Harmonics-to-noise ratio from autocorrelation strength"""
    r = np.clip(strength, r_clip, 1.0 - r_clip)
    return 10.0 * np.log10(r / (1.0 - r))
