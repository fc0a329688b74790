"""Low-level descriptor extraction

Turns a SignalBuffer into frame-aligned LLD series on the common 10 ms grid.
Spectral descriptors use the 20 ms frames directly; pitch and voice quality
use 60 ms context windows centred on the same frames; formants use 20 ms
frames of an 11 kHz, pre-emphasized copy of the signal at the same centre
times.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import librosa

from egemaps_engine.analysis.formants import track_formants
from egemaps_engine.analysis.perturbation import local_perturbation
from egemaps_engine.analysis.pitch import hnr_db, hz_to_semitones, track_pitch
from egemaps_engine.analysis.spectral import (
    alpha_ratio,
    band_slopes,
    hammarberg_index,
    harmonic_amplitudes,
    log_ratio_db,
    loudness,
    mfcc,
    nearest_harmonic,
    power_spectrum,
    rms_energy,
    spectral_flux,
)
from egemaps_engine.analysis.tables import AnalysisTables
from egemaps_engine.analysis.windowing import FrameWindower, pre_emphasis
from egemaps_engine.config.recipe import Recipe
from egemaps_engine.models.frames import Frame, SignalBuffer
from egemaps_engine.models.series import LLDSeries


logger = logging.getLogger(__name__)

F0_SEMITONE = "F0semitoneFrom27.5Hz"

# Series exported by AnalysisOptions.include_lld_time_series
TIME_SERIES_NAMES = ("F0Hz", "voicingProbability", "loudness", "HNRdBACF")


def slope_name(band) -> str:
    lo, hi = band
    return f"slope{int(lo)}-{int(hi)}"


class LLDExtractor:
    """Computes every eGeMAPSv02 low-level descriptor for one signal

    Attributes:
        recipe: Parameter table (possibly with a per-call F0 range)
        tables: Precomputed windows and filterbanks for the analysis rate
        windower: Frame grid definition
    """

    def __init__(self, recipe: Recipe, tables: AnalysisTables, pad_final_frame: bool = False):
        self.recipe = recipe
        self.tables = tables
        self.windower = FrameWindower(
            window_ms=recipe.frame.window_ms,
            hop_ms=recipe.frame.hop_ms,
            pad_final_frame=pad_final_frame,
        )

    def extract(self, buffer: SignalBuffer) -> LLDSeries:
        """Extract all LLD series from ``buffer``

        Args:
            buffer: Mono signal at the tables' sample rate

        Returns:
            LLDSeries with one value per frame for every descriptor; values
            that only exist in voiced frames are NaN elsewhere

        Raises:
            ExtractionError: If a numerical stage fails
        """
        assert buffer.sample_rate == self.tables.sample_rate, \
            "Buffer must be at the analysis sample rate"

        sequence = self.windower.frames(buffer)
        frames: List[Frame] = list(sequence)
        times = sequence.times()
        values: Dict[str, np.ndarray] = {}

        values.update(self._spectral(sequence.as_matrix()))

        contexts = (np.stack([sequence.context(f, self.tables.pitch_size) for f in frames])
                    if frames else np.empty((0, self.tables.pitch_size)))
        track = track_pitch(contexts, self.tables, self.recipe.pitch)
        for frame, voiced in zip(frames, track.voiced):
            frame.voiced = bool(voiced)

        values["F0Hz"] = track.f0_hz
        values[F0_SEMITONE] = hz_to_semitones(track.f0_hz, self.recipe.pitch.semitone_reference_hz)
        values["voicingProbability"] = track.voicing_probability
        values["HNRdBACF"] = hnr_db(track.strength, self.recipe.pitch.hnr_r_clip)

        values.update(self._perturbation(sequence, frames, track.f0_hz))

        formant_freqs, formant_bws = self._formants(buffer, times, track.voiced)
        values.update(self._harmonics(contexts, track.f0_hz, track.voiced, formant_freqs))
        for k in range(self.recipe.formants.count):
            values[f"F{k + 1}frequency"] = formant_freqs[:, k]
            values[f"F{k + 1}bandwidth"] = formant_bws[:, k]

        logger.debug(
            f"Extracted {len(values)} LLDs over {len(frames)} frames "
            f"({int(track.voiced.sum())} voiced)"
        )
        return LLDSeries(
            values=values,
            voiced=np.asarray(track.voiced, dtype=bool),
            frame_times=times,
            hop_seconds=sequence.hop_size / buffer.sample_rate,
        )

    def _spectral(self, matrix: np.ndarray) -> Dict[str, np.ndarray]:
        tables = self.tables
        params = self.recipe.spectral
        floor = params.power_floor

        power = power_spectrum(matrix, tables.spectral_window, tables.spectral_nfft)
        out = {
            "loudness": loudness(power, tables.bark_fb, tables.loudness_weights,
                                 params.loudness_compression),
            "alphaRatio": alpha_ratio(power, tables.alpha_low_mask, tables.alpha_high_mask, floor),
            "hammarbergIndex": hammarberg_index(power, tables.hammarberg_low_mask,
                                                tables.hammarberg_high_mask, floor),
            "spectralFlux": spectral_flux(np.sqrt(power)),
            "rmsEnergy": rms_energy(matrix),
        }
        slopes = band_slopes(power, tables.spectral_freqs, tables.slope_masks, floor)
        for band, slope in zip(params.slope_bands, slopes):
            out[slope_name(band)] = slope

        if matrix.shape[0]:
            coeffs = mfcc(power, tables.mel_fb, params.mfcc_count, params.mfcc_lifter, floor)
        else:
            coeffs = np.empty((0, params.mfcc_count))
        for k in range(params.mfcc_count):
            out[f"mfcc{k + 1}"] = coeffs[:, k]
        return out

    def _perturbation(self, sequence, frames: List[Frame], f0_hz: np.ndarray) -> Dict[str, np.ndarray]:
        params = self.recipe.perturbation
        jitter = np.full(len(frames), np.nan)
        shimmer = np.full(len(frames), np.nan)
        for frame in frames:
            if not frame.voiced:
                continue
            waveform = sequence.context_unpadded(frame, self.tables.pitch_size)
            jitter[frame.index], shimmer[frame.index] = local_perturbation(
                waveform, self.tables.sample_rate, f0_hz[frame.index],
                params.search_range_rel, params.min_periods,
            )
        return {"jitterLocal": jitter, "shimmerLocaldB": shimmer}

    def _formants(self, buffer: SignalBuffer, times: np.ndarray, voiced: np.ndarray):
        params = self.recipe.formants
        n = len(times)
        if not np.any(voiced):
            empty = np.full((n, params.count), np.nan)
            return empty, empty.copy()

        signal = np.asarray(buffer.samples, dtype=np.float64)
        if buffer.sample_rate != self.tables.formant_rate:
            signal = librosa.resample(signal, orig_sr=buffer.sample_rate,
                                      target_sr=self.tables.formant_rate)
        signal = pre_emphasis(signal, params.pre_emphasis)
        return track_formants(
            signal, self.tables.formant_rate, times, voiced, self.tables.formant_window,
            params.lpc_order, params.count, params.min_freq, params.max_freq,
            params.white_noise_correction,
        )

    def _harmonics(self, contexts: np.ndarray, f0_hz: np.ndarray, voiced: np.ndarray,
                   formant_freqs: np.ndarray) -> Dict[str, np.ndarray]:
        tables = self.tables
        params = self.recipe.harmonics
        count = formant_freqs.shape[1]
        n = len(f0_hz)

        h1 = np.full(n, np.nan)
        h2 = np.full(n, np.nan)
        formant_amps = np.full((n, count), np.nan)
        for i in np.flatnonzero(voiced):
            f0 = f0_hz[i]
            spectrum = np.abs(np.fft.rfft(contexts[i] * tables.pitch_window, n=tables.harmonic_nfft))
            h1[i], h2[i] = harmonic_amplitudes(spectrum, tables.harmonic_freqs, f0, (1, 2),
                                               params.search_rel)
            for k in range(count):
                fk = formant_freqs[i, k]
                if not np.isfinite(fk):
                    continue
                formant_amps[i, k] = harmonic_amplitudes(
                    spectrum, tables.harmonic_freqs, f0, (nearest_harmonic(fk, f0),),
                    params.search_rel,
                )[0]

        floor = params.amplitude_floor
        out = {
            "logRelF0-H1-H2": log_ratio_db(h1, h2, floor),
            "logRelF0-H1-A3": log_ratio_db(h1, formant_amps[:, 2], floor) if count >= 3
            else np.full(n, np.nan),
        }
        for k in range(count):
            out[f"F{k + 1}amplitudeLogRelF0"] = log_ratio_db(formant_amps[:, k], h1, floor)
        return out


def time_series(series: LLDSeries, names: Optional[List[str]] = None) -> Dict[str, list]:
    """JSON-friendly export of the default LLD time series"""
    return series.to_time_series(list(names or TIME_SERIES_NAMES))
