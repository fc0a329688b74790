"""
Integration tests for the end-to-end extraction pipeline.

Runs synthetic recordings with known properties through
EGeMAPSEngine.analyze() and checks the resulting functionals:
- Pitch of tones and pulse trains, across input sample rates
- Behaviour on silence (voiced-only functionals UNDEFINED)
- Multi-channel downmixing and determinism
- Temporal features on tone bursts
- Optional LLD time series and the voice summary
"""

import numpy as np
import pytest
from scipy.signal import lfilter

from egemaps_engine import FEATURE_NAMES
from egemaps_engine.engine import AnalysisOptions
from egemaps_engine.models.enums import ErrorCode
from egemaps_engine.models.frames import DecodedAudio
from egemaps_engine.summary import summarize


def semitones_to_hz(semitones: float) -> float:
    return 27.5 * 2.0 ** (semitones / 12.0)


def synthetic_vowel(f0: float = 125.0, formants=((700.0, 80.0), (1220.0, 90.0), (2600.0, 120.0)),
                    duration: float = 2.0, sample_rate: int = 16000) -> np.ndarray:
    """Impulse train filtered through a cascade of two-pole resonators"""
    n = int(duration * sample_rate)
    source = np.zeros(n)
    source[::int(round(sample_rate / f0))] = 1.0
    signal = source
    for freq, bw in formants:
        r = np.exp(-np.pi * bw / sample_rate)
        theta = 2.0 * np.pi * freq / sample_rate
        signal = lfilter([1.0 - r], [1.0, -2.0 * r * np.cos(theta), r * r], signal)
    return 0.5 * signal / np.max(np.abs(signal))


def tone_bursts(freq: float = 200.0, on: float = 0.15, off: float = 0.15, count: int = 8,
                sample_rate: int = 16000) -> np.ndarray:
    t = np.arange(int(on * sample_rate)) / sample_rate
    burst = 0.5 * np.sin(2.0 * np.pi * freq * t)
    gap = np.zeros(int(off * sample_rate))
    return np.concatenate([np.concatenate([burst, gap]) for _ in range(count)])


def test_tone_pitch(tone_result):
    """A 220 Hz tone is tracked within 2%"""
    features = tone_result.features
    assert semitones_to_hz(features["F0semitoneFrom27.5Hz_sma3nz_amean"]) == pytest.approx(220.0, rel=0.02)
    assert features["F0semitoneFrom27.5Hz_sma3nz_pctlrange0-2"] < 0.5
    assert features["VoicedSegmentsPerSec"] == pytest.approx(0.5, abs=0.01)
    assert features["MeanUnvoicedSegmentLength"] is None or features["MeanUnvoicedSegmentLength"] < 0.1
    assert features["HNRdBACF_sma3nz_amean"] > 10.0


@pytest.mark.parametrize("freq", [90.0, 150.0, 220.0, 330.0, 440.0, 600.0, 800.0])
def test_pitch_across_range(engine, make_tone, make_audio, freq):
    """Tones across the F0 range are tracked without octave errors"""
    features = engine.analyze(make_audio(make_tone(freq, 1.0))).features
    assert semitones_to_hz(features["F0semitoneFrom27.5Hz_sma3nz_amean"]) == pytest.approx(freq, rel=0.02)
    assert features["F0semitoneFrom27.5Hz_sma3nz_pctlrange0-2"] < 0.5


def test_silence(silence_result):
    """Silence analyses successfully with voiced-only functionals UNDEFINED"""
    assert silence_result.ok
    features = silence_result.features

    voiced_only = [name for name in FEATURE_NAMES if "_sma3nz_" in name and "UV_" not in name]
    assert voiced_only
    for name in voiced_only:
        assert features[name] is None, name

    assert features["MeanVoicedSegmentLengthSec"] is None
    assert features["StddevVoicedSegmentLengthSec"] is None
    assert features["VoicedSegmentsPerSec"] == 0.0
    assert features["loudness_sma3_amean"] == pytest.approx(0.0)


@pytest.mark.parametrize("sample_rate", [8000, 22050, 44100, 48000])
def test_resampled_inputs(engine, make_tone, make_audio, sample_rate):
    """Pitch is independent of the input sample rate"""
    result = engine.analyze(make_audio(make_tone(220.0, 1.5, sample_rate), sample_rate=sample_rate))
    assert result.ok
    assert semitones_to_hz(result.features["F0semitoneFrom27.5Hz_sma3nz_amean"]) == pytest.approx(220.0, rel=0.02)


def test_integer_pcm_matches_float(engine, make_tone, make_audio):
    """16-bit PCM and float samples of the same tone give the same pitch"""
    tone = make_tone(180.0, 1.5)
    pcm = np.round(tone * 32767).astype(np.int16)
    f_float = engine.analyze(make_audio(tone)).features
    f_pcm = engine.analyze(make_audio(pcm)).features
    assert f_pcm["F0semitoneFrom27.5Hz_sma3nz_amean"] == pytest.approx(
        f_float["F0semitoneFrom27.5Hz_sma3nz_amean"], abs=0.05)


def test_integer_pcm_list(engine, make_tone, make_audio):
    """Integer PCM given as a plain list needs its declared sample format"""
    pcm = np.round(make_tone(180.0, 1.5) * 32767).astype(np.int16)
    from_array = engine.analyze(make_audio(pcm)).features

    declared = engine.analyze(DecodedAudio(samples=pcm.tolist(), sample_rate=16000, sample_format="int16"))
    assert declared.features.to_dict() == from_array.to_dict()

    undeclared = engine.analyze(DecodedAudio(samples=pcm.tolist(), sample_rate=16000))
    assert not undeclared.ok
    assert undeclared.error.code is ErrorCode.INVALID_AUDIO


def test_stereo_matches_mono(engine, make_tone, make_audio):
    tone = make_tone(220.0, 1.5)
    mono = engine.analyze(make_audio(tone))
    stereo = engine.analyze(make_audio(np.stack([tone, tone], axis=1), channels=2))
    assert stereo.features.to_dict() == mono.features.to_dict()


def test_deterministic(engine, make_audio):
    samples = synthetic_vowel(duration=1.5)
    first = engine.analyze(make_audio(samples))
    second = engine.analyze(make_audio(samples.copy()))
    assert first.features.to_dict() == second.features.to_dict()


def test_synthetic_vowel(engine, make_audio):
    """Pulse-train vowel: pitch, formants and voice quality"""
    features = engine.analyze(make_audio(synthetic_vowel())).features

    assert semitones_to_hz(features["F0semitoneFrom27.5Hz_sma3nz_amean"]) == pytest.approx(125.0, rel=0.02)
    formants = [features[f"F{k}frequency_sma3nz_amean"] for k in (1, 2, 3)]
    assert all(50.0 < f < 5500.0 for f in formants)
    # the narrow 700 Hz resonance is always resolved
    assert min(abs(f - 700.0) for f in formants) < 200.0
    assert features["F1frequency_sma3nz_amean"] < features["F2frequency_sma3nz_amean"] \
        < features["F3frequency_sma3nz_amean"]
    assert features["jitterLocal_sma3nz_amean"] < 0.02
    assert features["shimmerLocaldB_sma3nz_amean"] < 1.0
    assert features["HNRdBACF_sma3nz_amean"] > 10.0

    summary = summarize(features)
    assert summary.pitch_category == "deep"
    assert summary.jitter_status in ("excellent", "good")
    assert summary.vocal_tract_length_cm is not None


def test_tone_bursts(engine, make_audio):
    """Eight 150 ms bursts give eight voiced segments and loudness peaks"""
    samples = tone_bursts()
    duration = samples.size / 16000
    features = engine.analyze(make_audio(samples)).features

    assert features["VoicedSegmentsPerSec"] == pytest.approx(8 / duration, abs=1 / duration)
    assert features["MeanVoicedSegmentLengthSec"] == pytest.approx(0.15, abs=0.07)
    assert features["MeanUnvoicedSegmentLength"] == pytest.approx(0.15, abs=0.07)
    assert features["loudnessPeaksPerSec"] > 0.0
    assert features["alphaRatioUV_sma3nz_amean"] is not None


def test_louder_is_louder(engine, make_tone, make_audio):
    quiet = engine.analyze(make_audio(make_tone(300.0, 1.5, amplitude=0.05))).features
    loud = engine.analyze(make_audio(make_tone(300.0, 1.5, amplitude=0.5))).features
    assert loud["loudness_sma3_amean"] > quiet["loudness_sma3_amean"]
    assert loud["equivalentSoundLevel_dBp"] == pytest.approx(quiet["equivalentSoundLevel_dBp"] + 20.0, abs=0.5)


def test_time_series_export(engine, make_tone, make_audio):
    result = engine.analyze(make_audio(make_tone(220.0, 1.5)), AnalysisOptions(include_lld_time_series=True))
    series = result.lld_time_series

    n = len(series["timestamps"])
    assert n == 1 + (24000 - 320) // 160
    assert np.allclose(np.diff(series["timestamps"]), 10.0)
    voiced_f0 = [f for f in series["F0Hz"] if f is not None]
    assert len(voiced_f0) > 0.8 * n
    assert np.median(voiced_f0) == pytest.approx(220.0, rel=0.02)
    assert all(0.0 <= p <= 1.0 for p in series["voicingProbability"] if p is not None)
