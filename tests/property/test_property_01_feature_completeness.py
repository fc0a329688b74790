"""Property-based tests for feature vector completeness

Feature: egemaps-extraction, Property 1: Feature vector completeness
*For any* valid recording (supported rate, channel layout and sample type,
at least one second long) the engine returns all 88 eGeMAPSv02 names in
canonical order, each holding a finite float or UNDEFINED, and never a
partial vector.
"""

import math

import numpy as np
from hypothesis import given, settings, strategies as st

from egemaps_engine import FEATURE_NAMES
from egemaps_engine.models.frames import DecodedAudio


# Feature: egemaps-extraction, Property 1: Feature vector completeness


@st.composite
def valid_recording_strategy(draw):
    """Generate tone-plus-noise recordings at common rates and sample types"""
    sample_rate = draw(st.sampled_from([8000, 16000, 22050, 44100, 48000]))
    duration = draw(st.floats(min_value=1.0, max_value=1.6))
    f0 = draw(st.floats(min_value=80.0, max_value=400.0))
    noise_level = draw(st.floats(min_value=0.0, max_value=0.3))
    amplitude = draw(st.floats(min_value=0.05, max_value=0.8))
    seed = draw(st.integers(min_value=0, max_value=2 ** 16))
    as_int16 = draw(st.booleans())

    rng = np.random.default_rng(seed)
    t = np.arange(int(duration * sample_rate)) / sample_rate
    samples = amplitude * np.sin(2.0 * np.pi * f0 * t) + noise_level * rng.standard_normal(t.size)
    samples = np.clip(samples, -1.0, 1.0)
    if as_int16:
        samples = (samples * 32767).astype(np.int16)
    else:
        samples = samples.astype(np.float32)
    return DecodedAudio(samples=samples, sample_rate=sample_rate, channels=1)


@settings(max_examples=8, deadline=None)
@given(audio=valid_recording_strategy())
def test_feature_vector_completeness(engine, audio):
    """Every valid recording yields the complete, canonically ordered vector"""
    result = engine.analyze(audio)

    assert result.ok, f"Analysis failed: {result.error}"
    assert result.error is None
    assert list(result.features.keys()) == list(FEATURE_NAMES)
    assert len(result.features) == 88

    for name, value in result.features.items():
        assert value is None or (isinstance(value, float) and math.isfinite(value)), \
            f"{name} = {value!r} is neither finite nor UNDEFINED"


@settings(max_examples=5, deadline=None)
@given(seconds=st.floats(min_value=1.0, max_value=1.5), level=st.floats(min_value=0.0, max_value=0.01))
def test_unvoiced_input_still_complete(engine, seconds, level):
    """Silence and faint noise produce every name, voiced-only ones UNDEFINED"""
    rng = np.random.default_rng(0)
    samples = level * rng.standard_normal(int(seconds * 16000))
    result = engine.analyze(DecodedAudio(samples=samples, sample_rate=16000, channels=1))

    assert result.ok
    assert list(result.features) == list(FEATURE_NAMES)
    if level == 0.0:
        assert result.features["F0semitoneFrom27.5Hz_sma3nz_amean"] is None
        assert result.features["VoicedSegmentsPerSec"] == 0.0
