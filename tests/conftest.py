"""Pytest configuration and fixtures"""

import numpy as np
import pytest
from hypothesis import settings, Verbosity

from egemaps_engine.engine import EGeMAPSEngine
from egemaps_engine.models.frames import DecodedAudio

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=20, verbosity=Verbosity.normal)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose)

# Use CI profile by default
settings.load_profile("ci")


def _make_tone(freq: float = 220.0, duration: float = 2.0, sample_rate: int = 16000,
               amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(round(duration * sample_rate))) / sample_rate
    return amplitude * np.sin(2.0 * np.pi * freq * t)


def _make_audio(samples, sample_rate: int = 16000, channels: int = 1) -> DecodedAudio:
    return DecodedAudio(samples=np.asarray(samples), sample_rate=sample_rate, channels=channels)


@pytest.fixture(scope="session")
def make_tone():
    """Factory for pure sine tones (float64 samples)"""
    return _make_tone


@pytest.fixture(scope="session")
def make_audio():
    """Factory for DecodedAudio"""
    return _make_audio


@pytest.fixture(scope="session")
def engine():
    """Initialized engine shared by the whole test session"""
    engine = EGeMAPSEngine()
    result = engine.initialize()
    assert result.ok, f"Engine failed to initialize: {result.error}"
    yield engine
    engine.close()


@pytest.fixture(scope="session")
def tone_result(engine):
    """Analysis of a 2 s, 220 Hz tone at 16 kHz"""
    return engine.analyze(_make_audio(_make_tone(220.0, 2.0)))


@pytest.fixture(scope="session")
def silence_result(engine):
    """Analysis of 1.5 s of digital silence"""
    return engine.analyze(_make_audio(np.zeros(24000)))
