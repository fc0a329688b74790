"""Signal ingestion: validation, normalization, downmix and resampling"""

import logging
from typing import Sequence, Union

import numpy as np
import librosa

from egemaps_engine.errors import InvalidAudioError, InsufficientAudioError
from egemaps_engine.models.frames import SignalBuffer


logger = logging.getLogger(__name__)

MIN_SAMPLE_RATE = 8000
MAX_SAMPLE_RATE = 48000
MAX_CHANNELS = 32
MIN_DURATION_MS = 1000.0
ANALYSIS_SAMPLE_RATE = 16000
# Widest fixed-point PCM sample (32-bit)
MAX_PCM_BYTES = 4


def _to_float(samples: np.ndarray) -> np.ndarray:
    """Normalize integer PCM to [-1, 1) and cast to float64"""
    if samples.dtype == np.bool_:
        raise InvalidAudioError("Boolean sample data is not PCM")
    if np.issubdtype(samples.dtype, np.integer) and samples.dtype.itemsize > MAX_PCM_BYTES:
        # Untyped integer sequences land here as int64
        raise InvalidAudioError(
            f"{samples.dtype} samples have no PCM full scale; "
            f"declare the sample format (e.g., int16 or int32)"
        )
    if np.issubdtype(samples.dtype, np.unsignedinteger):
        info = np.iinfo(samples.dtype)
        midpoint = (int(info.max) + 1) / 2.0
        return (samples.astype(np.float64) - midpoint) / midpoint
    if np.issubdtype(samples.dtype, np.signedinteger):
        full_scale = float(-np.iinfo(samples.dtype).min)
        return samples.astype(np.float64) / full_scale
    if np.issubdtype(samples.dtype, np.floating):
        return samples.astype(np.float64)
    raise InvalidAudioError(f"Unsupported sample dtype: {samples.dtype}")


def _to_frames_by_channels(samples: np.ndarray, channels: int) -> np.ndarray:
    """Arrange samples as a (frames, channels) matrix"""
    if samples.ndim == 1:
        if samples.size % channels != 0:
            raise InvalidAudioError(
                f"{samples.size} interleaved samples do not divide into {channels} channels"
            )
        return samples.reshape(-1, channels)
    if samples.ndim == 2:
        if samples.shape[1] == channels:
            return samples
        if samples.shape[0] == channels:
            return samples.T
        raise InvalidAudioError(
            f"Sample matrix of shape {samples.shape} does not match {channels} channels"
        )
    raise InvalidAudioError(f"Samples must be 1-D or 2-D, got {samples.ndim} dimensions")


def build_signal_buffer(
    samples: Union[np.ndarray, Sequence[float]],
    sample_rate: int,
    channels: int = 1,
    *,
    min_sample_rate: int = MIN_SAMPLE_RATE,
    max_sample_rate: int = MAX_SAMPLE_RATE,
    max_channels: int = MAX_CHANNELS,
    min_duration_ms: float = MIN_DURATION_MS,
    min_window_ms: float = 0.0,
    target_sample_rate: int = ANALYSIS_SAMPLE_RATE,
) -> SignalBuffer:
    """Build a mono SignalBuffer from decoded PCM.

    Args:
        samples: Interleaved 1-D samples or a 2-D sample matrix
        sample_rate: Sample rate of ``samples`` in Hz
        channels: Number of channels in ``samples``
        min_sample_rate: Lowest supported input rate
        max_sample_rate: Highest supported input rate
        max_channels: Highest supported channel count
        min_duration_ms: Shortest accepted signal
        min_window_ms: Longest analysis window; shorter signals are rejected too
        target_sample_rate: Analysis sample rate of the returned buffer

    Returns:
        SignalBuffer at ``target_sample_rate``

    Raises:
        InvalidAudioError: Unsupported rate, layout, dtype or non-finite samples
        InsufficientAudioError: Signal shorter than the minimum duration
    """
    if isinstance(sample_rate, bool) or not isinstance(sample_rate, (int, np.integer)):
        raise InvalidAudioError(f"Sample rate must be an integer, got {sample_rate!r}")
    sample_rate = int(sample_rate)
    if not min_sample_rate <= sample_rate <= max_sample_rate:
        raise InvalidAudioError(
            f"Unsupported sample rate {sample_rate} Hz "
            f"(supported: {min_sample_rate}-{max_sample_rate} Hz)"
        )

    if isinstance(channels, bool) or not isinstance(channels, (int, np.integer)):
        raise InvalidAudioError(f"Channel count must be an integer, got {channels!r}")
    channels = int(channels)
    if not 1 <= channels <= max_channels:
        raise InvalidAudioError(f"Unsupported channel count {channels} (1-{max_channels})")

    samples = np.asarray(samples)
    if samples.size == 0:
        raise InvalidAudioError("Audio contains no samples")

    matrix = _to_frames_by_channels(_to_float(samples), channels)
    if not np.all(np.isfinite(matrix)):
        raise InvalidAudioError("Audio contains NaN or infinite samples")

    mono = matrix[:, 0].copy() if channels == 1 else matrix.mean(axis=1)

    duration_ms = 1000.0 * mono.size / sample_rate
    required_ms = max(float(min_duration_ms), float(min_window_ms))
    if duration_ms < required_ms:
        raise InsufficientAudioError(
            f"Audio is {duration_ms:.1f} ms long, at least {required_ms:.1f} ms required"
        )

    if sample_rate != target_sample_rate:
        mono = librosa.resample(mono, orig_sr=sample_rate, target_sr=target_sample_rate)
        mono = np.asarray(mono, dtype=np.float64)

    mono.setflags(write=False)

    logger.debug(
        f"Built signal buffer: {duration_ms:.0f} ms, {channels} ch @ {sample_rate} Hz "
        f"-> mono @ {target_sample_rate} Hz ({mono.size} samples)"
    )

    return SignalBuffer(
        samples=mono,
        sample_rate=target_sample_rate,
        source_sample_rate=sample_rate,
        source_channels=channels,
    )
