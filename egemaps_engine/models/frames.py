"""Data models for decoded audio, signal buffers and analysis frames"""

from dataclasses import dataclass
from typing import Optional
import numpy as np


@dataclass
class DecodedAudio:
    """Decoded PCM handed to the engine by an audio decoder

    Attributes:
        samples: PCM samples, either 1-D interleaved or 2-D
                 (frames x channels, or channels x frames); float or integer dtype
        sample_rate: Sample rate in Hz (e.g., 16000)
        channels: Number of interleaved channels
        sample_format: numpy dtype name of the PCM (e.g., "int16"); required
                       when ``samples`` is a plain sequence of integers
    """
    samples: np.ndarray
    sample_rate: int
    channels: int = 1
    sample_format: Optional[str] = None

    def __post_init__(self):
        """Coerce plain sequences to numpy arrays of the declared format"""
        dtype = np.dtype(self.sample_format) if self.sample_format is not None else None
        if not isinstance(self.samples, np.ndarray):
            self.samples = np.asarray(self.samples, dtype=dtype)
        elif dtype is not None:
            assert self.samples.dtype == dtype, "Sample format must match the sample array dtype"


@dataclass(frozen=True)
class SignalBuffer:
    """Normalized mono signal at the analysis sample rate

    Attributes:
        samples: Read-only float64 mono samples in [-1, 1]
        sample_rate: Analysis sample rate in Hz
        source_sample_rate: Sample rate of the decoded input
        source_channels: Channel count of the decoded input
    """
    samples: np.ndarray
    sample_rate: int
    source_sample_rate: int
    source_channels: int

    def __post_init__(self):
        """Validate signal buffer invariants.

        Validates:
            - Samples is a non-empty 1-D numpy array
            - Sample rates are positive
            - All samples are finite
        """
        assert isinstance(self.samples, np.ndarray), "Samples must be numpy array"
        assert self.samples.ndim == 1, "Samples must be mono (1-D)"
        assert self.samples.size > 0, "Samples must not be empty"
        assert self.sample_rate > 0, "Sample rate must be positive"
        assert self.source_sample_rate > 0, "Source sample rate must be positive"
        assert self.source_channels >= 1, "Source channel count must be positive"
        assert np.all(np.isfinite(self.samples)), "Samples must be finite"

    @property
    def duration(self) -> float:
        """Signal duration in seconds"""
        return self.samples.size / self.sample_rate

    def __len__(self) -> int:
        return int(self.samples.size)


@dataclass
class Frame:
    """One analysis frame of a SignalBuffer

    Attributes:
        samples: Frame samples (window not applied), length = frame size
        index: Frame index on the hop grid
        start: Offset of the first sample in the buffer
        voiced: Voicing decision, set by the LLD stage (None until then)
    """
    samples: np.ndarray
    index: int
    start: int
    voiced: Optional[bool] = None

    def __post_init__(self):
        """Validate frame data"""
        assert isinstance(self.samples, np.ndarray), "Samples must be numpy array"
        assert self.index >= 0, "Frame index must be non-negative"
        assert self.start >= 0, "Frame start must be non-negative"

    @property
    def length(self) -> int:
        return int(self.samples.size)
