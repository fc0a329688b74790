"""Frame windowing on a fixed hop grid

All descriptors share one frame grid: frames of ``window_ms`` every
``hop_ms``. Analyses that need a longer window (pitch, voice quality) take a
zero-padded context slice centred on the same frame, so every LLD series has
the same frame count.
"""

from typing import Iterator

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy.signal import windows

from egemaps_engine.models.frames import Frame, SignalBuffer


# eGeMAPSv02 reference framing
DEFAULT_WINDOW_MS = 20.0
DEFAULT_HOP_MS = 10.0
PITCH_WINDOW_MS = 60.0
GAUSSIAN_SIGMA = 0.4
LPC_PRE_EMPHASIS = 0.97
DEFAULT_PAD_FINAL_FRAME = False


def ms_to_samples(ms: float, sample_rate: int) -> int:
    return int(round(ms * sample_rate / 1000.0))


def hamming_window(size: int) -> np.ndarray:
    """Symmetric Hamming window"""
    return windows.hamming(size, sym=True)


def gaussian_window(size: int, sigma: float = GAUSSIAN_SIGMA) -> np.ndarray:
    """Gaussian window; ``sigma`` is relative to the half-width"""
    return windows.gaussian(size, std=sigma * (size - 1) / 2.0, sym=True)


def pre_emphasis(samples: np.ndarray, coeff: float = LPC_PRE_EMPHASIS) -> np.ndarray:
    """First-order pre-emphasis y[n] = x[n] - coeff * x[n-1]"""
    x = np.asarray(samples, dtype=np.float64)
    if x.size == 0 or coeff == 0.0:
        return x.copy()
    out = np.empty_like(x)
    out[0] = x[0]
    out[1:] = x[1:] - coeff * x[:-1]
    return out


class FrameSequence:
    """Lazy, finite, restartable sequence of frames over one buffer

    Iterating twice yields identical frames; frames are created on demand.
    """

    def __init__(self, buffer: SignalBuffer, frame_size: int, hop_size: int,
                 pad_final_frame: bool = DEFAULT_PAD_FINAL_FRAME):
        assert frame_size > 0, "Frame size must be positive"
        assert hop_size > 0, "Hop size must be positive"
        self.buffer = buffer
        self.frame_size = frame_size
        self.hop_size = hop_size
        self.pad_final_frame = pad_final_frame

        n = len(buffer)
        full = 1 + (n - frame_size) // hop_size if n >= frame_size else 0
        # A zero-padded frame is added only when full frames stop short of the end
        covered = (full - 1) * hop_size + frame_size if full else 0
        padded = 1 if pad_final_frame and covered < n else 0
        self._count = full + padded

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Frame]:
        for index in range(self._count):
            yield self._frame(index)

    def _frame(self, index: int) -> Frame:
        start = index * self.hop_size
        samples = self.buffer.samples[start:start + self.frame_size]
        if samples.size < self.frame_size:
            samples = np.pad(samples, (0, self.frame_size - samples.size))
        else:
            samples = samples.copy()
        return Frame(samples=samples, index=index, start=start)

    @property
    def starts(self) -> np.ndarray:
        return np.arange(self._count) * self.hop_size

    def times(self) -> np.ndarray:
        """Frame centre times in seconds"""
        return (self.starts + self.frame_size / 2.0) / self.buffer.sample_rate

    def as_matrix(self) -> np.ndarray:
        """All frames stacked into a (frame_count, frame_size) matrix"""
        if self._count == 0:
            return np.empty((0, self.frame_size))
        signal = self.buffer.samples
        end = (self._count - 1) * self.hop_size + self.frame_size
        if end > signal.size:
            signal = np.pad(signal, (0, end - signal.size))
        view = sliding_window_view(signal, self.frame_size)[::self.hop_size]
        return view[:self._count].copy()

    def context(self, frame: Frame, length: int) -> np.ndarray:
        """Zero-padded slice of ``length`` samples centred on ``frame``"""
        signal = self.buffer.samples
        center = frame.start + self.frame_size // 2
        lo = center - length // 2
        hi = lo + length
        out = np.zeros(length)
        src_lo, src_hi = max(lo, 0), min(hi, signal.size)
        if src_hi > src_lo:
            out[src_lo - lo:src_hi - lo] = signal[src_lo:src_hi]
        return out

    def context_unpadded(self, frame: Frame, length: int) -> np.ndarray:
        """Like context() but clipped to the signal instead of padded"""
        signal = self.buffer.samples
        center = frame.start + self.frame_size // 2
        lo = center - length // 2
        return signal[max(lo, 0):min(lo + length, signal.size)]


class FrameWindower:
    """Slices a SignalBuffer into overlapping analysis frames

    Attributes:
        window_ms: Frame length in milliseconds
        hop_ms: Frame step in milliseconds
        pad_final_frame: Zero-pad the final partial frame instead of dropping it
    """

    def __init__(self, window_ms: float = DEFAULT_WINDOW_MS, hop_ms: float = DEFAULT_HOP_MS,
                 pad_final_frame: bool = DEFAULT_PAD_FINAL_FRAME):
        assert window_ms > 0, "Window length must be positive"
        assert hop_ms > 0, "Hop must be positive"
        self.window_ms = window_ms
        self.hop_ms = hop_ms
        self.pad_final_frame = pad_final_frame

    def frame_size(self, sample_rate: int) -> int:
        return ms_to_samples(self.window_ms, sample_rate)

    def hop_size(self, sample_rate: int) -> int:
        return max(1, ms_to_samples(self.hop_ms, sample_rate))

    def frames(self, buffer: SignalBuffer) -> FrameSequence:
        return FrameSequence(
            buffer,
            frame_size=self.frame_size(buffer.sample_rate),
            hop_size=self.hop_size(buffer.sample_rate),
            pad_final_frame=self.pad_final_frame,
        )
