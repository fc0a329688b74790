"""Frame-aligned low-level descriptor series"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional
import numpy as np


@dataclass
class LLDSeries:
    """Per-frame descriptor values for one extraction pass

    Missing values (e.g. F0 in unvoiced frames) are stored as NaN. NaN never
    leaves the aggregator; FeatureVector uses the UNDEFINED sentinel instead.

    Attributes:
        values: Descriptor name -> float array of length frame_count
        voiced: Boolean voicing mask, length frame_count
        frame_times: Frame centre times in seconds
        hop_seconds: Frame step in seconds
    """
    values: Dict[str, np.ndarray]
    voiced: np.ndarray
    frame_times: np.ndarray
    hop_seconds: float
    names: List[str] = field(init=False)

    def __post_init__(self):
        """Validate that every series shares the same frame count"""
        n = len(self.voiced)
        assert self.voiced.dtype == bool, "Voicing mask must be boolean"
        assert len(self.frame_times) == n, "Frame times must align with voicing mask"
        assert self.hop_seconds > 0, "Hop must be positive"
        for name, series in self.values.items():
            assert len(series) == n, f"Series {name} has {len(series)} frames, expected {n}"
        self.names = list(self.values.keys())

    @property
    def frame_count(self) -> int:
        return int(len(self.voiced))

    @property
    def voiced_count(self) -> int:
        return int(np.count_nonzero(self.voiced))

    def __getitem__(self, name: str) -> np.ndarray:
        return self.values[name]

    def __contains__(self, name: str) -> bool:
        return name in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def to_time_series(self, names: Optional[List[str]] = None) -> Dict[str, list]:
        """Export selected series as JSON-friendly lists

        Args:
            names: Descriptor names to export (default: all)

        Returns:
            Dictionary with "timestamps" (ms) plus one list per descriptor,
            using None for missing values
        """
        names = self.names if names is None else names
        out: Dict[str, list] = {
            "timestamps": [round(float(t) * 1000.0, 3) for t in self.frame_times],
        }
        for name in names:
            out[name] = [None if np.isnan(v) else float(v) for v in self.values[name]]
        return out
