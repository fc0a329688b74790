"""Analysis pipeline: signal buffer, framing, LLD extraction and functionals"""

from egemaps_engine.analysis.signal_buffer import build_signal_buffer
from egemaps_engine.analysis.windowing import FrameWindower, FrameSequence
from egemaps_engine.analysis.tables import AnalysisTables, build_tables
from egemaps_engine.analysis.lld import LLDExtractor
from egemaps_engine.analysis.functionals import FunctionalAggregator

__all__ = [
    'build_signal_buffer',
    'FrameWindower',
    'FrameSequence',
    'AnalysisTables',
    'build_tables',
    'LLDExtractor',
    'FunctionalAggregator',
]
