"""eGeMAPSv02 extraction engine

The engine is the single public entry point: it owns the lifecycle
(UNINITIALIZED -> READY | FAILED), runs the extraction pipeline

    DecodedAudio -> SignalBuffer -> frames -> LLDSeries -> FeatureVector

and translates every pipeline exception into an explicit result object.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from egemaps_engine import ENGINE_VERSION, FEATURE_SET, RECIPE_REVISION
from egemaps_engine.analysis.functionals import FunctionalAggregator
from egemaps_engine.analysis.lld import LLDExtractor, time_series
from egemaps_engine.analysis.signal_buffer import build_signal_buffer
from egemaps_engine.analysis.tables import AnalysisTables, build_tables
from egemaps_engine.config.config_loader import Config, config as default_config
from egemaps_engine.config.recipe import Recipe, load_recipe
from egemaps_engine.errors import (
    EngineException,
    EngineNotReadyError,
    InitializationError,
    InvalidAudioError,
)
from egemaps_engine.models.enums import EngineState, ErrorCode
from egemaps_engine.models.frames import DecodedAudio
from egemaps_engine.models.results import AnalysisResult, EngineError, InitializationResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOptions:
    """Per-call analysis options

    Attributes:
        f0_min: Lower bound of the F0 search range in Hz (recipe default if None)
        f0_max: Upper bound of the F0 search range in Hz (recipe default if None)
        include_lld_time_series: Also return frame-level F0, voicing,
            loudness and HNR series
    """
    f0_min: Optional[float] = None
    f0_max: Optional[float] = None
    include_lld_time_series: bool = False

    def __post_init__(self):
        """Validate option values"""
        assert self.f0_min is None or self.f0_min > 0, "f0_min must be positive"
        assert self.f0_max is None or self.f0_max > 0, "f0_max must be positive"
        if self.f0_min is not None and self.f0_max is not None:
            assert self.f0_min < self.f0_max, "f0_min must be below f0_max"


class EGeMAPSEngine:
    """Extracts the 88 eGeMAPSv02 functionals from decoded audio.

    Instances are independent; create as many as needed. ``initialize()``
    must succeed once before ``analyze()`` returns features. After that the
    engine is read-only and ``analyze()`` may be called from any number of
    threads at once.

    Attributes:
        settings: Engine settings (sample rates, durations, worker count)
        recipe_path: Parameter table to load (packaged table if None)
    """

    def __init__(self, settings: Optional[Config] = None, recipe_path: Optional[str] = None):
        self.settings = settings or default_config
        self.recipe_path = recipe_path or self.settings.get('engine.recipe_path')

        self.min_sample_rate = self.settings.get('audio.min_sample_rate', 8000)
        self.max_sample_rate = self.settings.get('audio.max_sample_rate', 48000)
        self.max_channels = self.settings.get('audio.max_channels', 32)
        self.min_duration_ms = self.settings.get('audio.min_duration_ms', 1000)
        self.analysis_sample_rate = self.settings.get('audio.analysis_sample_rate', 16000)
        self.pad_final_frame = bool(self.settings.get('windowing.pad_final_frame', False))
        self.max_workers = self.settings.get('engine.max_workers', 2)

        self._state = EngineState.UNINITIALIZED
        self._init_error: Optional[EngineError] = None
        self._lock = threading.Lock()
        self._recipe: Optional[Recipe] = None
        self._tables: Optional[AnalysisTables] = None
        self._aggregator: Optional[FunctionalAggregator] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def state(self) -> EngineState:
        return self._state

    def initialize(self) -> InitializationResult:
        """Load the recipe and build the analysis tables.

        Runs at most once per instance. Concurrent callers block on a lock
        and all observe the same outcome; a failed initialization is not
        retried.

        Returns:
            InitializationResult with error=None on success
        """
        with self._lock:
            if self._state is EngineState.READY:
                return InitializationResult()
            if self._state is EngineState.FAILED:
                return InitializationResult(error=self._init_error)

            try:
                recipe = load_recipe(
                    self.recipe_path,
                    expected_feature_set=FEATURE_SET,
                    expected_revision=RECIPE_REVISION,
                )
                try:
                    tables = build_tables(recipe, self.analysis_sample_rate)
                except (ValueError, TypeError, ArithmeticError) as e:
                    raise InitializationError(f"Cannot build analysis tables: {e}") from e
            except InitializationError as e:
                logger.error(f"Engine initialization failed: {e}")
                self._init_error = EngineError(code=e.code, message=str(e))
                self._state = EngineState.FAILED
                return InitializationResult(error=self._init_error)

            self._recipe = recipe
            self._tables = tables
            self._aggregator = FunctionalAggregator(recipe.functionals)
            self._state = EngineState.READY
            logger.info(f"EGeMAPSEngine ready ({ENGINE_VERSION})")
            return InitializationResult()

    def is_ready(self) -> bool:
        return self._state is EngineState.READY

    def version(self) -> str:
        return ENGINE_VERSION

    def analyze(self, audio: DecodedAudio, options: Optional[AnalysisOptions] = None) -> AnalysisResult:
        """Extract the feature vector of one recording.

        Args:
            audio: Decoded PCM with its sample rate and channel count
            options: Optional per-call overrides

        Returns:
            AnalysisResult holding either the complete FeatureVector or an
            error; never a partial vector
        """
        options = options or AnalysisOptions()
        try:
            return self._analyze(audio, options)
        except EngineException as e:
            logger.warning(f"Analysis failed: {e.code.value}: {e}")
            return AnalysisResult.failure(e.code, str(e), ENGINE_VERSION)
        except Exception as e:
            logger.error(f"Unexpected error during analysis: {e}", exc_info=True)
            return AnalysisResult.failure(
                ErrorCode.INTERNAL_EXTRACTION_FAILURE,
                f"{type(e).__name__}: {e}",
                ENGINE_VERSION,
            )

    def _analyze(self, audio: DecodedAudio, options: AnalysisOptions) -> AnalysisResult:
        if self._state is not EngineState.READY:
            raise EngineNotReadyError(
                f"Engine is {self._state.value}; call initialize() first"
            )

        recipe = self._recipe.with_pitch_range(options.f0_min, options.f0_max)
        if recipe.pitch.f0_min >= recipe.pitch.f0_max:
            raise InvalidAudioError(
                f"Invalid F0 range [{recipe.pitch.f0_min}, {recipe.pitch.f0_max}]"
            )

        buffer = build_signal_buffer(
            audio.samples,
            audio.sample_rate,
            audio.channels,
            min_sample_rate=self.min_sample_rate,
            max_sample_rate=self.max_sample_rate,
            max_channels=self.max_channels,
            min_duration_ms=self.min_duration_ms,
            min_window_ms=recipe.pitch.window_ms,
            target_sample_rate=self._tables.sample_rate,
        )

        series = LLDExtractor(recipe, self._tables, self.pad_final_frame).extract(buffer)
        features = self._aggregator.aggregate(series, buffer.duration)

        logger.debug(
            f"Analyzed {buffer.duration:.2f}s: {series.frame_count} frames, "
            f"{series.voiced_count} voiced"
        )
        return AnalysisResult(
            features=features,
            version=ENGINE_VERSION,
            lld_time_series=time_series(series) if options.include_lld_time_series else None,
        )

    async def analyze_async(self, audio: DecodedAudio, options: Optional[AnalysisOptions] = None,
                            timeout: Optional[float] = None) -> AnalysisResult:
        """Run analyze() on the engine's worker pool with an optional timeout.

        On timeout the computation is abandoned, not interrupted: the worker
        finishes in the background and its result is discarded.

        Args:
            audio: Decoded PCM
            options: Optional per-call overrides
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            The analysis result, or an ExtractionTimeout error result
        """
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._get_executor(), self.analyze, audio, options)
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Analysis exceeded timeout of {timeout}s, result discarded")
            return AnalysisResult.failure(
                ErrorCode.EXTRACTION_TIMEOUT,
                f"Analysis did not finish within {timeout}s",
                ENGINE_VERSION,
            )

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="egemaps",
                )
            return self._executor

    def close(self):
        """Release the worker pool used by analyze_async()"""
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
