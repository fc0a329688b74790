"""eGeMAPSv02 parameter table

The recipe is the one runtime asset the engine needs. It is loaded once by
``EGeMAPSEngine.initialize()``; a missing or inconsistent file puts the
engine into the FAILED state.
"""

import logging
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Optional, Tuple

import yaml

from egemaps_engine.errors import InitializationError


logger = logging.getLogger(__name__)

DEFAULT_RECIPE_PATH = Path(__file__).parent / "eGeMAPSv02.yaml"


@dataclass(frozen=True)
class FrameParams:
    window_ms: float = 20.0
    hop_ms: float = 10.0


@dataclass(frozen=True)
class PitchParams:
    window_ms: float = 60.0
    gaussian_sigma: float = 0.4
    f0_min: float = 55.0
    f0_max: float = 1000.0
    n_candidates: int = 6
    voicing_cutoff: float = 0.7
    octave_cost: float = 0.01
    octave_jump_cost: float = 0.35
    semitone_reference_hz: float = 27.5
    hnr_r_clip: float = 1e-6


@dataclass(frozen=True)
class PerturbationParams:
    search_range_rel: float = 0.1
    min_periods: int = 2


@dataclass(frozen=True)
class FormantParams:
    sample_rate: int = 11000
    window_ms: float = 20.0
    pre_emphasis: float = 0.97
    lpc_order: int = 11
    count: int = 3
    min_freq: float = 50.0
    max_freq: float = 5500.0
    white_noise_correction: float = 1e-6


@dataclass(frozen=True)
class HarmonicParams:
    search_rel: float = 0.25
    amplitude_floor: float = 1e-10


@dataclass(frozen=True)
class SpectralParams:
    loudness_bands: int = 26
    loudness_fmin: float = 20.0
    loudness_fmax: float = 8000.0
    loudness_compression: float = 0.33
    mfcc_bands: int = 26
    mfcc_fmin: float = 20.0
    mfcc_fmax: float = 8000.0
    mfcc_count: int = 4
    mfcc_lifter: int = 22
    alpha_low: Tuple[float, float] = (50.0, 1000.0)
    alpha_high: Tuple[float, float] = (1000.0, 5000.0)
    hammarberg_low: Tuple[float, float] = (0.0, 2000.0)
    hammarberg_high: Tuple[float, float] = (2000.0, 5000.0)
    slope_bands: Tuple[Tuple[float, float], ...] = ((0.0, 500.0), (500.0, 1500.0))
    power_floor: float = 1e-12


@dataclass(frozen=True)
class FunctionalParams:
    smoothing_window: int = 3
    percentiles: Tuple[float, ...] = (20.0, 50.0, 80.0)
    energy_floor: float = 1e-10


@dataclass(frozen=True)
class Recipe:
    """Complete parameter set for one eGeMAPSv02 extraction

    Attributes:
        feature_set: Feature set name, always "eGeMAPSv02"
        revision: Recipe revision; must match RECIPE_REVISION
    """
    feature_set: str
    revision: int
    frame: FrameParams = field(default_factory=FrameParams)
    pitch: PitchParams = field(default_factory=PitchParams)
    perturbation: PerturbationParams = field(default_factory=PerturbationParams)
    formants: FormantParams = field(default_factory=FormantParams)
    harmonics: HarmonicParams = field(default_factory=HarmonicParams)
    spectral: SpectralParams = field(default_factory=SpectralParams)
    functionals: FunctionalParams = field(default_factory=FunctionalParams)

    def with_pitch_range(self, f0_min: Optional[float], f0_max: Optional[float]) -> "Recipe":
        """Return a copy with an overridden F0 search range"""
        if f0_min is None and f0_max is None:
            return self
        pitch = replace(
            self.pitch,
            f0_min=self.pitch.f0_min if f0_min is None else float(f0_min),
            f0_max=self.pitch.f0_max if f0_max is None else float(f0_max),
        )
        return replace(self, pitch=pitch)


def _coerce(value, default, where: str):
    """Coerce a YAML value to the type of the field default"""
    if isinstance(default, tuple):
        if not isinstance(value, (list, tuple)):
            raise InitializationError(f"Recipe value {where} must be a list, got {value!r}")
        item_default = default[0] if default else 0.0
        return tuple(_coerce(v, item_default, f"{where}[{i}]") for i, v in enumerate(value))
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InitializationError(f"Recipe value {where} must be a finite number, got {value!r}")
    if isinstance(default, int):
        if not (isinstance(value, int) or value.is_integer()):
            raise InitializationError(f"Recipe value {where} must be an integer, got {value!r}")
        return int(value)
    return float(value)


def _section(cls, raw: dict, name: str):
    data = raw.get(name) or {}
    if not isinstance(data, dict):
        raise InitializationError(f"Recipe section '{name}' must be a mapping")
    defaults = {f.name: f.default for f in fields(cls)}
    unknown = sorted(set(data) - set(defaults))
    if unknown:
        raise InitializationError(f"Unknown keys in recipe section '{name}': {unknown}")
    return cls(**{k: _coerce(v, defaults[k], f"{name}.{k}") for k, v in data.items()})


def _validate(recipe: Recipe) -> None:
    if recipe.frame.window_ms <= 0 or recipe.frame.hop_ms <= 0:
        raise InitializationError("Frame window and hop must be positive")
    if recipe.pitch.window_ms < recipe.frame.window_ms:
        raise InitializationError("Pitch window must not be shorter than the frame window")
    if not 0 < recipe.pitch.f0_min < recipe.pitch.f0_max:
        raise InitializationError(
            f"Invalid F0 range [{recipe.pitch.f0_min}, {recipe.pitch.f0_max}]"
        )
    if not 0.0 < recipe.pitch.voicing_cutoff < 1.0:
        raise InitializationError("voicing_cutoff must be in (0, 1)")
    if recipe.pitch.n_candidates < 1:
        raise InitializationError("n_candidates must be >= 1")
    if recipe.formants.lpc_order < 2 * recipe.formants.count:
        raise InitializationError("LPC order too low for the requested formant count")
    if recipe.functionals.smoothing_window < 1 or recipe.functionals.smoothing_window % 2 == 0:
        raise InitializationError("smoothing_window must be a positive odd number")


def load_recipe(path: Optional[Path] = None,
                expected_feature_set: str = "eGeMAPSv02",
                expected_revision: Optional[int] = None) -> Recipe:
    """Load and validate the eGeMAPSv02 parameter table

    Args:
        path: YAML file to read, defaults to the packaged table
        expected_feature_set: Feature set name the file must declare
        expected_revision: Revision the file must declare, if given

    Returns:
        Frozen Recipe

    Raises:
        InitializationError: If the file is missing, unreadable or inconsistent
    """
    path = Path(path) if path is not None else DEFAULT_RECIPE_PATH
    logger.info(f"Loading eGeMAPS recipe from {path}")

    try:
        with open(path, 'r') as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise InitializationError(f"Recipe file not readable: {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InitializationError(f"Recipe file is not valid YAML: {path}: {e}") from e

    if not isinstance(raw, dict):
        raise InitializationError(f"Recipe file is empty or malformed: {path}")

    feature_set = raw.get('feature_set')
    revision = raw.get('revision')
    if feature_set != expected_feature_set:
        raise InitializationError(
            f"Recipe declares feature set {feature_set!r}, expected {expected_feature_set!r}"
        )
    if expected_revision is not None and revision != expected_revision:
        raise InitializationError(
            f"Recipe revision {revision!r} does not match engine revision {expected_revision}"
        )

    recipe = Recipe(
        feature_set=feature_set,
        revision=revision,
        frame=_section(FrameParams, raw, 'frame'),
        pitch=_section(PitchParams, raw, 'pitch'),
        perturbation=_section(PerturbationParams, raw, 'perturbation'),
        formants=_section(FormantParams, raw, 'formants'),
        harmonics=_section(HarmonicParams, raw, 'harmonics'),
        spectral=_section(SpectralParams, raw, 'spectral'),
        functionals=_section(FunctionalParams, raw, 'functionals'),
    )
    _validate(recipe)
    return recipe
