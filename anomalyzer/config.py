from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.methods import MINIMUM_METHODS, RESAMPLING_METHODS, Method


DEFAULT_SEASONS = 4
DEFAULT_PERM_COUNT = 500
MIN_REFERENCE_SIZE = 4


class ConfigError(ValueError):
    """Raised when an anomalyzer configuration cannot be used."""


class AnomalyzerConfig(BaseModel):
    """User-supplied detector parameters.

    Only types are coerced here; value checks and derived sizes live in
    :func:`resolve_config` so that this object is never mutated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    upper_bound: Optional[float] = Field(None, description="Upper fence bound")
    lower_bound: Optional[float] = Field(
        None, description="Lower fence bound; None ignores the lower fence"
    )
    active_size: int = Field(..., description="Number of most recent points under test")
    reference_size: Optional[int] = Field(
        None, description="Explicit reference window size (overrides seasons)"
    )
    seasons: int = Field(DEFAULT_SEASONS, description="reference_size = seasons * active_size")
    perm_count: Optional[int] = Field(
        None, description="Permutations for resampling tests (default 500)"
    )
    sensitivity: float = Field(
        0.1, description="Magnitude scores below this short-circuit the ensemble to 0"
    )
    capacity: int = Field(0, description="Capped push capacity; 0 is unbounded")
    delay: bool = Field(
        False, description="Return 0 until reference_size + active_size points exist"
    )
    methods: Optional[List[str]] = Field(
        None, description="Enabled tests (see anomalyzer.core.methods.Method)"
    )
    high_weight: float = Field(1.0, description="Weight of magnitude/fence above 0.8")
    low_weight: float = Field(0.0, description="Weight of magnitude/fence at or below 0.8")
    base_weight: float = Field(0.5, description="Weight of every other test")


@dataclass(frozen=True)
class ResolvedConfig:
    """Validated parameters with every derived value filled in."""

    upper_bound: Optional[float]
    lower_bound: Optional[float]
    active_size: int
    reference_size: int
    perm_count: int
    sensitivity: float
    capacity: int
    delay: bool
    methods: Tuple[Method, ...]
    high_weight: float
    low_weight: float
    base_weight: float

    @property
    def history_size(self) -> int:
        return self.reference_size + self.active_size

    def enabled(self, method: Method) -> bool:
        return method in self.methods


def resolve_config(config: AnomalyzerConfig) -> ResolvedConfig:
    """Apply defaults and cross-field checks, returning a new resolved config."""

    names = config.methods if config.methods is not None else [m.value for m in MINIMUM_METHODS]
    if len(names) == 0:
        raise ConfigError("At least one detection method is required")
    supported = {m.value for m in Method}
    for name in names:
        if name not in supported:
            raise ConfigError(f"Unsupported detection method '{name}'")
    # keep first occurrence order, drop duplicates
    methods = tuple(dict.fromkeys(Method(name) for name in names))

    if config.active_size < 1:
        raise ConfigError("Active window size must be at least of size 1")
    if config.seasons < 0:
        raise ConfigError(f"Seasons must be non-negative, ({config.seasons}) given")
    if config.capacity < 0:
        raise ConfigError(f"Capacity must be non-negative, ({config.capacity}) given")
    if config.perm_count is not None and config.perm_count < 1:
        raise ConfigError("Number of permutations must be greater than zero")
    if not 0.0 <= config.sensitivity <= 1.0:
        raise ConfigError(f"Sensitivity must be between 0 and 1, {config.sensitivity} given")
    for name in ("high_weight", "low_weight", "base_weight"):
        if getattr(config, name) < 0:
            raise ConfigError(f"{name} must be non-negative, {getattr(config, name)} given")

    seasons = config.seasons or DEFAULT_SEASONS
    if config.reference_size is not None:
        reference_size = config.reference_size
        if reference_size < MIN_REFERENCE_SIZE:
            raise ConfigError(
                f"Reference window must be at least of size {MIN_REFERENCE_SIZE}, "
                f"({reference_size}) given"
            )
    else:
        reference_size = seasons * config.active_size
        if reference_size < MIN_REFERENCE_SIZE:
            raise ConfigError(
                f"The combination of active window ({config.active_size}) and seasons "
                f"({seasons}) yields a reference window that is too small for analysis. "
                "Please increase one or both."
            )

    if Method.FENCE in methods:
        if config.upper_bound is None:
            raise ConfigError("Fence test included without an upper bound")
        if config.lower_bound is not None:
            if config.upper_bound == config.lower_bound:
                raise ConfigError("Fence test included with identical bounds on the fences")
            if config.upper_bound < config.lower_bound:
                raise ConfigError(
                    f"UpperBound ({config.upper_bound}) was lower than the "
                    f"LowerBound ({config.lower_bound})"
                )
        elif config.upper_bound == 0:
            raise ConfigError("Fence test with only an upper bound requires a non-zero bound")

    if Method.KS in methods and reference_size % config.active_size != 0:
        raise ConfigError(
            f"KS test requires the reference window ({reference_size}) to be a whole "
            f"multiple of the active window ({config.active_size})"
        )

    perm_count = config.perm_count or 0
    if perm_count == 0 and any(m in RESAMPLING_METHODS for m in methods):
        perm_count = DEFAULT_PERM_COUNT

    return ResolvedConfig(
        upper_bound=config.upper_bound,
        lower_bound=config.lower_bound,
        active_size=config.active_size,
        reference_size=reference_size,
        perm_count=perm_count,
        sensitivity=config.sensitivity,
        capacity=config.capacity,
        delay=config.delay,
        methods=methods,
        high_weight=config.high_weight,
        low_weight=config.low_weight,
        base_weight=config.base_weight,
    )


def build_config(**fields: object) -> ResolvedConfig:
    """Validate raw keyword fields straight into a :class:`ResolvedConfig`."""

    try:
        config = AnomalyzerConfig(**fields)  # type: ignore[arg-type]
    except ValidationError as ve:
        raise ConfigError(f"Invalid anomalyzer config: {ve}") from ve
    return resolve_config(config)


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ANOMALYZER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    LOG_LEVEL: str = "WARNING"
    CONFIG_PATH: Optional[Path] = None


def load_config(config_path: Optional[Path] = None) -> AnomalyzerConfig:
    """Load detector parameters from a YAML file.

    Falls back to ``ANOMALYZER_CONFIG_PATH`` and then ``anomalyzer.yaml`` in the
    working directory when no path is given.
    """

    if config_path is None:
        config_path = EnvSettings().CONFIG_PATH
    if config_path is None:
        default_path = Path("anomalyzer.yaml")
        config_path = default_path if default_path.exists() else None
    if config_path is None:
        raise ConfigError("No configuration file given and anomalyzer.yaml not found")

    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Invalid {path.name}: expected a mapping at the top level")
    try:
        return AnomalyzerConfig(**raw)
    except ValidationError as ve:
        raise ConfigError(f"Invalid {path.name}: {ve}") from ve
