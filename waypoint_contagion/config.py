"""Configuration system for waypoint-contagion.

Layered YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

Sections map 1:1 to YAML top-level keys:
  simulation: seed, worker threads, timing
  contact:    sojourn width and per-contact transfer probability
  infection:  contagion model and place universe for place tables

Probability bounds per model:
  count_based    0 < p ≤ 1
  log_transform  0 < p < 1
  beta           0 < p < 0.5   (mean = sd = p needs α = 1 − 2p > 0)
"""

from __future__ import annotations

import dataclasses
import math
import warnings
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from waypoint_contagion.types import (
    InfectionModel,
    InvalidParameterError,
    PlaceUniverse,
)


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Run control."""
    seed: Optional[int] = 42          # None = fresh OS entropy every run
    parallel_workers: int = 1         # Threads for the exposure scan (1 = serial)
    track_performance: bool = False   # Per-stage timing in SimulationResult.timings


@dataclass
class ContactSection:
    """Proximity rule and per-contact transmission."""
    time_width: float = 1.0 / 24.0    # Sojourn width (days); one hour
    transfer_probability: float = 0.1 # p: per-contact probability of transmission


@dataclass
class InfectionSection:
    """Contagion model selection.

    place_universe: "sources" — table covers places visited by sources only
                    "all"     — table covers every place in the waypoints, so
                                alternate source sets can reuse it
                    None      — model default (all for log_transform,
                                sources for beta)
    """
    model: str = "count_based"
    place_universe: Optional[str] = None

    @property
    def infection_model(self) -> InfectionModel:
        return InfectionModel(self.model)

    def resolved_place_universe(self) -> PlaceUniverse:
        if self.place_universe is not None:
            return PlaceUniverse(self.place_universe)
        if self.infection_model is InfectionModel.LOG_TRANSFORM:
            return PlaceUniverse.ALL
        return PlaceUniverse.SOURCES


@dataclass
class EngineConfig:
    """Complete engine configuration.

    Load from YAML via `load_config()`.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    contact: ContactSection = field(default_factory=ContactSection)
    infection: InfectionSection = field(default_factory=InfectionSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, warning about unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    unknown = sorted(set(data) - valid_fields)
    if unknown:
        warnings.warn(
            f"Ignoring unknown {section_cls.__name__} keys: {unknown}",
            UserWarning,
            stacklevel=3,
        )
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> EngineConfig:
    """Convert a merged YAML dict to an EngineConfig."""
    section_map = {
        'simulation': SimulationSection,
        'contact': ContactSection,
        'infection': InfectionSection,
    }
    sections = {}
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return EngineConfig(**sections)


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def _enum_value(value: Any) -> Any:
    """Plain value of an enum member; anything else unchanged."""
    return value.value if isinstance(value, Enum) else value


def validate_transfer_probability(p: float, model: InfectionModel) -> None:
    """Check p against the bounds the model requires.

    Raises:
        InvalidParameterError: If p is outside the model's range.
    """
    if not isinstance(p, (int, float)) or isinstance(p, bool) or math.isnan(p):
        raise InvalidParameterError(
            f"contact.transfer_probability must be a real number, got {p!r}"
        )
    if model is InfectionModel.COUNT_BASED:
        if not (0.0 < p <= 1.0):
            raise InvalidParameterError(
                f"count_based model requires 0 < transfer_probability <= 1, got {p}"
            )
    elif model is InfectionModel.LOG_TRANSFORM:
        if not (0.0 < p < 1.0):
            raise InvalidParameterError(
                f"log_transform model requires 0 < transfer_probability < 1, got {p}"
            )
    elif model is InfectionModel.BETA:
        if not (0.0 < p < 0.5):
            raise InvalidParameterError(
                f"beta model requires 0 < transfer_probability < 0.5 "
                f"(mean = sd = p), got {p}"
            )


def validate_config(config: EngineConfig) -> None:
    """Validate configuration constraints.

    Checks:
      - Model and place universe names are valid
      - Sojourn width is positive and finite
      - Transfer probability is in the model's range
      - Seed and worker count are sane

    Raises:
        InvalidParameterError: On the first violated constraint.
    """
    valid_models = {m.value for m in InfectionModel}
    if _enum_value(config.infection.model) not in valid_models:
        raise InvalidParameterError(
            f"infection.model must be one of {sorted(valid_models)}, "
            f"got '{config.infection.model}'"
        )
    valid_universes = {u.value for u in PlaceUniverse}
    if (config.infection.place_universe is not None
            and _enum_value(config.infection.place_universe) not in valid_universes):
        raise InvalidParameterError(
            f"infection.place_universe must be one of {sorted(valid_universes)} "
            f"or null, got '{config.infection.place_universe}'"
        )

    width = config.contact.time_width
    if (not isinstance(width, (int, float)) or isinstance(width, bool)
            or not math.isfinite(width) or width <= 0):
        raise InvalidParameterError(
            f"contact.time_width must be positive and finite, got {width!r}"
        )

    validate_transfer_probability(
        config.contact.transfer_probability, config.infection.infection_model
    )

    seed = config.simulation.seed
    if seed is not None and (not isinstance(seed, int) or seed < 0):
        raise InvalidParameterError(
            f"simulation.seed must be a non-negative integer or null, got {seed!r}"
        )
    if (not isinstance(config.simulation.parallel_workers, int)
            or config.simulation.parallel_workers < 1):
        raise InvalidParameterError(
            f"simulation.parallel_workers must be >= 1, "
            f"got {config.simulation.parallel_workers!r}"
        )


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict] = None,
) -> EngineConfig:
    """Load and merge layered YAML configuration.

    Merge order: base → scenario → overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML. Silently skipped
            if it does not exist.
        overrides: Optional dict of parameter overrides (e.g. sweeps).

    Returns:
        Validated EngineConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        InvalidParameterError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            with open(scenario_path) as f:
                scenario = yaml.safe_load(f) or {}
            deep_merge(config_dict, scenario)

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> EngineConfig:
    """Return an EngineConfig with all default values."""
    config = EngineConfig()
    validate_config(config)
    return config
