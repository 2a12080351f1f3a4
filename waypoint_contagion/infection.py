"""Infection models: turn exposure histories into infected sets.

Implements:
  - Count-based: k exposures infect with probability 1 − (1−p)^k.
    One uniform draw per entity; the closed form already integrates the
    k independent Bernoulli(p) transmissions.
  - Place-dependent: each place v carries its own probability p_v; an
    entity exposed at places v₁..v_k (with repeats) stays uninfected with
    probability Π (1 − p_vᵢ). One uniform draw per entity.
  - Place tables for the place-dependent models:
      * log-transform: p_v = 1 / (1 − b·ln U), mean p (see multipliers.py)
      * Beta:          p_v ~ Beta(α, β), α = 1 − 2p, β = α(1−p)/p,
                       so mean = sd = p (only for p < 0.5)

Reproducibility:
  Places and entities are visited in sorted order before drawing, so the
  draw sequence does not depend on dict or set iteration order. Place keys
  of mixed, mutually unorderable types fall back to ordering by repr.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, FrozenSet, Hashable, Iterable, List, Mapping, Tuple

import numpy as np

from waypoint_contagion.exposure import ExposureRecord
from waypoint_contagion.multipliers import multiplier_for
from waypoint_contagion.types import (
    InconsistentPlaceKeyError,
    InfectionModel,
    InvalidParameterError,
)

logger = logging.getLogger(__name__)


def canonical_order(keys: Iterable[Hashable]) -> List[Hashable]:
    """Sorted keys; repr-ordered when the keys are not mutually comparable."""
    keys = list(keys)
    try:
        return sorted(keys)
    except TypeError:
        return sorted(keys, key=lambda k: (type(k).__name__, repr(k)))


# ═══════════════════════════════════════════════════════════════════════
# COUNT-BASED MODEL
# ═══════════════════════════════════════════════════════════════════════

def infection_probability_from_count(k, p: float):
    """Cumulative infection probability after k independent exposures.

    k may be an int or an array of counts.
    """
    return 1.0 - (1.0 - p) ** k


def count_based_infections(
    record: ExposureRecord,
    p: float,
    rng: np.random.Generator,
) -> FrozenSet[int]:
    """Infected entities under a constant per-contact probability p.

    Entity with k exposures is infected iff u < 1 − (1−p)^k, u ~ U[0, 1).
    """
    entities = canonical_order(record)
    if not entities:
        return frozenset()
    k = np.array([len(record[e]) for e in entities], dtype=np.float64)
    u = rng.random(len(entities))
    infected = u < infection_probability_from_count(k, p)
    result = frozenset(e for e, hit in zip(entities, infected) if hit)
    logger.info("%d infections computed (constant rate)", len(result))
    return result


# ═══════════════════════════════════════════════════════════════════════
# PLACE-PROBABILITY TABLES
# ═══════════════════════════════════════════════════════════════════════

def log_transform_probabilities(
    places: Iterable[Hashable],
    p: float,
    rng: np.random.Generator,
) -> Dict[Hashable, float]:
    """Per-place probabilities 1 / (1 − b·ln u) with mean ≈ p.

    One uniform per place in canonical order. u is taken on (0, 1] so
    ln(u) stays finite.
    """
    if not (0.0 < p < 1.0):
        raise InvalidParameterError(
            f"log_transform model requires 0 < p < 1, got {p}"
        )
    ordered = canonical_order(places)
    b = multiplier_for(p)
    u = 1.0 - rng.random(len(ordered))
    probs = 1.0 / (1.0 - b * np.log(u))
    return {place: float(q) for place, q in zip(ordered, probs)}


def beta_parameters(p: float) -> Tuple[float, float]:
    """(α, β) of the Beta distribution with mean p and sd p.

    Raises:
        InvalidParameterError: Unless 0 < p < 0.5.
    """
    if not (0.0 < p < 0.5):
        raise InvalidParameterError(
            f"beta model requires 0 < p < 0.5 (mean = sd = p), got {p}"
        )
    alpha = 1.0 - 2.0 * p
    beta = alpha * (1.0 - p) / p
    return alpha, beta


def beta_probabilities(
    places: Iterable[Hashable],
    p: float,
    rng: np.random.Generator,
) -> Dict[Hashable, float]:
    """Per-place probabilities drawn from Beta(α, β) with mean = sd = p."""
    alpha, beta = beta_parameters(p)
    ordered = canonical_order(places)
    probs = rng.beta(alpha, beta, size=len(ordered))
    return {place: float(q) for place, q in zip(ordered, probs)}


PlaceTableBuilder = Callable[[Iterable[Hashable], float, np.random.Generator],
                             Dict[Hashable, float]]

PLACE_TABLE_BUILDERS: Dict[InfectionModel, PlaceTableBuilder] = {
    InfectionModel.LOG_TRANSFORM: log_transform_probabilities,
    InfectionModel.BETA: beta_probabilities,
}


def place_probability_table(
    model: InfectionModel,
    places: Iterable[Hashable],
    p: float,
    rng: np.random.Generator,
) -> Dict[Hashable, float]:
    """Draw the place table for a place-dependent model."""
    try:
        builder = PLACE_TABLE_BUILDERS[InfectionModel(model)]
    except KeyError:
        raise InvalidParameterError(
            f"model '{model}' has no place-probability table"
        ) from None
    return builder(places, p, rng)


# ═══════════════════════════════════════════════════════════════════════
# PLACE-DEPENDENT INFECTION
# ═══════════════════════════════════════════════════════════════════════

def validate_place_table(table: Mapping[Hashable, float]) -> None:
    """Every table value must be a probability in [0, 1].

    Raises:
        InvalidParameterError: Naming the first offending place.
    """
    for place in canonical_order(table):
        q = table[place]
        if (isinstance(q, bool) or not isinstance(q, (int, float, np.floating))
                or not (0.0 <= q <= 1.0)):
            raise InvalidParameterError(
                f"place probability for {place!r} must be in [0, 1], got {q!r}"
            )


def check_place_coverage(
    record: ExposureRecord,
    table: Mapping[Hashable, float],
) -> None:
    """Every exposure place must have a table entry.

    Raises:
        InconsistentPlaceKeyError: Listing the missing places.
    """
    missing = [place for place in record.places() if place not in table]
    if missing:
        raise InconsistentPlaceKeyError(canonical_order(missing))


def non_infection_probability(
    places: Iterable[Hashable],
    table: Mapping[Hashable, float],
) -> float:
    """Π (1 − table[place]) over every exposure (repeats included)."""
    product = 1.0
    for place in places:
        product *= 1.0 - table[place]
    return product


def variable_rate_infections(
    record: ExposureRecord,
    table: Mapping[Hashable, float],
    rng: np.random.Generator,
) -> FrozenSet[int]:
    """Infected entities when the per-contact probability depends on place.

    Coverage is checked before any variate is drawn.

    Raises:
        InconsistentPlaceKeyError: If an exposure place has no table entry.
    """
    check_place_coverage(record, table)
    entities = canonical_order(record)
    if not entities:
        return frozenset()
    survive = np.array(
        [non_infection_probability(record[e], table) for e in entities],
        dtype=np.float64,
    )
    u = rng.random(len(entities))
    result = frozenset(e for e, hit in zip(entities, u > survive) if hit)
    logger.info("%d infections computed (place-dependent rate)", len(result))
    return result
