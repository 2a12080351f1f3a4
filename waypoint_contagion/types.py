"""Core data types for waypoint-contagion.

This module is the SINGLE SOURCE OF TRUTH for:
  - Waypoint: one observed (entity, timestamp, place) visit record
  - Sojourn: a half-open contagious window [start, end) at a place
  - InfectionModel, PlaceUniverse enumerations
  - Error types raised by the engine

All modules import these types from here.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Hashable, NamedTuple


# ═══════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════

class InvalidParameterError(ValueError):
    """A configuration value is outside the range the selected model accepts.

    Raised before any simulation work begins, so no partial results exist
    and no random draws have been consumed.
    """


class InconsistentPlaceKeyError(KeyError):
    """An exposure references a place absent from the probability table.

    Indicates the table was built from a different place universe than the
    waypoints being scored (e.g. a table reused across collections).
    """

    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__(
            f"{len(self.missing)} exposed place(s) missing from the "
            f"place-probability table, e.g. {self.missing[:5]!r}"
        )


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class InfectionModel(str, Enum):
    """Contagion model applied to exposure histories.

    COUNT_BASED:   one transfer probability p; k exposures infect with
                   probability 1 - (1-p)^k
    LOG_TRANSFORM: per-place probability 1/(1 + bZ), Z ~ Exponential(1),
                   with b chosen so the mean is p
    BETA:          per-place probability ~ Beta(α, β) with mean = sd = p
    """
    COUNT_BASED = "count_based"
    LOG_TRANSFORM = "log_transform"
    BETA = "beta"

    @property
    def place_dependent(self) -> bool:
        return self is not InfectionModel.COUNT_BASED


class PlaceUniverse(str, Enum):
    """Which places receive an entry in the place-probability table."""
    SOURCES = "sources"   # only places visited by a source
    ALL = "all"           # every place in the waypoint collection


# ═══════════════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════════════

class Waypoint(NamedTuple):
    """Presence of an entity at a place at a timestamp."""
    entity: int
    timestamp: float
    place: Hashable


@dataclass(frozen=True)
class Sojourn:
    """Contagious episode at a place, anchored to one source visit.

    Half-open, left-closed: contains(t) ⇔ start ≤ t < end.
    """
    start: float
    end: float

    def __post_init__(self):
        if not (self.end > self.start):
            raise ValueError(
                f"Sojourn end ({self.end}) must be > start ({self.start})"
            )

    @classmethod
    def from_visit(cls, timestamp: float, width: float) -> "Sojourn":
        """Window opened by a source visit at `timestamp`."""
        if not (width > 0.0) or math.isinf(width):
            raise ValueError(f"Sojourn width must be positive and finite, got {width}")
        return cls(timestamp, timestamp + width)

    def contains(self, t: float) -> bool:
        return self.start <= t < self.end
