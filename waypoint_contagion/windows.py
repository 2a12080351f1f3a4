"""Contagious-window index.

For every place visited by at least one source, the list of Sojourn windows
opened by source visits there, in waypoint-scan order. Overlapping sojourns
are NOT merged: exposure counting needs to know how many source windows
cover a timestamp, not merely whether one does.

The index is built once and is read-only afterwards. Besides the sojourn
tuples it keeps, per place, sorted arrays of window starts and ends so that
the number of windows containing t is

    #(start ≤ t) − #(end ≤ t)

(every window with end ≤ t also has start ≤ t because end > start), which
two binary searches answer without scanning the list.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import AbstractSet, Dict, Hashable, Iterable, Iterator, List, Tuple

import numpy as np

from waypoint_contagion.types import Sojourn, Waypoint
from waypoint_contagion.waypoints import source_waypoints

logger = logging.getLogger(__name__)


class ContagiousWindowIndex(Mapping):
    """Read-only mapping place → tuple of Sojourn."""

    def __init__(
        self,
        sojourns: Dict[Hashable, List[Sojourn]],
        time_width: float,
        n_source_waypoints: int = 0,
    ):
        self.time_width = time_width
        self.n_source_waypoints = n_source_waypoints
        self._sojourns: Dict[Hashable, Tuple[Sojourn, ...]] = {
            place: tuple(items) for place, items in sojourns.items()
        }
        self._starts: Dict[Hashable, np.ndarray] = {}
        self._ends: Dict[Hashable, np.ndarray] = {}
        for place, items in self._sojourns.items():
            self._starts[place] = np.sort(np.fromiter(
                (s.start for s in items), dtype=np.float64, count=len(items)))
            self._ends[place] = np.sort(np.fromiter(
                (s.end for s in items), dtype=np.float64, count=len(items)))

    def __getitem__(self, place: Hashable) -> Tuple[Sojourn, ...]:
        return self._sojourns[place]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._sojourns)

    def __len__(self) -> int:
        return len(self._sojourns)

    def __repr__(self) -> str:
        return (f"ContagiousWindowIndex(places={len(self)}, "
                f"sojourns={self.n_sojourns}, time_width={self.time_width})")

    @property
    def n_sojourns(self) -> int:
        return sum(len(items) for items in self._sojourns.values())

    def count_containing(self, place: Hashable, t: float) -> int:
        """Number of sojourns at `place` whose window contains t.

        Zero for places no source visited.
        """
        starts = self._starts.get(place)
        if starts is None:
            return 0
        ends = self._ends[place]
        opened = int(np.searchsorted(starts, t, side='right'))
        closed = int(np.searchsorted(ends, t, side='right'))
        return opened - closed


def build_window_index(
    waypoints: Iterable[Waypoint],
    sources: AbstractSet[int],
    time_width: float,
) -> ContagiousWindowIndex:
    """Build the place → sojourns index from source waypoints.

    Deterministic; an empty source set yields an empty index.

    Args:
        waypoints: Waypoint collection (scan order is preserved per place).
        sources: Source entity ids.
        time_width: Sojourn width, same units as timestamps.

    Raises:
        ValueError: If time_width is not positive.
    """
    sojourns: Dict[Hashable, List[Sojourn]] = {}
    hot = source_waypoints(waypoints, sources)
    for wp in hot:
        sojourns.setdefault(wp.place, []).append(
            Sojourn.from_visit(wp.timestamp, time_width)
        )

    logger.info("Number of waypoints attributed to sources: %d", len(hot))
    logger.info("Number of distinct places visited by sources: %d", len(sojourns))
    return ContagiousWindowIndex(sojourns, time_width, len(hot))
