"""Exposure counting.

Scans every waypoint of a non-source entity whose place is a key of the
contagious-window index (isVulnerable AND NOT isSource) and records one
exposure per source sojourn at that place containing the waypoint's
timestamp. A single waypoint inside k overlapping sojourns yields k
exposures.

The result has one shape for every infection model: entity → tuple of
places, one entry per exposure, in waypoint-scan order. The count-based
model only looks at the tuple lengths.

Parallelism:
  The scan is a pure filter/map over the waypoint sequence. With
  workers > 1 the sequence is split into contiguous chunks scanned on a
  ThreadPoolExecutor; chunk results are merged in chunk order, so the
  record is identical to the serial scan.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from typing import (
    AbstractSet,
    Dict,
    FrozenSet,
    Hashable,
    Iterator,
    List,
    Sequence,
    Set,
    Tuple,
)

from waypoint_contagion.types import Waypoint
from waypoint_contagion.windows import ContagiousWindowIndex

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# EXPOSURE RECORD
# ═══════════════════════════════════════════════════════════════════════

class ExposureRecord(Mapping):
    """Read-only mapping entity → tuple of places, one per exposure.

    Only entities with at least one exposure are keys.

    Attributes:
        vulnerable: Non-source entities that visited a source place at
            any time, exposed or not.
    """

    def __init__(
        self,
        places_by_entity: Dict[int, List[Hashable]],
        vulnerable: AbstractSet[int] = frozenset(),
    ):
        self._places: Dict[int, Tuple[Hashable, ...]] = {
            entity: tuple(places)
            for entity, places in places_by_entity.items()
            if places
        }
        self.vulnerable: FrozenSet[int] = frozenset(vulnerable)

    def __getitem__(self, entity: int) -> Tuple[Hashable, ...]:
        return self._places[entity]

    def __iter__(self) -> Iterator[int]:
        return iter(self._places)

    def __len__(self) -> int:
        return len(self._places)

    def __repr__(self) -> str:
        return f"ExposureRecord(exposed={len(self)}, events={self.n_events})"

    @property
    def exposed(self) -> FrozenSet[int]:
        return frozenset(self._places)

    @property
    def n_events(self) -> int:
        return sum(len(places) for places in self._places.values())

    def counts(self) -> Dict[int, int]:
        """entity → number of exposures."""
        return {entity: len(places) for entity, places in self._places.items()}

    def places(self) -> FrozenSet[Hashable]:
        """Every place at which some exposure happened."""
        return frozenset(p for places in self._places.values() for p in places)


# ═══════════════════════════════════════════════════════════════════════
# SCAN
# ═══════════════════════════════════════════════════════════════════════

def _scan_chunk(
    chunk: Sequence[Waypoint],
    sources: AbstractSet[int],
    index: ContagiousWindowIndex,
) -> Tuple[List[Tuple[int, Hashable, int]], Set[int]]:
    """Exposure events (entity, place, multiplicity) in scan order."""
    events = []
    vulnerable = set()
    for wp in chunk:
        if wp.place not in index or wp.entity in sources:
            continue
        vulnerable.add(wp.entity)
        n = index.count_containing(wp.place, wp.timestamp)
        if n > 0:
            events.append((wp.entity, wp.place, n))
    return events, vulnerable


def _chunks(seq: Sequence, n_chunks: int) -> List[Sequence]:
    size = -(-len(seq) // n_chunks)  # ceil
    return [seq[i:i + size] for i in range(0, len(seq), size)]


def count_exposures(
    waypoints: Sequence[Waypoint],
    sources: AbstractSet[int],
    index: ContagiousWindowIndex,
    workers: int = 1,
) -> ExposureRecord:
    """Count exposures of non-source entities to source sojourns.

    Args:
        waypoints: Waypoint collection.
        sources: Source entity ids (never exposed).
        index: Contagious-window index built from the same sources.
        workers: Threads used for the scan (1 = serial).

    Returns:
        ExposureRecord with one place entry per qualifying sojourn match.
    """
    if not isinstance(waypoints, Sequence):
        waypoints = tuple(waypoints)

    if len(index) == 0 or len(waypoints) == 0:
        logger.info("No source windows or no waypoints: nobody is exposed")
        return ExposureRecord({})

    if workers > 1 and len(waypoints) > workers:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            partials = list(pool.map(
                lambda chunk: _scan_chunk(chunk, sources, index),
                _chunks(waypoints, workers),
            ))
    else:
        partials = [_scan_chunk(waypoints, sources, index)]

    places_by_entity: Dict[int, List[Hashable]] = {}
    vulnerable: Set[int] = set()
    for events, chunk_vulnerable in partials:
        vulnerable |= chunk_vulnerable
        for entity, place, n in events:
            places_by_entity.setdefault(entity, []).extend([place] * n)

    record = ExposureRecord(places_by_entity, vulnerable)
    logger.info(
        "Number of non-source entities visiting source places: %d", len(vulnerable)
    )
    logger.info("%d exposures computed", record.n_events)
    logger.info("Number of exposed entities: %d", len(record))
    return record
