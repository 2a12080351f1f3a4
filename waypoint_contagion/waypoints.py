"""In-memory waypoint collections.

Reading waypoints from storage is the caller's business; this module only
normalises already-parsed records into an immutable tuple of Waypoint and
answers simple questions about the collection (place universe, source
waypoints).
"""

from __future__ import annotations

import math
import numbers
from typing import AbstractSet, FrozenSet, Hashable, Iterable, Tuple

from waypoint_contagion.types import Waypoint


def as_waypoints(records: Iterable) -> Tuple[Waypoint, ...]:
    """Coerce records into an immutable, validated waypoint tuple.

    Each record may be a Waypoint or any 3-sequence
    ``(entity, timestamp, place)``. Order is preserved.

    Raises:
        ValueError: If a record has the wrong arity, a negative or
            non-integer entity, a non-finite timestamp, or an unhashable
            place.
    """
    out = []
    for i, rec in enumerate(records):
        if isinstance(rec, Waypoint):
            entity, timestamp, place = rec
        else:
            try:
                entity, timestamp, place = rec
            except (TypeError, ValueError):
                raise ValueError(
                    f"waypoint {i}: expected (entity, timestamp, place), got {rec!r}"
                ) from None

        if isinstance(entity, bool) or not isinstance(entity, numbers.Integral):
            raise ValueError(f"waypoint {i}: entity must be an integer, got {entity!r}")
        if entity < 0:
            raise ValueError(f"waypoint {i}: entity must be >= 0, got {entity}")
        try:
            timestamp = float(timestamp)
        except (TypeError, ValueError):
            raise ValueError(
                f"waypoint {i}: timestamp must be a real number, got {timestamp!r}"
            ) from None
        if not math.isfinite(timestamp):
            raise ValueError(f"waypoint {i}: timestamp must be finite, got {timestamp}")
        try:
            hash(place)
        except TypeError:
            raise ValueError(f"waypoint {i}: place must be hashable, got {place!r}") from None

        out.append(Waypoint(int(entity), timestamp, place))
    return tuple(out)


def place_ids(waypoints: Iterable[Waypoint]) -> FrozenSet[Hashable]:
    """All places appearing in the collection."""
    return frozenset(wp.place for wp in waypoints)


def source_waypoints(
    waypoints: Iterable[Waypoint],
    sources: AbstractSet[int],
) -> Tuple[Waypoint, ...]:
    """Waypoints recorded by source entities, in scan order."""
    return tuple(wp for wp in waypoints if wp.entity in sources)
