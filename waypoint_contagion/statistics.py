"""Exposure statistics.

Summary (count, total, min, max, mean) of exposure counts over entities
with at least one exposure, and the tally k → number of entities with
exactly k exposures.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import numpy as np

from waypoint_contagion.exposure import ExposureRecord


@dataclass(frozen=True)
class ExposureSummary:
    """Summary statistics of exposure counts, given ≥1 exposure."""
    count: int = 0       # exposed entities
    total: int = 0       # exposure events
    minimum: int = 0
    maximum: int = 0
    mean: float = 0.0

    def as_dict(self) -> dict:
        """JSON-friendly dict."""
        return {
            'count': self.count,
            'total': self.total,
            'min': self.minimum,
            'max': self.maximum,
            'mean': round(self.mean, 6),
        }


def summarize_exposures(record: ExposureRecord) -> ExposureSummary:
    """Summary of exposure counts; all zeros when nobody is exposed."""
    counts = np.fromiter(record.counts().values(), dtype=np.int64, count=len(record))
    counts = counts[counts > 0]
    if counts.size == 0:
        return ExposureSummary()
    return ExposureSummary(
        count=int(counts.size),
        total=int(counts.sum()),
        minimum=int(counts.min()),
        maximum=int(counts.max()),
        mean=float(counts.mean()),
    )


def tally_exposures(record: ExposureRecord) -> Dict[int, int]:
    """Pairs (k, N(k)): N(k) entities have exactly k exposures. Sorted by k."""
    counts = np.fromiter(record.counts().values(), dtype=np.int64, count=len(record))
    if counts.size == 0:
        return {}
    ks, n = np.unique(counts, return_counts=True)
    return {int(k): int(c) for k, c in zip(ks, n)}
