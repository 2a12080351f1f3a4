"""Per-stage timing for engine runs.

Usage:
    perf = PerfMonitor(enabled=True)
    perf.start()
    with perf.track("exposure_scan"):
        count_exposures(...)
    perf.stop()
    perf.summary()   # JSON-friendly dict
    perf.report()    # text table

When disabled every method is a no-op.
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class StageStats:
    """Wall-clock time spent in one engine stage."""
    total_time: float = 0.0
    call_count: int = 0

    @property
    def mean_time(self) -> float:
        return self.total_time / self.call_count if self.call_count > 0 else 0.0


class PerfMonitor:
    """Wall-clock timer keyed by stage name."""

    def __init__(self, enabled: bool = False):
        self.enabled = enabled
        self._stats: Dict[str, StageStats] = defaultdict(StageStats)
        self._start_time: Optional[float] = None
        self._total_time: float = 0.0

    def start(self) -> None:
        if self.enabled:
            self._start_time = time.perf_counter()

    def stop(self) -> None:
        if self.enabled and self._start_time is not None:
            self._total_time = time.perf_counter() - self._start_time

    @contextmanager
    def track(self, stage: str):
        """Time the enclosed block under `stage`."""
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            stats = self._stats[stage]
            stats.total_time += time.perf_counter() - t0
            stats.call_count += 1

    def _total(self) -> float:
        return self._total_time or sum(s.total_time for s in self._stats.values())

    def summary(self) -> dict:
        """Stage timings in seconds, slowest first, plus '_total_s'."""
        if not self.enabled:
            return {}
        total = self._total()
        result = {}
        for name, stats in sorted(self._stats.items(), key=lambda x: -x[1].total_time):
            pct = (stats.total_time / total * 100) if total > 0 else 0
            result[name] = {
                'total_s': round(stats.total_time, 6),
                'mean_s': round(stats.mean_time, 6),
                'calls': stats.call_count,
                'pct': round(pct, 1),
            }
        result['_total_s'] = round(total, 6)
        return result

    def report(self, title: str = "Engine stage timings") -> str:
        """Human-readable table of stage timings."""
        total = self._total()
        lines = [
            f"{'='*63}",
            f" {title}",
            f"{'='*63}",
            f"{'Stage':<25} {'Total (s)':>10} {'Mean (s)':>10} {'Calls':>6} {'%':>6}",
        ]
        for name, stats in sorted(self._stats.items(), key=lambda x: -x[1].total_time):
            pct = (stats.total_time / total * 100) if total > 0 else 0
            lines.append(
                f"{name:<25} {stats.total_time:>10.4f} {stats.mean_time:>10.4f} "
                f"{stats.call_count:>6} {pct:>5.1f}%"
            )
        lines.append(f"{'TOTAL':<25} {total:>10.4f}")
        return '\n'.join(lines)
