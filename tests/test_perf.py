"""Tests for waypoint_contagion.perf — stage timing."""

import time

import pytest

from waypoint_contagion.perf import PerfMonitor, StageStats


class TestStageStats:
    def test_mean_time(self):
        assert StageStats(total_time=3.0, call_count=2).mean_time == pytest.approx(1.5)

    def test_mean_time_no_calls(self):
        assert StageStats().mean_time == 0.0


class TestPerfMonitor:
    def test_disabled_is_noop(self):
        perf = PerfMonitor(enabled=False)
        perf.start()
        with perf.track("scan"):
            pass
        perf.stop()
        assert perf.summary() == {}

    def test_tracks_stages(self):
        perf = PerfMonitor(enabled=True)
        perf.start()
        with perf.track("index"):
            time.sleep(0.01)
        with perf.track("scan"):
            pass
        with perf.track("scan"):
            pass
        perf.stop()
        summary = perf.summary()
        assert summary["index"]["calls"] == 1
        assert summary["scan"]["calls"] == 2
        assert summary["index"]["mean_s"] == summary["index"]["total_s"]
        assert summary["index"]["total_s"] >= 0.005
        assert summary["_total_s"] >= summary["index"]["total_s"]
        # slowest stage first
        assert list(summary)[0] == "index"

    def test_track_records_on_exception(self):
        perf = PerfMonitor(enabled=True)
        with pytest.raises(RuntimeError):
            with perf.track("boom"):
                raise RuntimeError("fail")
        assert perf.summary()["boom"]["calls"] == 1

    def test_total_falls_back_to_stage_sum(self):
        perf = PerfMonitor(enabled=True)
        with perf.track("a"):
            time.sleep(0.002)
        summary = perf.summary()
        assert summary["_total_s"] == pytest.approx(summary["a"]["total_s"], abs=1e-5)
        assert summary["a"]["pct"] == pytest.approx(100.0)

    def test_report(self):
        perf = PerfMonitor(enabled=True)
        with perf.track("tables"):
            pass
        text = perf.report("Timings")
        assert "Timings" in text
        assert "tables" in text
        assert "TOTAL" in text
        assert "Mean (s)" in text
