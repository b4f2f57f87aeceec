import os
import sys
import threading
import pytest

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from core.cycle_scheduler import CycleScheduler
from models.analysis_snapshot import AnalysisSnapshot


class RecordingEngine:
    """Engine stand-in that counts cycles and signals each one"""
    def __init__(self, error=None):
        self.calls = 0
        self.error = error
        self.ran = threading.Event()

    def run_cycle(self):
        self.calls += 1
        self.ran.set()
        if self.error:
            raise self.error
        return AnalysisSnapshot(total_analyzed=self.calls)


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        CycleScheduler(RecordingEngine(), interval_seconds=0)


def test_trigger_now_runs_synchronously_when_stopped():
    engine = RecordingEngine()
    scheduler = CycleScheduler(engine, interval_seconds=60)
    published = []
    scheduler.add_callback(published.append)

    snapshot = scheduler.trigger_now()

    assert snapshot.total_analyzed == 1
    assert published == [snapshot]
    assert scheduler.cycles_run == 1


def test_engine_errors_are_contained():
    engine = RecordingEngine(error=RuntimeError("boom"))
    scheduler = CycleScheduler(engine, interval_seconds=60)
    published = []
    scheduler.add_callback(published.append)

    assert scheduler.run_once() is None
    assert published == []
    assert scheduler.cycles_run == 0


def test_callback_errors_are_contained():
    scheduler = CycleScheduler(RecordingEngine(), interval_seconds=60)
    published = []

    def broken(snapshot):
        raise ValueError("consumer failed")

    scheduler.add_callback(broken)
    scheduler.add_callback(published.append)

    assert scheduler.run_once() is not None
    assert len(published) == 1


def test_worker_runs_and_wakes_on_trigger():
    """First cycle runs at start, the next one on demand instead of after the interval"""
    engine = RecordingEngine()
    scheduler = CycleScheduler(engine, interval_seconds=3600)

    scheduler.start()
    try:
        assert engine.ran.wait(timeout=5)
        assert scheduler.running

        engine.ran.clear()
        assert scheduler.trigger_now() is None
        assert engine.ran.wait(timeout=5)
        assert engine.calls == 2
    finally:
        scheduler.stop()

    assert not scheduler.running
    assert scheduler.worker_thread is None


def test_start_twice_keeps_one_worker():
    engine = RecordingEngine()
    scheduler = CycleScheduler(engine, interval_seconds=3600)

    scheduler.start()
    try:
        worker = scheduler.worker_thread
        scheduler.start()
        assert scheduler.worker_thread is worker
    finally:
        scheduler.stop()


if __name__ == '__main__':
    pytest.main(['-xvs', __file__])
