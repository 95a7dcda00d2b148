"""Tests for the throttled progress tracker."""

import logging

import pytest

from merge_streams.progress import ProgressSnapshot, ProgressTracker


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestProgressTracker:

    def test_negative_throttle_rejected(self):
        with pytest.raises(ValueError, match="throttle_ms"):
            ProgressTracker(total_inputs=1, throttle_ms=-1)

    def test_first_update_emits_immediately(self, clock):
        seen = []
        tracker = ProgressTracker(2, seen.append, throttle_ms=1000, clock=clock)
        tracker.add_read(10)
        assert seen == [ProgressSnapshot(0, 2, 10, 0)]

    def test_updates_within_interval_suppressed(self, clock):
        seen = []
        tracker = ProgressTracker(2, seen.append, throttle_ms=1000, clock=clock)
        tracker.add_read(10)
        clock.advance(0.5)
        tracker.add_written(5)
        assert len(seen) == 1
        clock.advance(0.6)
        tracker.add_written(5)
        assert len(seen) == 2
        assert seen[-1].merged_bytes == 10

    def test_zero_throttle_emits_every_update(self, clock):
        seen = []
        tracker = ProgressTracker(1, seen.append, throttle_ms=0, clock=clock)
        tracker.start_input(0)
        tracker.add_read(1)
        tracker.add_written(1)
        assert len(seen) == 3

    def test_zero_byte_updates_ignored(self, clock):
        seen = []
        tracker = ProgressTracker(1, seen.append, throttle_ms=0, clock=clock)
        tracker.add_read(0)
        tracker.add_written(0)
        assert seen == []

    def test_finish_forces_final_snapshot(self, clock):
        seen = []
        tracker = ProgressTracker(2, seen.append, throttle_ms=1000, clock=clock)
        tracker.add_read(10)
        tracker.start_input(1)
        tracker.add_read(5)
        tracker.add_written(15)
        tracker.finish()
        assert seen[-1] == ProgressSnapshot(1, 2, 15, 15)

    def test_finish_is_idempotent_and_stops_updates(self, clock):
        seen = []
        tracker = ProgressTracker(1, seen.append, throttle_ms=0, clock=clock)
        tracker.finish()
        tracker.finish()
        tracker.add_read(3)
        assert len(seen) == 1
        assert tracker.inputed_bytes == 3

    def test_callback_errors_logged_not_raised(self, clock, caplog):
        def broken(snapshot):
            raise RuntimeError("callback exploded")

        tracker = ProgressTracker(1, broken, throttle_ms=0, clock=clock)
        with caplog.at_level(logging.WARNING, logger="merge_streams.progress"):
            tracker.add_read(1)
            tracker.finish()

        assert tracker.inputed_bytes == 1
        records = [r for r in caplog.records if "on_progress" in r.getMessage()]
        assert len(records) == 2
        assert records[0].callback_error == "callback exploded"

    def test_no_callback(self, clock):
        tracker = ProgressTracker(1, None, clock=clock)
        tracker.add_read(4)
        tracker.finish()
        assert tracker.snapshot() == ProgressSnapshot(0, 1, 4, 0)
