"""
Tests for the progress state machine, the time-driven estimate and the
step chain.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import random

import pytest

from quickworksheet.models.worksheet import GenerationStatus
from quickworksheet.services.errors import InvalidTransitionError
from quickworksheet.services.progress import (
    MIN_PROCESSING_RANGES,
    STEP_LABELS,
    ProgressTracker,
    choose_min_processing_time,
    create_generation_steps,
    estimate_progress,
    min_processing_floor,
    run_step_chain,
)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RecordingSleep:
    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ─────────────────────────────────────────────────────────────────────────────
# State machine
# ─────────────────────────────────────────────────────────────────────────────

class TestStateMachine:
    def test_idle_to_generating_to_completed(self):
        tracker = ProgressTracker(clock=FakeClock())
        assert tracker.status is GenerationStatus.IDLE
        tracker.start(30, create_generation_steps())
        assert tracker.status is GenerationStatus.GENERATING
        tracker.complete()
        assert tracker.status is GenerationStatus.COMPLETED
        assert tracker.progress == 100

    def test_start_outside_idle_is_rejected(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(30)
        with pytest.raises(InvalidTransitionError):
            tracker.start(30)
        tracker.complete()
        with pytest.raises(InvalidTransitionError):
            tracker.start(30)

    def test_fail_records_message(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(30)
        tracker.fail("Please wait 7 seconds before generating another worksheet.")
        assert tracker.status is GenerationStatus.ERROR
        assert "Please wait" in tracker.error

    def test_reset_returns_to_idle(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(30, create_generation_steps())
        tracker.fail("boom")
        tracker.reset()
        assert tracker.status is GenerationStatus.IDLE
        assert tracker.steps == []
        assert tracker.error is None
        tracker.start(30)

    def test_complete_requires_generating(self):
        tracker = ProgressTracker(clock=FakeClock())
        with pytest.raises(InvalidTransitionError):
            tracker.complete()


class TestStepDrivenProgress:
    def test_progress_is_completed_fraction(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(30, create_generation_steps())
        for _ in range(3):
            tracker.complete_next_step()
        assert tracker.progress == pytest.approx(30)

    def test_steps_complete_in_order(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(30, create_generation_steps())
        first = tracker.complete_next_step()
        second = tracker.complete_next_step()
        assert first.label == STEP_LABELS[0]
        assert second.label == STEP_LABELS[1]
        assert [s.completed for s in tracker.steps[:3]] == [True, True, False]

    def test_no_step_changes_after_failure(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(30, create_generation_steps())
        tracker.fail("boom")
        assert tracker.complete_next_step() is None


class TestTimeDrivenProgress:
    def test_linear_until_seventy_percent(self):
        assert estimate_progress(35, 100) == pytest.approx(35)
        assert estimate_progress(70, 100) == pytest.approx(70)

    def test_half_speed_afterwards(self):
        assert estimate_progress(80, 100) == pytest.approx(75)

    def test_capped_below_completion(self):
        assert estimate_progress(500, 100) == 95

    def test_tracker_without_steps_uses_time(self):
        clock = FakeClock()
        tracker = ProgressTracker(clock=clock)
        tracker.start(40)
        clock.now = 20
        assert tracker.progress == pytest.approx(50)
        clock.now = 400
        assert tracker.progress == 95
        tracker.complete()
        assert tracker.progress == 100


class TestMinProcessingTime:
    @pytest.mark.parametrize("duration", ["30", "45", "60"])
    def test_inside_tier_range(self, duration):
        low, high = MIN_PROCESSING_RANGES[duration]
        rng = random.Random(3)
        for _ in range(50):
            assert low <= choose_min_processing_time(duration, rng) <= high

    def test_overall_bounds(self):
        assert min(low for low, _ in MIN_PROCESSING_RANGES.values()) == 21
        assert max(high for _, high in MIN_PROCESSING_RANGES.values()) == 49
        assert min_processing_floor("30") == 21


class TestStepChain:
    def test_steps_spread_evenly_over_min_time(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(30, create_generation_steps())
        sleep = RecordingSleep()
        asyncio.run(run_step_chain(tracker, 30, sleep))
        assert sleep.calls == [pytest.approx(3.0)] * 10
        assert all(s.completed for s in tracker.steps)
        assert tracker.progress == 100
        # still generating: completion is the pipeline's call
        assert tracker.status is GenerationStatus.GENERATING

    def test_without_steps_sleeps_once(self):
        tracker = ProgressTracker(clock=FakeClock())
        tracker.start(25)
        sleep = RecordingSleep()
        asyncio.run(run_step_chain(tracker, 25, sleep))
        assert sleep.calls == [25]
