"""Generation progress: status state machine plus the progress estimate.

Two driving modes:
  step-driven: progress = completed steps / total steps, advanced one
               step at a time by ``run_step_chain``
  time-driven: used when no steps exist; linear until 70% of the
               configured duration, half speed afterwards, and never
               above 95% until ``complete()`` is called
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Optional

from quickworksheet.models.worksheet import GenerationStatus, GenerationStep
from quickworksheet.services.errors import InvalidTransitionError

logger = logging.getLogger("quickworksheet.progress")

STEP_LABELS = [
    "Analyzing input data...",
    "Gathering teaching resources...",
    "Applying pedagogical frameworks...",
    "Creating tailored exercises...",
    "Adapting to specified preferences...",
    "Adding teacher notes and guidance...",
    "Compiling vocabulary list...",
    "Formatting final worksheet...",
    "Performing quality checks...",
    "Finalizing worksheet...",
]

# Minimum visible wait, in seconds, per lesson duration.
MIN_PROCESSING_RANGES: dict[str, tuple[int, int]] = {
    "30": (21, 35),
    "45": (28, 42),
    "60": (35, 49),
}

DECELERATION_POINT = 0.7
TIME_DRIVEN_CAP = 95.0


def create_generation_steps() -> list[GenerationStep]:
    return [GenerationStep(label=label) for label in STEP_LABELS]


def choose_min_processing_time(duration: str, rng: random.Random) -> int:
    low, high = MIN_PROCESSING_RANGES.get(duration, MIN_PROCESSING_RANGES["45"])
    return rng.randint(low, high)


def min_processing_floor(duration: str) -> int:
    return MIN_PROCESSING_RANGES.get(duration, MIN_PROCESSING_RANGES["45"])[0]


def estimate_progress(elapsed: float, duration: float) -> float:
    """Time-driven progress percentage, capped below 100."""
    if duration <= 0:
        return TIME_DRIVEN_CAP
    fraction = max(0.0, elapsed) / duration
    if fraction <= DECELERATION_POINT:
        progress = fraction * 100
    else:
        progress = DECELERATION_POINT * 100 + (fraction - DECELERATION_POINT) * 50
    return min(TIME_DRIVEN_CAP, progress)


class ProgressTracker:
    """State machine: idle → generating → completed | error.

    Leaving completed or error requires ``reset()`` back to idle.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.status = GenerationStatus.IDLE
        self.steps: list[GenerationStep] = []
        self.duration: float = 0.0
        self.started_at: Optional[float] = None
        self.error: Optional[str] = None

    def start(self, duration: float, steps: Optional[list[GenerationStep]] = None) -> None:
        if self.status is not GenerationStatus.IDLE:
            raise InvalidTransitionError(
                f"Cannot start generating from '{self.status.value}'; start over first."
            )
        self.status = GenerationStatus.GENERATING
        self.steps = steps if steps is not None else []
        self.duration = duration
        self.started_at = self._clock()
        self.error = None

    def complete_next_step(self) -> Optional[GenerationStep]:
        """Mark the first pending step completed; steps finish strictly in order."""
        if self.status is not GenerationStatus.GENERATING:
            return None
        for step in self.steps:
            if not step.completed:
                step.completed = True
                return step
        return None

    def complete(self) -> None:
        if self.status is not GenerationStatus.GENERATING:
            raise InvalidTransitionError(f"Cannot complete from '{self.status.value}'")
        for step in self.steps:
            step.completed = True
        self.status = GenerationStatus.COMPLETED

    def fail(self, message: str) -> None:
        if self.status is not GenerationStatus.GENERATING:
            raise InvalidTransitionError(f"Cannot fail from '{self.status.value}'")
        self.status = GenerationStatus.ERROR
        self.error = message

    def reset(self) -> None:
        self.status = GenerationStatus.IDLE
        self.steps = []
        self.duration = 0.0
        self.started_at = None
        self.error = None

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        return self._clock() - self.started_at

    @property
    def progress(self) -> float:
        if self.status is GenerationStatus.COMPLETED:
            return 100.0
        if self.status is not GenerationStatus.GENERATING:
            return 0.0
        if self.steps:
            done = sum(1 for s in self.steps if s.completed)
            return done / len(self.steps) * 100
        return estimate_progress(self.elapsed, self.duration)


async def run_step_chain(
    tracker: ProgressTracker,
    min_processing_time: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Complete the tracker's steps one by one, evenly over the minimum wait.

    Each step is scheduled only after the previous one finished.
    """
    if not tracker.steps:
        await sleep(min_processing_time)
        return
    interval = min_processing_time / len(tracker.steps)
    for _ in range(len(tracker.steps)):
        await sleep(interval)
        step = tracker.complete_next_step()
        if step is not None:
            logger.debug("Step done: %s", step.label)
