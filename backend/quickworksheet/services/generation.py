"""Worksheet generation pipeline.

A generation joins two independent waits: the step chain that spans the
randomized minimum processing time, and the request to the completion
endpoint. The document is published only after both have finished, so the
visible wait is max(minimum time, network + parsing).
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, Optional

from quickworksheet.models.worksheet import LessonRequest, WorksheetDocument
from quickworksheet.services.ai import AIService
from quickworksheet.services.errors import AdmissionError, GenerationError
from quickworksheet.services.normalizer import normalize_worksheet
from quickworksheet.services.progress import (
    ProgressTracker,
    choose_min_processing_time,
    create_generation_steps,
    run_step_chain,
)

logger = logging.getLogger("quickworksheet.generation")

Notify = Callable[[str, str], None]


def _ignore(level: str, message: str) -> None:
    return None


class GenerationTask:
    """Handle on one running generation."""

    def __init__(self, task: asyncio.Task):
        self._task = task

    def cancel(self) -> bool:
        return self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def task(self) -> asyncio.Task:
        return self._task

    async def wait(self) -> Optional[WorksheetDocument]:
        return await self._task


class WorksheetGenerator:
    def __init__(
        self,
        ai_service: AIService,
        tracker: ProgressTracker,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        notify: Notify = _ignore,
    ):
        self.ai_service = ai_service
        self.tracker = tracker
        self.rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock
        self._notify = notify

    def start(
        self,
        lesson: LessonRequest,
        on_document: Callable[[WorksheetDocument], None] | None = None,
    ) -> GenerationTask:
        """Move the tracker to generating and schedule the pipeline.

        Raises InvalidTransitionError synchronously when a previous
        generation has not been cleared with a reset.
        """
        min_time = choose_min_processing_time(lesson.duration, self.rng)
        self.tracker.start(min_time, create_generation_steps())
        logger.info("Generation started: duration=%s min_wait=%ss", lesson.duration, min_time)
        task = asyncio.create_task(self._run(lesson, min_time, on_document))
        return GenerationTask(task)

    async def generate(self, lesson: LessonRequest) -> Optional[WorksheetDocument]:
        """Start and wait for one generation."""
        return await self.start(lesson).wait()

    async def _request_payload(self, lesson: LessonRequest) -> Optional[dict]:
        try:
            return await self.ai_service.request_worksheet(lesson)
        except GenerationError as e:
            logger.warning("AI generation failed (%s): %s", e.__class__.__name__, e)
            self._notify("error", f"{e} Using fallback worksheet content.")
            return None

    async def _run(
        self,
        lesson: LessonRequest,
        min_time: int,
        on_document: Callable[[WorksheetDocument], None] | None,
    ) -> Optional[WorksheetDocument]:
        started = self._clock()
        request_task = asyncio.create_task(self._request_payload(lesson))
        steps_task = asyncio.create_task(run_step_chain(self.tracker, min_time, self._sleep))
        try:
            try:
                payload = await request_task
            except AdmissionError as e:
                logger.info("Generation rejected: %s", e)
                self.tracker.fail(str(e))
                self._notify("error", str(e))
                return None
            await steps_task

            document = normalize_worksheet(payload, lesson, self.rng)
            elapsed = self._clock() - started
            document.generation_time = int(round(max(min_time, elapsed)))
            if on_document is not None:
                on_document(document)
            self.tracker.complete()
            self._notify("success", "Worksheet generated successfully!")
            logger.info(
                "Generation finished: ai=%s exercises=%d time=%ss",
                document.ai_generated, len(document.exercises), document.generation_time,
            )
            return document
        except asyncio.CancelledError:
            logger.info("Generation cancelled")
            raise
        except Exception as e:
            logger.error("Generation crashed: %s", e, exc_info=True)
            self.tracker.fail("Failed to generate worksheet. Please try again.")
            self._notify("error", "Failed to generate worksheet. Please try again.")
            return None
        finally:
            for pending in (request_task, steps_task):
                if not pending.done():
                    pending.cancel()
