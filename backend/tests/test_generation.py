"""
End-to-end tests for the generation pipeline: request task joined with the
step chain, fallback on failure, cancellation.

Sleeps are injected, so the minimum wait costs no wall-clock time.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import json
import random

import pytest
from unittest.mock import MagicMock

from quickworksheet.core.config import Settings
from quickworksheet.models.worksheet import GenerationStatus, LessonRequest
from quickworksheet.services.ai import AIService
from quickworksheet.services.generation import WorksheetGenerator
from quickworksheet.services.progress import ProgressTracker, min_processing_floor
from quickworksheet.services.rate_limiter import RateLimiter


async def _no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _make_lesson(duration: str = "30") -> LessonRequest:
    return LessonRequest(
        duration=duration,
        topic="IT: debugging code",
        objective="Practicing vocabulary for a job interview",
        preferences="Writing exercises",
    )


def _make_generator(ai_service, tracker=None, notes=None, **kwargs) -> WorksheetGenerator:
    notes = notes if notes is not None else []
    sleep = kwargs.pop("sleep", _no_sleep)
    return WorksheetGenerator(
        ai_service,
        tracker or ProgressTracker(),
        rng=random.Random(5),
        sleep=sleep,
        notify=lambda level, message: notes.append((level, message)),
        **kwargs,
    )


def _ai_client(payload: dict) -> MagicMock:
    client = MagicMock()
    client.chat.completions.create.return_value = MagicMock(
        choices=[MagicMock(message=MagicMock(content=f"```json\n{json.dumps(payload)}\n```"))]
    )
    return client


# ─────────────────────────────────────────────────────────────────────────────
# End-to-end scenario without a credential
# ─────────────────────────────────────────────────────────────────────────────

class TestFallbackScenario:
    def _run(self):
        tracker = ProgressTracker()
        notes: list = []
        service = AIService(RateLimiter(), api_key=None, settings=Settings())
        generator = _make_generator(service, tracker, notes)
        document = asyncio.run(generator.generate(_make_lesson("30")))
        return document, tracker, notes

    def test_document_shape(self):
        document, _, _ = self._run()
        assert len(document.exercises) == 4
        assert len(document.vocabulary) == 15
        assert document.title
        assert "IT: debugging code" in document.title
        assert document.ai_generated is False

    def test_generation_time_respects_floor(self):
        document, _, _ = self._run()
        assert document.generation_time >= min_processing_floor("30")

    def test_tracker_completed(self):
        _, tracker, _ = self._run()
        assert tracker.status is GenerationStatus.COMPLETED
        assert tracker.progress == 100
        assert all(step.completed for step in tracker.steps)

    def test_user_is_told_about_fallback_and_success(self):
        _, _, notes = self._run()
        levels = [level for level, _ in notes]
        assert "error" in levels
        assert any("No API key found" in message for _, message in notes)
        assert notes[-1] == ("success", "Worksheet generated successfully!")


class TestGeneratedContent:
    def test_payload_from_endpoint_is_used(self):
        payload = {
            "title": "Debugging Interviews",
            "exercises": [{
                "type": "reading",
                "title": "Exercise 1: Reading",
                "instructions": "Read and answer.",
                "questions": [{"text": "What is a breakpoint?", "answer": "A pause point"}],
            }],
            "vocabulary": [{"term": "breakpoint", "definition": "a pause point"}],
        }
        client = _ai_client(payload)
        service = AIService(
            RateLimiter(), api_key="sk-test-0000000000000000000000",
            settings=Settings(), client_factory=lambda key: client,
        )
        document = asyncio.run(_make_generator(service).generate(_make_lesson("45")))
        assert document.ai_generated is True
        assert document.title == "Debugging Interviews"
        assert len(document.exercises) == 6
        assert len(document.exercises[0].questions) == 10
        assert document.vocabulary[0].term == "breakpoint"

    def test_on_document_runs_before_completion(self):
        tracker = ProgressTracker()
        seen = []
        service = AIService(RateLimiter(), api_key=None, settings=Settings())
        generator = _make_generator(service, tracker)

        async def scenario():
            handle = generator.start(
                _make_lesson(), on_document=lambda doc: seen.append(tracker.status),
            )
            return await handle.wait()

        asyncio.run(scenario())
        assert seen == [GenerationStatus.GENERATING]


# ─────────────────────────────────────────────────────────────────────────────
# Joining the two waits
# ─────────────────────────────────────────────────────────────────────────────

class GatedService:
    """Stands in for AIService: the request resolves only when the gate opens."""

    def __init__(self):
        self.gate = asyncio.Event()
        self.cancelled = False

    async def request_worksheet(self, lesson):
        try:
            await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return None


class TestJoin:
    def test_completion_waits_for_slow_request(self):
        tracker = ProgressTracker()

        async def scenario():
            service = GatedService()
            handle = _make_generator(service, tracker).start(_make_lesson())
            for _ in range(50):
                await asyncio.sleep(0)
            steps_done = all(s.completed for s in tracker.steps)
            status_before = tracker.status
            service.gate.set()
            document = await handle.wait()
            return steps_done, status_before, document

        steps_done, status_before, document = asyncio.run(scenario())
        assert steps_done
        assert status_before is GenerationStatus.GENERATING
        assert document is not None
        assert tracker.status is GenerationStatus.COMPLETED

    def test_generation_time_covers_slow_request(self):
        clock = FakeClock()

        class SlowService:
            async def request_worksheet(self, lesson):
                clock.now += 50
                return None

        async def advancing_sleep(seconds):
            clock.now += seconds
            await asyncio.sleep(0)

        generator = _make_generator(SlowService(), ProgressTracker(clock=clock), clock=clock, sleep=advancing_sleep)
        document = asyncio.run(generator.generate(_make_lesson()))
        assert document.generation_time >= 50


# ─────────────────────────────────────────────────────────────────────────────
# Failures and cancellation
# ─────────────────────────────────────────────────────────────────────────────

class TestAdmissionFailure:
    def test_rejected_generation_ends_in_error(self):
        tracker = ProgressTracker()
        notes: list = []
        service = AIService(RateLimiter(max_calls=0), api_key=None, settings=Settings())
        document = asyncio.run(_make_generator(service, tracker, notes).generate(_make_lesson()))
        assert document is None
        assert tracker.status is GenerationStatus.ERROR
        assert "maximum number of generations" in tracker.error
        assert notes[-1][0] == "error"


class TestCancellation:
    def test_cancel_stops_pending_request(self):
        tracker = ProgressTracker()

        async def scenario():
            service = GatedService()
            handle = _make_generator(service, tracker, sleep=asyncio.sleep).start(_make_lesson())
            for _ in range(5):
                await asyncio.sleep(0)
            handle.cancel()
            with pytest.raises(asyncio.CancelledError):
                await handle.wait()
            return service

        service = asyncio.run(scenario())
        assert service.cancelled
        assert tracker.status is GenerationStatus.GENERATING
