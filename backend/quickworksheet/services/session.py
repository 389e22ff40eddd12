"""In-memory session context.

A session owns everything one user works with: the API key, the call
limiter, the progress tracker, the current lesson and worksheet, exported
artifacts, pending tasks and queued notifications. Nothing outlives the
process.
"""
from __future__ import annotations

import asyncio
import logging
import random
import re
import secrets
import time
from collections import deque
from functools import lru_cache
from typing import Awaitable, Callable, Optional

from quickworksheet.core.config import Settings, get_settings
from quickworksheet.models.worksheet import (
    FeedbackRecord,
    LessonRequest,
    Notification,
    WorksheetDocument,
    WorksheetEdit,
    WorksheetView,
)
from quickworksheet.services.ai import AIService
from quickworksheet.services.errors import InvalidTransitionError, ValidationFailure
from quickworksheet.services.export import ExportArtifact, ExportOutcome, ExportService
from quickworksheet.services.generation import GenerationTask, WorksheetGenerator
from quickworksheet.services.progress import ProgressTracker
from quickworksheet.services.rate_limiter import RateLimiter
from quickworksheet.services.views import apply_edit

logger = logging.getLogger("quickworksheet.session")

API_KEY_PREFIX = "sk-"
API_KEY_MIN_LENGTH = 20
_WHITESPACE_RE = re.compile(r"\s")

MAX_NOTIFICATIONS = 50


def validate_api_key(api_key: str) -> str:
    """Format check only; the key is never tried against the endpoint here."""
    key = (api_key or "").strip()
    if (
        not key.startswith(API_KEY_PREFIX)
        or len(key) < API_KEY_MIN_LENGTH
        or _WHITESPACE_RE.search(key)
    ):
        raise ValidationFailure(
            "Invalid API key format. OpenAI API keys start with 'sk-' and contain no spaces."
        )
    return key


def feedback_message(rating: int) -> str:
    if rating < 3:
        return "We're sorry this worksheet didn't meet your expectations."
    return "Thank you for your positive feedback!"


class Session:
    def __init__(
        self,
        session_id: str,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.id = session_id
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()
        self._clock = clock
        self._sleep = sleep
        self.api_key: Optional[str] = None
        self.limiter = RateLimiter(
            max_calls=self.settings.max_calls_per_session,
            cooldown_seconds=self.settings.call_cooldown_seconds,
            clock=clock,
        )
        self.tracker = ProgressTracker(clock=clock)
        self.lesson: Optional[LessonRequest] = None
        self.document: Optional[WorksheetDocument] = None
        self.artifacts: dict[str, ExportArtifact] = {}
        self.export_errors: dict[str, str] = {}
        self.feedback: list[FeedbackRecord] = []
        self.notifications: deque[Notification] = deque(maxlen=MAX_NOTIFICATIONS)
        self._generation: Optional[GenerationTask] = None
        self._tasks: set[asyncio.Task] = set()

    # ── notifications ──
    def notify(self, level: str, message: str) -> None:
        self.notifications.append(Notification(level=level, message=message))

    def drain_notifications(self) -> list[Notification]:
        drained = list(self.notifications)
        self.notifications.clear()
        return drained

    # ── credential ──
    def set_api_key(self, api_key: str) -> None:
        self.api_key = validate_api_key(api_key)
        self.notify("success", "API key saved for this session.")
        logger.info("Session %s: API key stored", self.id[:8])

    def clear_api_key(self) -> None:
        self.api_key = None

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    # ── generation ──
    def ai_service(self) -> AIService:
        return AIService(self.limiter, api_key=self.api_key, settings=self.settings)

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _set_document(self, document: WorksheetDocument) -> None:
        self.document = document

    def start_generation(self, lesson: LessonRequest) -> GenerationTask:
        """Kick off generation for ``lesson``; must be called inside the event loop."""
        generator = WorksheetGenerator(
            self.ai_service(),
            self.tracker,
            rng=self.rng,
            sleep=self._sleep,
            clock=self._clock,
            notify=self.notify,
        )
        handle = generator.start(lesson, on_document=self._set_document)
        self.lesson = lesson
        self.document = None
        self.artifacts.clear()
        self.export_errors.clear()
        self._generation = handle
        self._track(handle.task)
        return handle

    @property
    def generation(self) -> Optional[GenerationTask]:
        return self._generation

    # ── editing ──
    def edit_document(self, edit: WorksheetEdit) -> WorksheetDocument:
        if self.document is None:
            raise InvalidTransitionError("No worksheet to edit")
        self.document = apply_edit(self.document, edit)
        return self.document

    # ── export ──
    def _register_artifact(self, artifact: ExportArtifact) -> None:
        self.artifacts[artifact.filename] = artifact

    async def export(self, view: WorksheetView) -> tuple[ExportOutcome, asyncio.Task]:
        """Export ``view`` now and schedule the opposite view.

        The follow-up runs as a tracked task so "start over" can cancel it.
        """
        if self.document is None:
            raise InvalidTransitionError("No worksheet to export")
        document = self.document
        service = ExportService(sleep=self._sleep, notify=self.notify)
        outcome = ExportOutcome()
        await service.produce(document, view, outcome, self._register_artifact)
        followup = self._track(asyncio.create_task(service.follow_up(
            document, view.opposite, self.settings.export_followup_delay,
            outcome, self._register_artifact,
        )))
        followup.add_done_callback(lambda _: self.export_errors.update(outcome.errors))
        self.export_errors.update(outcome.errors)
        return outcome, followup

    # ── feedback ──
    def submit_feedback(self, record: FeedbackRecord) -> str:
        self.feedback.append(record)
        message = feedback_message(record.rating)
        self.notify("success" if record.rating >= 3 else "info", message)
        return message

    # ── lifecycle ──
    def cancel_pending(self) -> int:
        cancelled = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                cancelled += 1
        self._tasks.clear()
        self._generation = None
        if cancelled:
            logger.info("Session %s: cancelled %d pending task(s)", self.id[:8], cancelled)
        return cancelled

    def start_over(self) -> None:
        """Back to an empty form. The call limiter is kept."""
        self.cancel_pending()
        self.tracker.reset()
        self.lesson = None
        self.document = None
        self.artifacts.clear()
        self.export_errors.clear()

    def close(self) -> None:
        self.start_over()
        self.clear_api_key()
        self.notifications.clear()


class SessionStore:
    """Live sessions keyed by id.

    A session idle for longer than ``settings.session_ttl_seconds`` is
    closed (key forgotten, tasks cancelled) and dropped on the next
    ``create`` or ``get``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session_factory: Callable[..., Session] = Session,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or get_settings()
        self._session_factory = session_factory
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._last_seen: dict[str, float] = {}

    def evict_idle(self) -> int:
        cutoff = self._clock() - self.settings.session_ttl_seconds
        expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in expired:
            self.close(session_id)
        if expired:
            logger.info("Evicted %d idle session(s) (%d active)", len(expired), len(self._sessions))
        return len(expired)

    def create(self) -> Session:
        self.evict_idle()
        session_id = secrets.token_urlsafe(16)
        session = self._session_factory(session_id, settings=self.settings)
        self._sessions[session_id] = session
        self._last_seen[session_id] = self._clock()
        logger.info("Session created (%d active)", len(self._sessions))
        return session

    def get(self, session_id: str) -> Optional[Session]:
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is not None:
            self._last_seen[session_id] = self._clock()
        return session

    def close(self, session_id: str) -> bool:
        self._last_seen.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.close()
        return True

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache
def get_session_store() -> SessionStore:
    return SessionStore()
