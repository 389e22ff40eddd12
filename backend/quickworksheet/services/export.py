"""Export action: one PDF per view, the requested view first.

The opposite view follows after ``export_followup_delay`` seconds. The two
artifacts are independent: a failure is reported for that view only, and
nothing is registered for a view whose rendering failed.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from quickworksheet.models.worksheet import WorksheetDocument, WorksheetView
from quickworksheet.services.errors import ExportError
from quickworksheet.services.pdf import PDFService, export_filename, get_pdf_service
from quickworksheet.services.views import render_view

logger = logging.getLogger("quickworksheet.export")


@dataclass
class ExportArtifact:
    filename: str
    view: WorksheetView
    data: bytes
    page_count: int

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ExportOutcome:
    artifacts: list[ExportArtifact] = field(default_factory=list)
    # view -> error message
    errors: dict[str, str] = field(default_factory=dict)


def _ignore(level: str, message: str) -> None:
    return None


class ExportService:
    def __init__(
        self,
        pdf_factory: Callable[[], PDFService] = get_pdf_service,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        notify: Callable[[str, str], None] = _ignore,
    ):
        self._pdf_factory = pdf_factory
        self._sleep = sleep
        self._notify = notify

    def render_artifact(self, document: WorksheetDocument, view: WorksheetView) -> ExportArtifact:
        filename = export_filename(document.title, view)
        try:
            rendered = render_view(document, view)
            pdf = self._pdf_factory().generate_worksheet_pdf(rendered)
        except Exception as e:
            logger.error("PDF export failed for %s: %s", filename, e, exc_info=True)
            raise ExportError(f"Could not export {view.value} worksheet: {e}") from e
        return ExportArtifact(filename=filename, view=view, data=pdf.data, page_count=pdf.page_count)

    async def produce(
        self,
        document: WorksheetDocument,
        view: WorksheetView,
        outcome: ExportOutcome,
        on_artifact: Optional[Callable[[ExportArtifact], None]] = None,
    ) -> Optional[ExportArtifact]:
        """Render one view off the event loop and record the result."""
        try:
            artifact = await asyncio.to_thread(self.render_artifact, document, view)
        except ExportError as e:
            outcome.errors[view.value] = str(e)
            self._notify("error", "Error downloading worksheet. Please try again.")
            return None
        outcome.artifacts.append(artifact)
        if on_artifact is not None:
            on_artifact(artifact)
        self._notify("success", f"{view.value.capitalize()} version ready: {artifact.filename}")
        logger.info("Exported %s (%d pages, %d bytes)", artifact.filename, artifact.page_count, artifact.size)
        return artifact

    async def follow_up(
        self,
        document: WorksheetDocument,
        view: WorksheetView,
        delay: float,
        outcome: ExportOutcome,
        on_artifact: Optional[Callable[[ExportArtifact], None]] = None,
    ) -> Optional[ExportArtifact]:
        await self._sleep(delay)
        return await self.produce(document, view, outcome, on_artifact)

    async def export_both(
        self,
        document: WorksheetDocument,
        primary: WorksheetView,
        delay: float,
        on_artifact: Optional[Callable[[ExportArtifact], None]] = None,
    ) -> ExportOutcome:
        outcome = ExportOutcome()
        await self.produce(document, primary, outcome, on_artifact)
        await self.follow_up(document, primary.opposite, delay, outcome, on_artifact)
        return outcome
