from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel
import logging
import math

from quickworksheet.api.session import get_current_session
from quickworksheet.models.worksheet import (
    GenerationStep,
    LessonRequest,
    RenderedWorksheet,
    WorksheetEdit,
    WorksheetView,
)
from quickworksheet.services.errors import EditError, InvalidTransitionError
from quickworksheet.services.export import ExportArtifact
from quickworksheet.services.session import Session
from quickworksheet.services.telemetry import instrument
from quickworksheet.services.views import render_view

router = APIRouter(prefix="/api/worksheets", tags=["worksheets"])

logger = logging.getLogger("quickworksheet.worksheets")


# ──────────────────────────────────────────────
# Response models
# ──────────────────────────────────────────────

class GenerationStatusResponse(BaseModel):
    status: str
    progress: float
    steps: list[GenerationStep]
    elapsed: float
    error: str | None = None
    worksheet_id: str | None = None
    remaining_calls: int


class ArtifactInfo(BaseModel):
    filename: str
    view: WorksheetView
    page_count: int
    size: int
    url: str


class ExportRequest(BaseModel):
    view: WorksheetView = WorksheetView.STUDENT


class ExportResponse(BaseModel):
    artifact: ArtifactInfo
    follow_up_view: WorksheetView


class ArtifactListResponse(BaseModel):
    artifacts: list[ArtifactInfo]
    errors: dict[str, str]


def _status(session: Session) -> GenerationStatusResponse:
    tracker = session.tracker
    return GenerationStatusResponse(
        status=tracker.status.value,
        progress=round(tracker.progress, 1),
        steps=tracker.steps,
        elapsed=round(tracker.elapsed, 1),
        error=tracker.error,
        worksheet_id=session.document.id if session.document else None,
        remaining_calls=session.limiter.remaining_calls,
    )


def _artifact_info(artifact: ExportArtifact) -> ArtifactInfo:
    return ArtifactInfo(
        filename=artifact.filename,
        view=artifact.view,
        page_count=artifact.page_count,
        size=artifact.size,
        url=f"/api/worksheets/artifacts/{artifact.filename}",
    )


def _require_document(session: Session):
    if session.document is None:
        raise HTTPException(status_code=404, detail="No worksheet generated yet")
    return session.document


# ──────────────────────────────────────────────
# Generation
# ──────────────────────────────────────────────

@router.post("/generate", response_model=GenerationStatusResponse, status_code=202)
@instrument(route="/api/worksheets/generate", version="v1")
async def generate_worksheet(
    lesson: LessonRequest,
    session: Session = Depends(get_current_session),
):
    """Start generating a worksheet; poll /generation for progress."""
    admission = session.limiter.check()
    if not admission.allowed:
        session.notify("error", admission.reason)
        headers = None
        if admission.retry_after is not None:
            headers = {"Retry-After": str(math.ceil(admission.retry_after))}
        raise HTTPException(status_code=429, detail=admission.reason, headers=headers)

    try:
        session.start_generation(lesson)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    logger.info(
        "Generation requested: duration=%s topic=%.60s has_key=%s",
        lesson.duration, lesson.topic, session.has_api_key,
    )
    return _status(session)


@router.get("/generation", response_model=GenerationStatusResponse)
@instrument(route="/api/worksheets/generation", version="v1")
async def get_generation_status(session: Session = Depends(get_current_session)):
    return _status(session)


@router.post("/reset", response_model=GenerationStatusResponse)
@instrument(route="/api/worksheets/reset", version="v1")
async def start_over(session: Session = Depends(get_current_session)):
    """Cancel pending work and return to an empty form."""
    session.start_over()
    return _status(session)


# ──────────────────────────────────────────────
# Current worksheet
# ──────────────────────────────────────────────

@router.get("/current", response_model=RenderedWorksheet)
@instrument(route="/api/worksheets/current", version="v1")
async def get_current_worksheet(
    view: WorksheetView = Query(WorksheetView.STUDENT),
    session: Session = Depends(get_current_session),
):
    return render_view(_require_document(session), view)


@router.patch("/current", response_model=RenderedWorksheet)
@instrument(route="/api/worksheets/current:patch", version="v1")
async def edit_current_worksheet(
    edit: WorksheetEdit,
    view: WorksheetView = Query(WorksheetView.TEACHER),
    session: Session = Depends(get_current_session),
):
    _require_document(session)
    try:
        document = session.edit_document(edit)
    except EditError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return render_view(document, view)


# ──────────────────────────────────────────────
# Export
# ──────────────────────────────────────────────

@router.post("/current/export", response_model=ExportResponse)
@instrument(route="/api/worksheets/current/export", version="v1")
async def export_current_worksheet(
    request: ExportRequest,
    session: Session = Depends(get_current_session),
):
    """Export the requested view now; the opposite view follows shortly."""
    _require_document(session)
    try:
        outcome, _ = await session.export(request.view)
    except InvalidTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Export failed: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to generate PDF: {str(e)}")

    if not outcome.artifacts:
        detail = outcome.errors.get(request.view.value, "Failed to generate PDF")
        raise HTTPException(status_code=500, detail=detail)
    return ExportResponse(
        artifact=_artifact_info(outcome.artifacts[0]),
        follow_up_view=request.view.opposite,
    )


@router.get("/artifacts", response_model=ArtifactListResponse)
@instrument(route="/api/worksheets/artifacts", version="v1")
async def list_artifacts(session: Session = Depends(get_current_session)):
    return ArtifactListResponse(
        artifacts=[_artifact_info(a) for a in session.artifacts.values()],
        errors=session.export_errors,
    )


@router.get("/artifacts/{filename}")
@instrument(route="/api/worksheets/artifacts/{filename}", version="v1")
async def download_artifact(
    filename: str,
    session: Session = Depends(get_current_session),
):
    artifact = session.artifacts.get(filename)
    if artifact is None:
        raise HTTPException(status_code=404, detail="Artifact not found")
    return Response(
        content=artifact.data,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{artifact.filename}"'
        },
    )
