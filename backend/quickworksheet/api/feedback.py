from fastapi import APIRouter, Depends
from pydantic import BaseModel
import logging

from quickworksheet.api.session import get_current_session
from quickworksheet.models.worksheet import FeedbackRecord
from quickworksheet.services.session import Session
from quickworksheet.services.telemetry import instrument

router = APIRouter(prefix="/api/feedback", tags=["feedback"])

logger = logging.getLogger("quickworksheet.feedback")


class FeedbackResponse(BaseModel):
    message: str


@router.post("", response_model=FeedbackResponse)
@instrument(route="/api/feedback", version="v1")
async def submit_feedback(
    record: FeedbackRecord,
    session: Session = Depends(get_current_session),
):
    """Accept a 1-5 rating; it is kept only for the session's lifetime."""
    logger.info("Feedback received: rating=%d comment=%s", record.rating, bool(record.comment))
    return FeedbackResponse(message=session.submit_feedback(record))
