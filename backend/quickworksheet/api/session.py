"""Session endpoints: create / end a session, store the API key, drain notifications."""

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
import logging

from quickworksheet.models.worksheet import Notification
from quickworksheet.services.errors import ValidationFailure
from quickworksheet.services.session import Session, SessionStore, get_session_store
from quickworksheet.services.telemetry import instrument

router = APIRouter(prefix="/api/session", tags=["session"])

logger = logging.getLogger("quickworksheet.api.session")


def get_current_session(
    x_session_id: str = Header(None),
    store: SessionStore = Depends(get_session_store),
) -> Session:
    """Resolve the X-Session-Id header to a live session."""
    if not x_session_id:
        raise HTTPException(status_code=400, detail="Missing X-Session-Id header")
    session = store.get(x_session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found or expired")
    return session


class SessionResponse(BaseModel):
    session_id: str
    has_api_key: bool
    status: str
    remaining_calls: int
    max_calls: int


class ApiKeyRequest(BaseModel):
    api_key: str


class ApiKeyResponse(BaseModel):
    has_api_key: bool


class NotificationsResponse(BaseModel):
    notifications: list[Notification]


def _describe(session: Session) -> SessionResponse:
    return SessionResponse(
        session_id=session.id,
        has_api_key=session.has_api_key,
        status=session.tracker.status.value,
        remaining_calls=session.limiter.remaining_calls,
        max_calls=session.limiter.max_calls,
    )


@router.post("", response_model=SessionResponse, status_code=201)
@instrument(route="/api/session", version="v1")
async def create_session(store: SessionStore = Depends(get_session_store)):
    """Open a new in-memory session. Send its id back as X-Session-Id."""
    return _describe(store.create())


@router.get("", response_model=SessionResponse)
@instrument(route="/api/session:get", version="v1")
async def get_session(session: Session = Depends(get_current_session)):
    return _describe(session)


@router.delete("")
@instrument(route="/api/session:delete", version="v1")
async def end_session(
    session: Session = Depends(get_current_session),
    store: SessionStore = Depends(get_session_store),
):
    """End the session: pending work is cancelled and the API key forgotten."""
    store.close(session.id)
    return {"closed": True}


@router.put("/api-key", response_model=ApiKeyResponse)
@instrument(route="/api/session/api-key", version="v1")
async def store_api_key(
    request: ApiKeyRequest,
    session: Session = Depends(get_current_session),
):
    try:
        session.set_api_key(request.api_key)
    except ValidationFailure as e:
        raise HTTPException(status_code=422, detail=str(e))
    return ApiKeyResponse(has_api_key=True)


@router.delete("/api-key", response_model=ApiKeyResponse)
@instrument(route="/api/session/api-key:delete", version="v1")
async def clear_api_key(session: Session = Depends(get_current_session)):
    session.clear_api_key()
    return ApiKeyResponse(has_api_key=False)


@router.get("/notifications", response_model=NotificationsResponse)
@instrument(route="/api/session/notifications", version="v1")
async def drain_notifications(session: Session = Depends(get_current_session)):
    return NotificationsResponse(notifications=session.drain_notifications())
