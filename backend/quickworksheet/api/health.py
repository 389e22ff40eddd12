from fastapi import APIRouter, Depends

from quickworksheet.core.config import get_settings
from quickworksheet.services.session import SessionStore, get_session_store

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(store: SessionStore = Depends(get_session_store)):
    return {
        "status": "ok",
        "app": get_settings().app_name,
        "active_sessions": len(store),
    }
