import time
import json
import logging
import asyncio
from typing import Optional
from functools import wraps

from fastapi import HTTPException

logger = logging.getLogger("quickworksheet.telemetry")


def emit_event(event: str, *, route: str, version: str, session_id: Optional[str] = None,
               topic: Optional[str] = None, error_type: Optional[str] = None,
               status_code: Optional[int] = None, latency_ms: Optional[int] = None,
               ok: Optional[bool] = None):
    payload = {
        "event": event,
        "route": route,
        "version": version,
        "session_id": session_id,
        "topic": topic,
        "error_type": error_type,
        "status_code": status_code,
        "latency_ms": latency_ms,
        "ok": ok,
        "ts": time.time(),
    }
    # single-line JSON so log shippers can parse it
    logger.info("telemetry=%s", json.dumps(payload, separators=(",", ":")))


def _context(kwargs: dict) -> dict:
    """Pull the session id prefix and lesson topic out of route arguments."""
    session = kwargs.get("session")
    lesson = kwargs.get("lesson")
    return {
        "session_id": session.id[:8] if getattr(session, "id", None) else None,
        "topic": getattr(lesson, "topic", None),
    }


def instrument(route: str, version: str = "v1"):
    """Emit one ``api_call`` event per request with latency and outcome."""
    def deco(fn):
        def finish(t0: float, kwargs: dict, error: Optional[BaseException]):
            status_code = error.status_code if isinstance(error, HTTPException) else None
            emit_event(
                "api_call", route=route, version=version,
                latency_ms=int((time.time() - t0) * 1000),
                ok=error is None,
                error_type=error.__class__.__name__ if error is not None else None,
                status_code=status_code,
                **_context(kwargs),
            )

        if asyncio.iscoroutinefunction(fn):
            @wraps(fn)
            async def wrapped_async(*args, **kwargs):
                t0 = time.time()
                try:
                    result = await fn(*args, **kwargs)
                except Exception as e:
                    finish(t0, kwargs, e)
                    raise
                finish(t0, kwargs, None)
                return result
            return wrapped_async

        @wraps(fn)
        def wrapped(*args, **kwargs):
            t0 = time.time()
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                finish(t0, kwargs, e)
                raise
            finish(t0, kwargs, None)
            return result
        return wrapped
    return deco
