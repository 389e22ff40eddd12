"""
Tests for the route instrumentation decorator.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import json
import logging
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from quickworksheet.services.telemetry import instrument


def _events(caplog) -> list[dict]:
    return [
        json.loads(r.getMessage().split("=", 1)[1])
        for r in caplog.records
        if r.name == "quickworksheet.telemetry"
    ]


class TestInstrument:
    def test_success_event_carries_context(self, caplog):
        @instrument(route="/api/worksheets/generate")
        async def handler(lesson=None, session=None):
            return "ok"

        with caplog.at_level(logging.INFO, logger="quickworksheet.telemetry"):
            result = asyncio.run(handler(
                lesson=SimpleNamespace(topic="IT: debugging code"),
                session=SimpleNamespace(id="abcdefghijklmnop"),
            ))

        assert result == "ok"
        event = _events(caplog)[-1]
        assert event["route"] == "/api/worksheets/generate"
        assert event["version"] == "v1"
        assert event["ok"] is True
        assert event["session_id"] == "abcdefgh"
        assert event["topic"] == "IT: debugging code"

    def test_http_error_is_recorded_and_reraised(self, caplog):
        @instrument(route="/api/worksheets/generate")
        async def handler():
            raise HTTPException(status_code=429, detail="Please wait")

        with caplog.at_level(logging.INFO, logger="quickworksheet.telemetry"):
            with pytest.raises(HTTPException):
                asyncio.run(handler())

        event = _events(caplog)[-1]
        assert event["ok"] is False
        assert event["error_type"] == "HTTPException"
        assert event["status_code"] == 429

    def test_sync_handlers_are_supported(self, caplog):
        @instrument(route="/sync", version="v2")
        def handler():
            return 3

        with caplog.at_level(logging.INFO, logger="quickworksheet.telemetry"):
            assert handler() == 3
        assert _events(caplog)[-1]["version"] == "v2"
