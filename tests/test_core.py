"""
test_core.py — Logging formatters, log context and the error hierarchy.

Run with:
    pytest tests/test_core.py -v
"""

from __future__ import annotations

import asyncio
import json
import logging

from safespot.core.config import Settings
from safespot.core.errors import (
    ModelNotInitializedError,
    NetworkError,
    NotFoundError,
    ParseError,
    RefreshInProgressError,
    SafeSpotError,
)
from safespot.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from safespot.hazards.models import UserLocation
from safespot.state.context import build_context
from safespot.storage.blob_store import MemoryBlobStore


def _make_record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("safespot.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:

    def test_merge_and_clear(self):
        async def scenario():
            clear_log_context()
            set_log_context(request_id="abc")
            set_log_context(cycle_id="r0001")
            merged = dict(get_log_context())
            clear_log_context()
            return merged, get_log_context()

        merged, cleared = asyncio.run(scenario())
        assert merged == {"request_id": "abc", "cycle_id": "r0001"}
        assert cleared == {}

    def test_json_formatter_includes_context_and_extras(self):
        async def scenario():
            set_log_context(cycle_id="r0042")
            return JSONFormatter().format(_make_record(source="seismic", attempt=2))

        entry = json.loads(asyncio.run(scenario()))
        assert entry["message"] == "hello"
        assert entry["context"] == {"cycle_id": "r0042"}
        assert entry["source"] == "seismic"
        assert entry["attempt"] == 2

    def test_pretty_formatter_shows_cycle(self):
        async def scenario():
            set_log_context(cycle_id="r0007")
            return PrettyFormatter().format(_make_record())

        assert "[r0007]" in asyncio.run(scenario())


class TestErrors:

    def test_hierarchy(self):
        for exc in (
            NetworkError("seismic"),
            ParseError("bad"),
            ModelNotInitializedError(),
            NotFoundError("Shelter"),
            RefreshInProgressError(),
        ):
            assert isinstance(exc, SafeSpotError)

    def test_network_error_carries_cause(self):
        cause = TimeoutError("No response within 10s")
        exc = NetworkError("weather", cause=cause)
        assert exc.status_code == 503
        assert exc.error_code == "NETWORK_ERROR"
        assert exc.cause is cause
        assert exc.details == {"source": "weather"}
        assert "TimeoutError" in exc.message

    def test_not_found_details(self):
        exc = NotFoundError("Shelter", reason="no location set")
        assert exc.status_code == 404
        assert exc.details == {"resource": "Shelter", "reason": "no location set"}


class TestContextStartup:

    def test_startup_trains_model_and_shutdown_stops(self):
        config = Settings(
            SEVERITY_USE_MODEL=True,
            SEVERITY_TRAINING_SAMPLES=60,
            AUTO_REFRESH_DEFAULT=True,
        )
        ctx = build_context(config, blob_store=MemoryBlobStore(), shelters=())
        ctx.store.set_user_location(UserLocation(37.3230, -122.0322))

        async def scenario():
            assert not ctx.scorer.is_ready
            await ctx.startup()
            running = ctx.scheduler.periodic_running
            await ctx.shutdown()
            return running

        assert asyncio.run(scenario()) is True
        assert ctx.scorer.is_ready
        assert not ctx.scheduler.periodic_running
