"""
Persisted state, interval scheduler and structured logging.
"""

import asyncio
import io
import json
import logging
from datetime import datetime, timezone

import pytest

from netlogger.common.exceptions import ConfigError, ControllerStateError
from netlogger.common.logging_setup import JsonFormatter, configure_service_logs, get_service_logger
from netlogger.common.scheduler import ScheduledLoop


# ============================================
# SHARED STATE
# ============================================

def test_state_write_read(state):
    state.write("controller", {"state": "logging", "interval_ms": 500})

    data = state.read("controller")
    assert data["state"] == "logging"
    assert data["interval_ms"] == 500
    assert "_updated_at" in data
    assert not list(state.state_dir.glob("*.tmp"))


def test_state_update_and_delete(state):
    state.write("jobs", {"a": 1})
    merged = state.update("jobs", {"b": 2})
    assert merged["a"] == 1 and merged["b"] == 2

    assert state.delete("jobs") is True
    assert state.delete("jobs") is False
    assert state.read("jobs") == {}


def test_state_unreadable_file_reads_empty(state):
    state.state_dir.mkdir(parents=True)
    (state.state_dir / "controller.json").write_text("{not json")
    assert state.read("controller") == {}


# ============================================
# SCHEDULED LOOP
# ============================================

def test_loop_rejects_bad_interval():
    async def noop():
        pass

    with pytest.raises(ConfigError):
        ScheduledLoop(0, noop)
    with pytest.raises(ConfigError):
        ScheduledLoop(True, noop)


async def test_loop_runs_and_stops():
    calls = []

    async def callback():
        calls.append(1)

    loop = ScheduledLoop(0.02, callback, name="test")
    await loop.start()
    with pytest.raises(ControllerStateError):
        loop.set_interval(1.0)
    await asyncio.sleep(0.15)
    await loop.stop()

    count = len(calls)
    assert count >= 3
    assert loop.execution_count == count
    await asyncio.sleep(0.05)
    assert len(calls) == count


async def test_loop_survives_callback_errors():
    calls = []

    async def callback():
        calls.append(1)
        raise RuntimeError("tick failed")

    loop = ScheduledLoop(0.01, callback, name="failing")
    await loop.start()
    await asyncio.sleep(0.08)
    await loop.stop()

    assert len(calls) >= 2
    assert loop.get_stats()["error_count"] == len(calls)


# ============================================
# LOGGING
# ============================================

def test_json_formatter_includes_service_and_extras():
    record = logging.LogRecord(
        name="netlogger.sync.worker",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="uploaded %d records",
        args=(100,),
        exc_info=None,
    )
    record.service = "sync.worker"
    record.chunk = 3

    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "uploaded 100 records"
    assert data["service"] == "sync.worker"
    assert data["level"] == "INFO"
    assert data["chunk"] == 3
    assert data["timestamp"] == datetime.fromtimestamp(record.created, timezone.utc).isoformat()


def test_configured_stream_and_level_apply_to_new_loggers(service_logs):
    early = get_service_logger("routing.early")
    buffer = io.StringIO()

    configure_service_logs("WARNING", buffer)
    late = get_service_logger("routing.late")

    early.info("not shown")
    early.warning("chunk kept for retry", extra={"records": 3})
    late.info("not shown either")
    late.error("store locked")

    lines = [json.loads(line) for line in buffer.getvalue().splitlines()]
    assert [(line["service"], line["level"], line["message"]) for line in lines] == [
        ("routing.early", "WARNING", "chunk kept for retry"),
        ("routing.late", "ERROR", "store locked"),
    ]
    assert lines[0]["records"] == 3


def test_service_falls_back_to_logger_name():
    record = logging.LogRecord("netlogger.api", logging.ERROR, __file__, 1, "boom", None, None)
    assert json.loads(JsonFormatter().format(record))["service"] == "api"
