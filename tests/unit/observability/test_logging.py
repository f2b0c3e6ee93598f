"""
todo-ledger — unit tests for structured logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-19

Purpose
- Check structlog configuration and correlation context binding.

What this test file should cover
- JSON lines carry correlation and extra fields; structlog events share the handlers.
- Invalid settings are rejected and a new setup replaces old handlers.
"""

from __future__ import annotations

import io
import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from todo_ledger.observability.logging import (
    LoggingConfig,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)


@pytest.fixture(autouse=True)
def _close_logging() -> Iterator[None]:
    yield
    shutdown_logging()
    structlog.reset_defaults()


def _lines(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest.mark.unit
def test_json_lines_include_correlation_and_extra_fields() -> None:
    stream = io.StringIO()
    logger = setup_logging({"log_level": "INFO", "log_format": "json"}, stream=stream)

    with correlation_scope(command="start", task_id="T001"):
        logger.info("task started", extra={"attempt": 2, "path": Path("a/b")})
    logger.debug("hidden")

    (event,) = _lines(stream)
    assert event["message"] == "task started"
    assert event["level"] == "INFO"
    assert event["command"] == "start"
    assert event["task_id"] == "T001"
    assert event["fields"] == {"attempt": 2, "path": "a/b"}
    assert str(event["timestamp"]).endswith("Z")
    assert get_correlation_context() == {}


@pytest.mark.unit
def test_structlog_events_reach_the_same_handlers() -> None:
    stream = io.StringIO()
    setup_logging({"log_level": "INFO"}, stream=stream)
    structlog.get_logger("todo_ledger.control_plane").info(
        "todo_ledger_mutation", action="status_changed", task_id="T002"
    )

    (event,) = _lines(stream)
    assert event["message"] == "todo_ledger_mutation"
    assert event["logger"] == "todo_ledger.control_plane"
    assert event["task_id"] == "T002"
    assert event["fields"] == {"action": "status_changed"}


@pytest.mark.unit
def test_text_format_and_file_sink(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "ledger.log"
    handle = setup_structured_logging(
        LoggingConfig(level="WARNING", log_format="text", log_file=log_file, log_to_stderr=False)
    )
    handle.logger.warning("checksum drift")
    handle.flush()

    assert "WARNING todo_ledger: checksum drift" in log_file.read_text(encoding="utf-8")
    shutdown_logging(handle)
    assert handle.is_shutdown
    assert get_active_logging_handle() is None


@pytest.mark.unit
def test_invalid_settings_are_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported log format"):
        setup_structured_logging(LoggingConfig(log_format="xml"))
    with pytest.raises(ValueError, match="unsupported logging level"):
        setup_structured_logging(LoggingConfig(level="LOUD"))


@pytest.mark.unit
def test_new_setup_replaces_previous_handlers() -> None:
    first = io.StringIO()
    second = io.StringIO()
    setup_logging({"log_level": "INFO"}, stream=first)
    logger = setup_logging({"log_level": "INFO"}, stream=second)
    logger.info("only once")

    assert first.getvalue() == ""
    assert len(_lines(second)) == 1
    assert len(logging.getLogger("todo_ledger").handlers) == 1
