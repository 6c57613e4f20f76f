"""Tests for structured logging setup."""

import json
import logging

from chatstream.infrastructure.observability import JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "chatstream.test", logging.WARNING, __file__, 1, "会话 %s", ("abc",), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_known_extras():
    line = JSONFormatter().format(_record(thread_id="t-1", tool_name="calculator"))
    data = json.loads(line)
    assert data["level"] == "WARNING"
    assert data["message"] == "会话 abc"
    assert data["thread_id"] == "t-1"
    assert data["tool_name"] == "calculator"


def test_json_formatter_skips_unknown_and_empty_extras():
    data = json.loads(JSONFormatter().format(_record(secret="x", thread_id=None)))
    assert "secret" not in data
    assert "thread_id" not in data


def test_setup_logging_is_idempotent():
    setup_logging("debug", "text")
    setup_logging("info", "json")
    named = [h for h in logging.root.handlers if h.get_name() == "chatstream"]
    assert len(named) == 1
    assert isinstance(named[0].formatter, JSONFormatter)
    assert logging.root.level == logging.INFO
