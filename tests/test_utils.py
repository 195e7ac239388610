from __future__ import annotations

import json
import logging
import uuid

from triage.utils import JsonLogFormatter, get_logger, truncate


def test_json_log_formatter_includes_request_id_and_stage():
    formatter = JsonLogFormatter()
    rec = logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="hello",
        args=(),
        exc_info=None,
    )
    rec.request_id = "rid-1"
    rec.stage = "intent"
    payload = json.loads(formatter.format(rec))
    assert payload["logger"] == "test"
    assert payload["message"] == "hello"
    assert payload["request_id"] == "rid-1"
    assert payload["stage"] == "intent"


def test_get_logger_plain_and_json_modes(monkeypatch):
    name_plain = f"logger_plain_{uuid.uuid4().hex}"
    monkeypatch.setenv("LOG_FORMAT", "plain")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    lg_plain = get_logger(name_plain)
    assert lg_plain.level == logging.DEBUG
    assert isinstance(lg_plain.handlers[0].formatter, logging.Formatter)
    assert len(get_logger(name_plain).handlers) == 1

    name_json = f"logger_json_{uuid.uuid4().hex}"
    monkeypatch.setenv("LOG_FORMAT", "json")
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    lg_json = get_logger(name_json)
    assert isinstance(lg_json.handlers[0].formatter, JsonLogFormatter)


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("a   b\nc") == "a b c"
    out = truncate("x" * 100, limit=10)
    assert len(out) == 10
    assert out.endswith("...")
