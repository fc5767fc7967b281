"""Tests for the contextual logger and its formatters."""

import json
import logging

from meterline.core.logging import ContextualLogger, _build_formatter


def _record(log: ContextualLogger, msg: str) -> logging.LogRecord:
    msg, kwargs = log.process(msg, {})
    return log.logger.makeRecord(
        log.logger.name, logging.INFO, __file__, 1, msg, (), None, extra=kwargs["extra"]
    )


def test_with_context_merges_and_drops_none():
    base = ContextualLogger(logging.getLogger("meterline.test"), {"request_id": "r1"})

    log = base.with_context(subscription_id="s1", user_id=None)

    assert log.dimensions == {"request_id": "r1", "subscription_id": "s1"}
    assert base.dimensions == {"request_id": "r1"}


def test_prefix_is_prepended():
    log = ContextualLogger(logging.getLogger("meterline.test")).with_prefix("[webhook] ")

    msg, _ = log.process("received", {})

    assert msg == "[webhook] received"


def test_json_formatter_renders_dimensions():
    log = ContextualLogger(logging.getLogger("meterline.test")).with_context(
        request_id="r1", organization_id="org-1"
    )

    line = _build_formatter(json_logs=True).format(_record(log, "Usage accepted"))

    payload = json.loads(line)
    assert payload["event"] == "Usage accepted"
    assert payload["request_id"] == "r1"
    assert payload["organization_id"] == "org-1"
    assert payload["level"] == "info"
    assert "timestamp" in payload


def test_console_formatter_includes_dimensions():
    log = ContextualLogger(logging.getLogger("meterline.test")).with_context(request_id="r1")

    line = _build_formatter(json_logs=False).format(_record(log, "Usage accepted"))

    assert "Usage accepted" in line
    assert "request_id=r1" in line
