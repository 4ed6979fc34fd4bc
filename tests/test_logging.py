"""
test_logging.py — Tests for structured logging and trigger log context.

Run with:
    pytest tests/test_logging.py -v
"""

from __future__ import annotations

import json
import logging

from backend.app.core.logging_config import (
    JSONFormatter,
    PrettyFormatter,
    get_trigger_context,
    trigger_context,
)


def _record(msg: str = "Fan-out done", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="backend.app.notifications.handlers", level=logging.INFO,
        pathname=__file__, lineno=1, msg=msg, args=(), exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestTriggerContext:

    def test_context_is_scoped(self):
        assert get_trigger_context() == {}
        with trigger_context(event_kind="report.created", event_id="r-1"):
            assert get_trigger_context()["event_id"] == "r-1"
            with trigger_context(event_id="r-2"):
                assert get_trigger_context() == {"event_kind": "report.created", "event_id": "r-2"}
            assert get_trigger_context()["event_id"] == "r-1"
        assert get_trigger_context() == {}


class TestFormatters:

    def test_json_includes_context_and_counts(self):
        with trigger_context(event_kind="announcement.created", event_id="a-1"):
            line = JSONFormatter().format(_record(success_count=12, failure_count=1))
        entry = json.loads(line)
        assert entry["message"] == "Fan-out done"
        assert entry["context"] == {"event_kind": "announcement.created", "event_id": "a-1"}
        assert entry["success_count"] == 12
        assert entry["failure_count"] == 1

    def test_pretty_shows_event(self):
        with trigger_context(event_kind="user.created", event_id="u-1"):
            line = PrettyFormatter().format(_record())
        assert "[user.created:u-1]" in line
