"""
Unit tests for logging helpers.
"""

import json
import logging

from pillowchat.core.logging_config import (
    JSONFormatter, LoggerAdapter, filter_sensitive_data, truncate_large_data,
)


def _record(**extra):
    record = logging.LogRecord("pillowchat.test", logging.INFO, __file__, 1, "hello %s",
                               ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:

    def test_extra_fields_merged(self):
        output = json.loads(JSONFormatter().format(_record(extra_fields={"session_id": "s1"})))
        assert output["message"] == "hello world"
        assert output["level"] == "INFO"
        assert output["session_id"] == "s1"

    def test_non_serializable_values(self):
        output = json.loads(JSONFormatter().format(_record(extra_fields={"path": object()})))
        assert output["path"].startswith("<object")


class TestLoggerAdapter:

    def test_context_and_call_fields_combined(self):
        adapter = LoggerAdapter(logging.getLogger("t"), {"generation_id": "g1"})
        _, kwargs = adapter.process("msg", {"extra": {"extra_fields": {"chars": 3}}})
        assert kwargs["extra"]["extra_fields"] == {"generation_id": "g1", "chars": 3}


class TestFilters:

    def test_filter_sensitive_data(self):
        headers = {"Authorization": "Bearer sk-1", "X-Title": "Pillow AI",
                   "nested": [{"api_key": "sk-2"}]}
        assert filter_sensitive_data(headers) == {
            "Authorization": "***FILTERED***",
            "X-Title": "Pillow AI",
            "nested": [{"api_key": "***FILTERED***"}],
        }

    def test_truncate_large_data(self):
        assert truncate_large_data("short", max_length=10) == "short"
        assert truncate_large_data("x" * 20, max_length=10) == "x" * 10 + "... (truncated, total length: 20)"
