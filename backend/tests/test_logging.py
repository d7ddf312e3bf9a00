"""
Unit tests for structured logging configuration.

Tests verify:
- Logging configuration works correctly
- Context variables (trace_id, request_id, query_seq) are added to events
- Trace ID generation works
"""
import json
import logging
import uuid
from io import StringIO

from taskrank.core.logging import (
    SERVICE_NAME,
    add_trace_context,
    configure_logging,
    generate_request_id,
    generate_trace_id,
    get_logger,
    get_query_seq,
    get_request_id,
    get_trace_id,
    set_query_seq,
    set_request_id,
    set_trace_id,
)


class TestLoggingConfiguration:
    """Test logging configuration and setup."""

    def test_configure_logging_json_output(self):
        output = StringIO()
        configure_logging(log_level="INFO", json_output=True)

        # basicConfig is a no-op when pytest already attached handlers
        root_logger = logging.getLogger()
        previous_level = root_logger.level
        root_logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(output)
        root_logger.addHandler(handler)
        try:
            set_query_seq(7)
            get_logger("taskrank.tests").info("test_message", test_field="test_value")
            handler.flush()
        finally:
            set_query_seq(None)
            root_logger.removeHandler(handler)
            root_logger.setLevel(previous_level)

        lines = [line for line in output.getvalue().splitlines() if "test_message" in line]
        assert lines, "No log output captured"
        event = json.loads(lines[-1])
        assert event["event"] == "test_message"
        assert event["test_field"] == "test_value"
        assert event["query_seq"] == 7
        assert event["level"] == "info"

    def test_configure_logging_console_output(self):
        output = StringIO()
        configure_logging(log_level="INFO", json_output=False)

        root_logger = logging.getLogger()
        previous_level = root_logger.level
        root_logger.setLevel(logging.INFO)
        handler = logging.StreamHandler(output)
        root_logger.addHandler(handler)
        try:
            get_logger("taskrank.tests.console").info("console_message", answer=42)
            handler.flush()
        finally:
            root_logger.removeHandler(handler)
            root_logger.setLevel(previous_level)
            configure_logging(log_level="INFO", json_output=True)

        assert "console_message" in output.getvalue()


class TestTraceContext:
    """Test context variables."""

    def test_context_is_added_to_events(self):
        set_trace_id("trace-1")
        set_request_id("request-1")
        set_query_seq(3)
        try:
            event = add_trace_context(None, "info", {"event": "something"})
        finally:
            set_trace_id(None)
            set_request_id(None)
            set_query_seq(None)

        assert event["trace_id"] == "trace-1"
        assert event["request_id"] == "request-1"
        assert event["query_seq"] == 3
        assert event["service"] == SERVICE_NAME
        assert "timestamp" in event

    def test_unset_context_is_omitted(self):
        event = add_trace_context(None, "info", {"event": "something"})

        assert "trace_id" not in event
        assert "query_seq" not in event

    def test_getters(self):
        set_trace_id("t")
        set_request_id("r")
        set_query_seq(1)
        try:
            assert get_trace_id() == "t"
            assert get_request_id() == "r"
            assert get_query_seq() == 1
        finally:
            set_trace_id(None)
            set_request_id(None)
            set_query_seq(None)

    def test_generated_ids_are_uuids(self):
        assert uuid.UUID(generate_trace_id())
        assert generate_request_id() != generate_request_id()
