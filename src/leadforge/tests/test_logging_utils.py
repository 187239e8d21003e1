# src/leadforge/tests/test_logging_utils.py
"""
Unit tests for logging utilities.

Tests cover:
- JSON output of StructuredFormatter including extras
- Context fields in HumanReadableFormatter
- setup_logging handler and level configuration
- Logger namespacing
- LogContext nesting, BuildContextFilter and ContextAdapter merging
"""
import json
import logging
import os
import pytest
from unittest.mock import patch

from leadforge.logging_utils import (
    BuildContextFilter,
    ContextAdapter,
    HumanReadableFormatter,
    LogContext,
    StructuredFormatter,
    get_logger,
    setup_logging,
)


def make_record(message="Build started", **extra):
    record = logging.LogRecord(
        name="leadforge.builder",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    @pytest.mark.unit
    def test_json_fields(self):
        """Test the core JSON fields."""
        data = json.loads(StructuredFormatter().format(make_record()))
        assert data["level"] == "INFO"
        assert data["message"] == "Build started"
        assert data["logger"] == "leadforge.builder"
        assert data["service"] == "leadforge"
        assert "timestamp" in data
        assert data["source"]["line"] == 10

    @pytest.mark.unit
    def test_extra_fields(self):
        """Test extras are included and unserializable values stringified."""
        record = make_record(business_id="b-1", task=object())
        data = json.loads(StructuredFormatter().format(record))
        assert data["extra"]["business_id"] == "b-1"
        assert isinstance(data["extra"]["task"], str)

    @pytest.mark.unit
    def test_without_timestamp_or_extra(self):
        """Test the optional sections can be turned off."""
        formatter = StructuredFormatter(include_timestamp=False, include_extra=False)
        data = json.loads(formatter.format(make_record(business_id="b-1")))
        assert "timestamp" not in data
        assert "extra" not in data


class TestHumanReadableFormatter:
    """Tests for HumanReadableFormatter."""

    @pytest.mark.unit
    def test_plain_line_with_context(self):
        """Test the line layout and context suffix."""
        formatter = HumanReadableFormatter(use_colors=False)
        line = formatter.format(make_record(task_id="1712", agent_type="website"))
        assert "INFO" in line
        assert "[leadforge.builder] Build started" in line
        assert line.endswith("(task_id=1712 agent_type=website)")

    @pytest.mark.unit
    def test_context_hidden(self):
        """Test show_context=False."""
        formatter = HumanReadableFormatter(use_colors=False, show_context=False)
        assert "task_id" not in formatter.format(make_record(task_id="1712"))


class TestSetupLogging:
    """Tests for setup_logging."""

    @pytest.mark.unit
    def test_single_handler_and_level(self):
        """Test repeated setup leaves one handler at the requested level."""
        setup_logging(level="debug", structured=False)
        logger = setup_logging(level="WARNING", structured=True)

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert logger.name == "leadforge"

    @pytest.mark.unit
    def test_environment_defaults(self):
        """Test LOG_LEVEL and APP_ENV are read when arguments are omitted."""
        with patch.dict(os.environ, {"LOG_LEVEL": "ERROR", "APP_ENV": "dev"}, clear=True):
            setup_logging()
        root = logging.getLogger()
        assert root.level == logging.ERROR
        assert isinstance(root.handlers[0].formatter, HumanReadableFormatter)

    @pytest.mark.unit
    def test_third_party_loggers_quieted(self):
        """Test HTTP client loggers stay at WARNING above DEBUG."""
        setup_logging(level="INFO", structured=False)
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestLoggerHelpers:
    """Tests for get_logger, LogContext and ContextAdapter."""

    @pytest.mark.unit
    def test_get_logger_namespace(self):
        """Test names are prefixed once."""
        assert get_logger("tasks").name == "leadforge.tasks"
        assert get_logger("leadforge.viewer").name == "leadforge.viewer"

    @pytest.mark.unit
    def test_log_context_nesting(self):
        """Test nested contexts restore the outer fields."""
        with LogContext(business_id="b-1"):
            with LogContext(task_id="1712"):
                assert LogContext.get_context() == {"business_id": "b-1", "task_id": "1712"}
            assert LogContext.get_context() == {"business_id": "b-1"}
        assert LogContext.get_context() == {}

    @pytest.mark.unit
    def test_adapter_merges_context(self, caplog):
        """Test adapter extras, LogContext fields and call extras all land on the record."""
        adapter = ContextAdapter(get_logger("tasks"), {"task_id": "1712"})
        with caplog.at_level(logging.INFO, logger="leadforge"):
            with LogContext(business_id="b-1"):
                adapter.info("Paused", extra={"progress": 40})

        record = caplog.records[-1]
        assert record.task_id == "1712"
        assert record.business_id == "b-1"
        assert record.progress == 40

    @pytest.mark.unit
    def test_filter_copies_context_onto_records(self):
        """Test LogContext fields reach plain logger records through the filter."""
        record = make_record(task_id="explicit")
        with LogContext(business_id="b-1", task_id="from-context"):
            assert BuildContextFilter().filter(record) is True

        assert record.business_id == "b-1"
        assert record.task_id == "explicit"
