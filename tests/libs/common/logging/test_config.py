"""Tests for logging configuration.

Tests verify:
- configure_logging sets up JSON logging correctly
- RequestIDFilter adds request IDs to log records
- log_with_context adds context fields properly
"""

import json
import logging
from io import StringIO

import pytest

from libs.common.logging.config import (
    RequestIDFilter,
    configure_logging,
    get_logger,
    log_with_context,
)
from libs.common.logging.context import clear_request_id, set_request_id
from libs.common.logging.formatter import JSONFormatter


def _record() -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="/path/to/file.py",
        lineno=42,
        msg="Test",
        args=(),
        exc_info=None,
    )


class TestRequestIDFilter:
    """Test suite for RequestIDFilter."""

    def setup_method(self) -> None:
        clear_request_id()

    def teardown_method(self) -> None:
        clear_request_id()

    def test_filter_adds_request_id_to_record(self) -> None:
        """Filter copies the request ID from context onto the record."""
        record = _record()

        set_request_id("req-123")
        result = RequestIDFilter().filter(record)

        assert result is True
        assert record.request_id == "req-123"  # type: ignore[attr-defined]

    def test_filter_adds_none_when_no_request_id(self) -> None:
        record = _record()

        result = RequestIDFilter().filter(record)

        assert result is True
        assert record.request_id is None  # type: ignore[attr-defined]


class TestConfigureLogging:
    """Test suite for configure_logging."""

    def teardown_method(self) -> None:
        """Reset root logger."""
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(logging.WARNING)
        clear_request_id()

    def test_configure_logging_returns_root_logger(self) -> None:
        assert configure_logging(service_name="test") is logging.getLogger()

    def test_configure_logging_sets_log_level(self) -> None:
        logger = configure_logging(service_name="test", log_level="debug")
        assert logger.level == logging.DEBUG

        logger = configure_logging(service_name="test", log_level="WARNING")
        assert logger.level == logging.WARNING

    def test_configure_logging_invalid_level_raises_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(service_name="test", log_level="LOUD")

    def test_configure_logging_installs_single_json_handler(self) -> None:
        root_logger = logging.getLogger()
        root_logger.addHandler(logging.StreamHandler())

        configure_logging(service_name="query_gateway")

        assert len(root_logger.handlers) == 1
        handler = root_logger.handlers[0]
        assert isinstance(handler.formatter, JSONFormatter)
        assert handler.formatter.service_name == "query_gateway"
        assert any(isinstance(f, RequestIDFilter) for f in handler.filters)

    def test_configured_handler_outputs_json_with_request_id(self) -> None:
        logger = configure_logging(service_name="query_gateway")
        handler = logger.handlers[0]
        stream = StringIO()
        handler.setStream(stream)  # type: ignore[attr-defined]

        set_request_id("req-abc")
        logging.getLogger("libs.query_gateway.gateway").info(
            "sql_query_gateway", extra={"status": "success", "row_count": 3}
        )

        log_dict = json.loads(stream.getvalue().strip())
        assert log_dict["service"] == "query_gateway"
        assert log_dict["request_id"] == "req-abc"
        assert log_dict["message"] == "sql_query_gateway"
        assert log_dict["context"] == {"status": "success", "row_count": 3}


class TestGetLogger:
    def test_get_logger_returns_named_logger(self) -> None:
        logger = get_logger("test")
        assert isinstance(logger, logging.Logger)
        assert logger.name == "test"

    def test_get_logger_none_returns_root(self) -> None:
        assert get_logger(None) is logging.getLogger()


class TestLogWithContext:
    """Test suite for log_with_context."""

    def setup_method(self) -> None:
        self.stream = StringIO()
        self.logger = logging.getLogger("test_log_with_context")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        self.logger.propagate = False

        handler = logging.StreamHandler(self.stream)
        handler.setFormatter(JSONFormatter(service_name="test"))
        handler.addFilter(RequestIDFilter())
        self.logger.addHandler(handler)

    def teardown_method(self) -> None:
        self.logger.handlers.clear()

    def test_log_with_context_adds_context_fields(self) -> None:
        log_with_context(
            self.logger,
            "INFO",
            "sql_query_gateway",
            status="execution_failed",
            error_code="COLUMN_NOT_FOUND",
        )

        log_dict = json.loads(self.stream.getvalue().strip())
        assert log_dict["context"] == {
            "status": "execution_failed",
            "error_code": "COLUMN_NOT_FOUND",
        }

    def test_log_with_context_redacts_sql(self) -> None:
        log_with_context(self.logger, "WARNING", "rejected", sql="DROP TABLE users")

        log_dict = json.loads(self.stream.getvalue().strip())
        assert log_dict["context"]["sql"] == "[redacted]"
        assert "DROP TABLE" not in self.stream.getvalue()

    def test_log_with_context_different_levels(self) -> None:
        for level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            self.stream.truncate(0)
            self.stream.seek(0)

            log_with_context(self.logger, level, f"Test {level} message", test="value")

            log_dict = json.loads(self.stream.getvalue().strip())
            assert log_dict["level"] == level
            assert log_dict["message"] == f"Test {level} message"
