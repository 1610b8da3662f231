"""Tests for structured logging."""

import json
import logging
import sys

from trackproof.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)


def _record(message: str = "hello %s", args: tuple[str, ...] = ("world",)) -> logging.LogRecord:
    return logging.LogRecord(
        "trackproof.test", logging.WARNING, __file__, 10, message, args, None
    )


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        test_id = "batch-123-abc"
        result = set_correlation_id(test_id)
        assert result == test_id
        assert get_correlation_id() == test_id

    def test_set_correlation_id_generates_id_when_none(self):
        """Test that setting None generates a short hex ID."""
        result = set_correlation_id(None)
        assert len(result) == 12
        int(result, 16)
        assert get_correlation_id() == result

    def test_filter_stamps_record(self):
        """Test that the filter copies the batch ID onto records."""
        set_correlation_id("batch-456")
        record = _record()

        assert CorrelationIdFilter().filter(record)
        assert record.correlation_id == "batch-456"


class TestFormatters:
    """Test the JSON and compact formatters."""

    def test_json_output(self):
        record = _record()
        record.correlation_id = "batch-789"
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "hello world"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "trackproof.test"
        assert payload["correlation_id"] == "batch-789"
        assert payload["line"] == 10

    def test_json_output_omits_empty_correlation_id(self):
        record = _record()
        record.correlation_id = ""
        formatter = CustomJsonFormatter("%(message)s")

        assert "correlation_id" not in json.loads(formatter.format(record))

    def test_exception_chain_root_cause_first(self):
        try:
            try:
                raise ValueError("root cause")
            except ValueError as e:
                raise RuntimeError("MusicBrainz search failed") from e
        except RuntimeError:
            exc_info = sys.exc_info()

        output = CompactExceptionFormatter().formatException(exc_info)
        headlines = [line for line in output.splitlines() if line.startswith("╰─►")]

        assert headlines == [
            "╰─► ValueError: root cause",
            "╰─► RuntimeError: MusicBrainz search failed",
        ]


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        """Test configuring logging with DEBUG level."""
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        logger = logging.getLogger("test")
        assert logger.getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_info_level(self):
        """Test configuring logging with INFO level."""
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        logger = logging.getLogger("test")
        assert logger.getEffectiveLevel() == logging.INFO

    def test_configure_logging_json_format(self):
        """Test configuring logging with JSON format."""
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")
        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, CustomJsonFormatter)

    def test_repeated_configuration_does_not_stack_handlers(self):
        configure_logging(log_level="INFO", json_format=False)
        configure_logging(log_level="INFO", json_format=False)

        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, CompactExceptionFormatter)

    def test_http_libraries_are_quieted(self):
        configure_logging(log_level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
