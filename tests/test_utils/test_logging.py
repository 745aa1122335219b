"""Tests for the structured logging utilities."""

import logging
import time
from unittest.mock import MagicMock, patch

from xlsx_csv_converter.utils.logging import (
    LogContext,
    PerformanceMetrics,
    ProgressTracker,
    StructuredLogFormatter,
    StructuredLogger,
    clear_context,
    configure_logging,
    get_extra_context,
    get_logger,
    get_request_id,
    set_extra_context,
    set_request_id,
    timed_operation,
)


def _record(msg: str = "Test message") -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestContextVariables:
    """Tests for context variable management."""

    def setup_method(self) -> None:
        """Clear context before each test."""
        clear_context()

    def teardown_method(self) -> None:
        """Clear context after each test."""
        clear_context()

    def test_request_id_default_none(self) -> None:
        """Request ID should default to None."""
        assert get_request_id() is None

    def test_set_and_get_request_id(self) -> None:
        """Should be able to set and get request ID."""
        set_request_id("req-123")
        assert get_request_id() == "req-123"

    def test_extra_context_default_empty(self) -> None:
        """Extra context should default to empty dict."""
        assert get_extra_context() == {}

    def test_clear_context(self) -> None:
        """Clear context should reset all context variables."""
        set_request_id("req-123")
        set_extra_context({"source": "book.xlsx"})

        clear_context()

        assert get_request_id() is None
        assert get_extra_context() == {}


class TestPerformanceMetrics:
    """Tests for PerformanceMetrics class."""

    def test_initialization(self) -> None:
        """Test basic initialization."""
        metrics = PerformanceMetrics(operation="xlsx_to_csv")
        assert metrics.operation == "xlsx_to_csv"
        assert metrics.duration_seconds == 0.0
        assert metrics.sheets_processed == 0
        assert metrics.rows_written == 0
        assert metrics.columns == 0
        assert metrics.evaluation_errors == 0
        assert metrics.custom_metrics == {}

    def test_finish_calculates_duration(self) -> None:
        """Finish should calculate duration."""
        metrics = PerformanceMetrics(operation="xlsx_to_csv")
        time.sleep(0.01)
        metrics.finish()
        assert metrics.duration_seconds > 0
        assert metrics.end_time is not None

    def test_to_dict_with_all_fields(self) -> None:
        """Test to_dict with all fields populated."""
        metrics = PerformanceMetrics(operation="xlsx_to_csv")
        metrics.duration_seconds = 2.0
        metrics.sheets_processed = 3
        metrics.rows_written = 120
        metrics.columns = 7
        metrics.evaluation_errors = 2
        metrics.custom_metrics = {"bytes": 4096}

        result = metrics.to_dict()
        assert result["operation"] == "xlsx_to_csv"
        assert result["duration_seconds"] == 2.0
        assert result["sheets_processed"] == 3
        assert result["rows_written"] == 120
        assert result["columns"] == 7
        assert result["evaluation_errors"] == 2
        assert result["custom_metrics"]["bytes"] == 4096

    def test_to_dict_excludes_zero_values(self) -> None:
        """to_dict should exclude zero values."""
        metrics = PerformanceMetrics(operation="xlsx_to_csv")
        result = metrics.to_dict()
        assert "rows_written" not in result
        assert "evaluation_errors" not in result


class TestStructuredLogger:
    """Tests for StructuredLogger class."""

    def setup_method(self) -> None:
        """Set up test fixtures."""
        self.logger = get_logger("test_logger")

    def test_get_logger_returns_structured_logger(self) -> None:
        """get_logger should return StructuredLogger."""
        assert isinstance(get_logger(__name__), StructuredLogger)
        assert isinstance(self.logger.logger, logging.Logger)

    def test_build_message(self) -> None:
        """_build_message appends key-value pairs after a separator."""
        assert self.logger._build_message("Plain") == "Plain"
        assert (
            self.logger._build_message("Sheet flattened", sheet="Data", rows=2)
            == "Sheet flattened | sheet=Data, rows=2"
        )

    @patch.object(logging.Logger, "info")
    def test_info_logging(self, mock_info: MagicMock) -> None:
        """Info method should log at INFO level."""
        self.logger.info("Converting workbook", sheets=3)
        mock_info.assert_called_once()
        call_args = mock_info.call_args[0][0]
        assert "Converting workbook" in call_args
        assert "sheets=3" in call_args

    @patch.object(logging.Logger, "warning")
    def test_warning_logging(self, mock_warning: MagicMock) -> None:
        """Warning method should log at WARNING level."""
        self.logger.warning("Formula evaluation failed")
        mock_warning.assert_called_once()

    @patch.object(logging.Logger, "error")
    def test_error_logging(self, mock_error: MagicMock) -> None:
        """Error method should pass exc_info through."""
        self.logger.error("Write failed", exc_info=True)
        mock_error.assert_called_once()
        assert mock_error.call_args.kwargs["exc_info"] is True

    @patch.object(logging.Logger, "info")
    def test_log_performance(self, mock_info: MagicMock) -> None:
        """log_performance should log metrics."""
        metrics = PerformanceMetrics(operation="xlsx_to_csv")
        metrics.rows_written = 10
        self.logger.log_performance(metrics)
        call_args = mock_info.call_args[0][0]
        assert "Performance: xlsx_to_csv" in call_args
        assert "rows_written=10" in call_args

    @patch.object(logging.Logger, "info")
    def test_log_progress(self, mock_info: MagicMock) -> None:
        """log_progress should log progress information."""
        self.logger.log_progress("Flattening sheets", current=1, total=4)
        call_args = mock_info.call_args[0][0]
        assert "Progress: Flattening sheets" in call_args
        assert "current=1" in call_args
        assert "total=4" in call_args
        assert "25.0%" in call_args

    @patch.object(logging.Logger, "info")
    def test_log_progress_with_zero_total(self, mock_info: MagicMock) -> None:
        """log_progress should not divide by zero."""
        self.logger.log_progress("Flattening sheets", current=0, total=0)
        assert "0.0%" in mock_info.call_args[0][0]


class TestLogContext:
    """Tests for LogContext context manager."""

    def setup_method(self) -> None:
        """Clear context before each test."""
        clear_context()

    def teardown_method(self) -> None:
        """Clear context after each test."""
        clear_context()

    def test_context_sets_values(self) -> None:
        """LogContext should set context values within block."""
        with LogContext(source="book.xlsx"):
            assert get_extra_context() == {"source": "book.xlsx"}

    def test_context_restores_values(self) -> None:
        """LogContext should restore original values after block."""
        set_extra_context({"original": "value"})

        with LogContext(source="book.xlsx"):
            assert get_extra_context() == {"original": "value", "source": "book.xlsx"}

        assert get_extra_context() == {"original": "value"}

    def test_context_with_request_id(self) -> None:
        """LogContext should route request_id to its own variable."""
        with LogContext(request_id="req-456", source="book.xlsx"):
            assert get_request_id() == "req-456"
            assert "request_id" not in get_extra_context()

        assert get_request_id() is None

    def test_nested_contexts(self) -> None:
        """Nested LogContext should work correctly."""
        with LogContext(source="outer.xlsx"):
            with LogContext(source="inner.xlsx"):
                assert get_extra_context()["source"] == "inner.xlsx"
            assert get_extra_context()["source"] == "outer.xlsx"


class TestTimedOperation:
    """Tests for timed_operation context manager."""

    @patch.object(StructuredLogger, "log_performance")
    def test_timed_operation_logs_metrics(self, mock_log: MagicMock) -> None:
        """timed_operation should log metrics on exit."""
        logger = get_logger("test")
        with timed_operation(logger, "xlsx_to_csv") as metrics:
            assert isinstance(metrics, PerformanceMetrics)
            metrics.rows_written = 100

        mock_log.assert_called_once()
        logged_metrics = mock_log.call_args[0][0]
        assert logged_metrics.operation == "xlsx_to_csv"
        assert logged_metrics.rows_written == 100
        assert logged_metrics.end_time is not None

    @patch.object(StructuredLogger, "log_performance")
    def test_timed_operation_logs_on_error(self, mock_log: MagicMock) -> None:
        """timed_operation should still log when the block raises."""
        logger = get_logger("test")
        try:
            with timed_operation(logger, "xlsx_to_csv"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        mock_log.assert_called_once()


class TestProgressTracker:
    """Tests for ProgressTracker class."""

    @patch.object(StructuredLogger, "log_progress")
    def test_update_logs_progress(self, mock_log: MagicMock) -> None:
        """update should log progress with details."""
        logger = get_logger("test")
        tracker = ProgressTracker(logger, "Flattening sheets", total=3)
        tracker.update(details="Data")
        mock_log.assert_called_once_with("Flattening sheets", 1, 3, "Data")
        assert tracker.current == 1

    @patch.object(StructuredLogger, "log_progress")
    def test_update_with_interval(self, mock_log: MagicMock) -> None:
        """update should respect log_interval."""
        logger = get_logger("test")
        tracker = ProgressTracker(logger, "Flattening sheets", total=10, log_interval=5)
        for _ in range(4):
            tracker.update()
        assert mock_log.call_count == 0
        tracker.update()
        assert mock_log.call_count == 1

    @patch.object(StructuredLogger, "info")
    def test_complete_returns_duration(self, mock_info: MagicMock) -> None:
        """complete should return total duration."""
        logger = get_logger("test")
        tracker = ProgressTracker(logger, "Flattening sheets", total=0)
        duration = tracker.complete()
        assert duration >= 0
        mock_info.assert_called_once()


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_string_level(self) -> None:
        """configure_logging should accept string level."""
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_with_int_level(self) -> None:
        """configure_logging should accept int level."""
        configure_logging(level=logging.WARNING)
        assert logging.getLogger().level == logging.WARNING

    def test_configure_with_structured_formatter(self) -> None:
        """configure_logging should use StructuredLogFormatter by default."""
        configure_logging()
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, StructuredLogFormatter)

    def test_configure_without_structured_formatter(self) -> None:
        """configure_logging can use standard formatter."""
        configure_logging(use_structured_formatter=False)
        handler = logging.getLogger().handlers[0]
        assert not isinstance(handler.formatter, StructuredLogFormatter)


class TestStructuredLogFormatter:
    """Tests for StructuredLogFormatter class."""

    def setup_method(self) -> None:
        """Clear context before each test."""
        clear_context()

    def teardown_method(self) -> None:
        """Clear context after each test."""
        clear_context()

    def test_format_without_context(self) -> None:
        """Formatter should leave the message alone without context."""
        formatter = StructuredLogFormatter("%(message)s")
        assert formatter.format(_record()) == "Test message"

    def test_format_with_request_id_and_extra_context(self) -> None:
        """Formatter should prefix request_id and extra context."""
        set_request_id("req-123")
        set_extra_context({"source": "book.xlsx"})
        formatter = StructuredLogFormatter("%(message)s")

        result = formatter.format(_record())

        assert result == "[request_id=req-123 source=book.xlsx] Test message"

    def test_record_message_is_restored(self) -> None:
        """Formatting should not leave the prefix on the record."""
        set_request_id("req-123")
        record = _record()

        StructuredLogFormatter("%(message)s").format(record)

        assert record.msg == "Test message"
