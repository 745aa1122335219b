"""Utilities package for the XLSX to CSV converter.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from xlsx_csv_converter.utils.exceptions import (
    ErrorCode,
    EvaluationError,
    FileTooLargeError,
    HTTPStatusMixin,
    InputError,
    OpenError,
    SerializationError,
    ValidationError,
    XCCError,
)
from xlsx_csv_converter.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "ErrorCode",
    "EvaluationError",
    "FileTooLargeError",
    "HTTPStatusMixin",
    "InputError",
    "OpenError",
    "SerializationError",
    "ValidationError",
    "XCCError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
