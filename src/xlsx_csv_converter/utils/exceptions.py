"""Centralized exception classes for the XLSX to CSV converter.

This module provides a hierarchy of custom exceptions with error codes,
HTTP status code mapping, and structured error details for consistent
error handling throughout the application.

Exception Hierarchy:
    XCCError (base)
    ├── InputError
    │   ├── OpenError
    │   ├── FileTooLargeError
    │   └── ValidationError
    ├── EvaluationError
    └── SerializationError

Error Codes:
    All errors have a unique error code (e.g., "E1001") that can be used
    for programmatic error handling and documentation.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: Input/workbook errors
    - E2xxx: Cell evaluation errors
    - E3xxx: Output errors
    - E9xxx: Internal/unexpected errors
    """

    # Input errors (E1xxx)
    WORKBOOK_OPEN_FAILED = "E1001"
    FILE_TOO_LARGE = "E1002"
    INVALID_INPUT = "E1003"

    # Evaluation errors (E2xxx)
    FORMULA_EVALUATION_FAILED = "E2001"

    # Output errors (E3xxx)
    SERIALIZATION_FAILED = "E3001"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions.

    Subclasses should set the `http_status` class attribute.
    """

    http_status: int = 500

    def get_http_status(self) -> int:
        """Get the HTTP status code for this exception.

        Returns:
            HTTP status code appropriate for this error.
        """
        return self.http_status


class XCCError(Exception, HTTPStatusMixin):
    """Base exception for all converter errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses.

        Returns:
            Dictionary with error information.
        """
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# Input Errors (E1xxx)
# =============================================================================


class InputError(XCCError):
    """Base class for errors caused by the supplied input."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_INPUT,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with source information.

        Args:
            message: Error message.
            error_code: Error code.
            source: Name of the problematic input (file name, upload name).
            details: Additional details.
        """
        details = details or {}
        if source:
            details["source"] = source
        super().__init__(message, error_code, details)
        self.source = source


class OpenError(InputError):
    """Raised when the input is not a readable workbook.

    Covers malformed archives, non-spreadsheet content and I/O failures
    while the input stream is being read.
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the underlying failure reason.

        Args:
            message: Error message.
            source: Optional input name.
            reason: Description of the underlying library failure.
            details: Additional details.
        """
        details = details or {}
        if reason:
            details["reason"] = reason
        super().__init__(
            message=message,
            error_code=ErrorCode.WORKBOOK_OPEN_FAILED,
            source=source,
            details=details,
        )
        self.reason = reason


class FileTooLargeError(InputError):
    """Raised when an upload exceeds the maximum allowed size."""

    http_status: int = 413

    def __init__(
        self,
        file_size: int,
        max_size: int,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with size information.

        Args:
            file_size: Actual file size in bytes.
            max_size: Maximum allowed size in bytes.
            source: Optional file name.
            details: Additional details.
        """
        details = details or {}
        details["file_size_bytes"] = file_size
        details["max_size_bytes"] = max_size
        message = (
            f"File size ({file_size} bytes) exceeds maximum "
            f"allowed size ({max_size} bytes)"
        )
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_TOO_LARGE,
            source=source,
            details=details,
        )
        self.file_size = file_size
        self.max_size = max_size


class ValidationError(InputError):
    """General validation error for request input."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with validation details.

        Args:
            message: Main error message.
            field: Field that failed validation.
            errors: List of validation errors.
            details: Additional details.
        """
        details = details or {}
        if field:
            details["field"] = field
        if errors:
            details["validation_errors"] = errors
        super().__init__(
            message=message,
            error_code=ErrorCode.INVALID_INPUT,
            details=details,
        )


# =============================================================================
# Evaluation Errors (E2xxx)
# =============================================================================


class EvaluationError(XCCError):
    """Raised when a formula cell cannot be evaluated.

    The cell formatter recovers from this error by emitting a placeholder
    for the affected field; it never aborts a conversion.
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        sheet: str | None = None,
        coordinate: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with cell location.

        Args:
            message: Error message.
            sheet: Title of the sheet holding the cell.
            coordinate: A1-style coordinate of the cell.
            details: Additional details.
        """
        details = details or {}
        if sheet:
            details["sheet"] = sheet
        if coordinate:
            details["coordinate"] = coordinate
        super().__init__(
            message=message,
            error_code=ErrorCode.FORMULA_EVALUATION_FAILED,
            details=details,
        )
        self.sheet = sheet
        self.coordinate = coordinate


# =============================================================================
# Output Errors (E3xxx)
# =============================================================================


class SerializationError(XCCError):
    """Raised when the CSV output cannot be written to its sink."""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        rows_buffered: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with output progress.

        Args:
            message: Error message.
            rows_buffered: Number of rows held in memory when writing failed.
            details: Additional details.
        """
        details = details or {}
        if rows_buffered is not None:
            details["rows_buffered"] = rows_buffered
        super().__init__(
            message=message,
            error_code=ErrorCode.SERIALIZATION_FAILED,
            details=details,
        )
        self.rows_buffered = rows_buffered
