"""Centralized exception classes for the Excel/JSON converter.

This module provides a hierarchy of custom exceptions with error codes,
HTTP status code mapping, and structured error details for consistent
error handling throughout the application.

Exception Hierarchy:
    ConverterError (base)
    ├── FormatError
    │   ├── UnsupportedFormatError
    │   └── FileTooLargeError
    ├── SchemaError
    │   ├── BlankHeaderError
    │   └── DuplicateHeaderError
    ├── ValidationError
    └── InternalError

Error Codes:
    All errors have a unique error code (e.g., "E1001") that can be used
    for programmatic error handling and documentation.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: Binary container / file errors
    - E2xxx: Structural (schema) errors
    - E3xxx: Request validation errors
    - E9xxx: Internal/unexpected errors
    """

    # Format errors (E1xxx)
    CORRUPT_WORKBOOK = "E1001"
    UNSUPPORTED_FORMAT = "E1002"
    FILE_TOO_LARGE = "E1003"

    # Schema errors (E2xxx)
    AMBIGUOUS_SCHEMA = "E2001"
    BLANK_HEADER = "E2002"
    DUPLICATE_HEADER = "E2003"

    # Validation errors (E3xxx)
    INVALID_REQUEST = "E3001"
    EMPTY_DOCUMENT = "E3002"
    INVALID_JSON = "E3003"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"
    UNEXPECTED_ERROR = "E9002"


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


class ConverterError(Exception, HTTPStatusMixin):
    """Base exception for all converter errors.

    It provides:
    - Unique error codes for programmatic handling
    - HTTP status code mapping for API responses
    - Structured error details for logging and debugging

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
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# Format Errors (E1xxx)
# =============================================================================


class FormatError(ConverterError):
    """Raised when the binary workbook container is unreadable or corrupt."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.CORRUPT_WORKBOOK,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the uploaded filename.

        Args:
            message: Error message.
            error_code: Error code.
            filename: Client-supplied name of the problematic upload.
            details: Additional details.
        """
        details = details or {}
        if filename:
            details["filename"] = filename
        super().__init__(message, error_code, details)
        self.filename = filename


class UnsupportedFormatError(FormatError):
    """Raised when the uploaded content is not a supported workbook format."""

    http_status: int = 415

    def __init__(
        self,
        message: str,
        detected_mime: str | None = None,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with format information.

        Args:
            message: Error message.
            detected_mime: MIME type that was detected.
            filename: Optional client filename.
            details: Additional details.
        """
        details = details or {}
        if detected_mime:
            details["detected_mime_type"] = detected_mime
        super().__init__(
            message=message,
            error_code=ErrorCode.UNSUPPORTED_FORMAT,
            filename=filename,
            details=details,
        )
        self.detected_mime = detected_mime


class FileTooLargeError(FormatError):
    """Raised when a payload exceeds the maximum allowed size."""

    http_status: int = 413

    def __init__(
        self,
        file_size: int,
        max_size: int,
        filename: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with size information.

        Args:
            file_size: Actual payload size in bytes.
            max_size: Maximum allowed size in bytes.
            filename: Optional client filename.
            details: Additional details.
        """
        details = details or {}
        details["file_size_bytes"] = file_size
        details["max_size_bytes"] = max_size
        message = (
            f"Payload size ({file_size} bytes) exceeds maximum "
            f"allowed size ({max_size} bytes)"
        )
        super().__init__(
            message=message,
            error_code=ErrorCode.FILE_TOO_LARGE,
            filename=filename,
            details=details,
        )
        self.file_size = file_size
        self.max_size = max_size


# =============================================================================
# Schema Errors (E2xxx)
# =============================================================================


class SchemaError(ConverterError):
    """Raised when sheet structure is ambiguous and cannot be mapped."""

    http_status: int = 422

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.AMBIGUOUS_SCHEMA,
        sheet: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the offending sheet name.

        Args:
            message: Main error message.
            error_code: Error code.
            sheet: Name of the sheet whose structure is ambiguous.
            details: Additional details.
        """
        details = details or {}
        if sheet is not None:
            details["sheet"] = sheet
        super().__init__(message, error_code, details)
        self.sheet = sheet


class BlankHeaderError(SchemaError):
    """Raised when a blank header cell precedes a non-blank one."""

    def __init__(
        self,
        sheet: str,
        column_index: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with header position.

        Args:
            sheet: Sheet name.
            column_index: Zero-based index of the blank header cell.
            details: Additional details.
        """
        details = details or {}
        details["column_index"] = column_index
        super().__init__(
            message=(
                f"Sheet '{sheet}' has a blank header cell in column "
                f"{column_index + 1} followed by named columns"
            ),
            error_code=ErrorCode.BLANK_HEADER,
            sheet=sheet,
            details=details,
        )
        self.column_index = column_index


class DuplicateHeaderError(SchemaError):
    """Raised when a header row names the same column more than once."""

    def __init__(
        self,
        sheet: str,
        column_name: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the duplicated column name.

        Args:
            sheet: Sheet name.
            column_name: The header value that appears more than once.
            details: Additional details.
        """
        details = details or {}
        details["column"] = column_name
        super().__init__(
            message=f"Sheet '{sheet}' has duplicate header '{column_name}'",
            error_code=ErrorCode.DUPLICATE_HEADER,
            sheet=sheet,
            details=details,
        )
        self.column_name = column_name


# =============================================================================
# Validation Errors (E3xxx)
# =============================================================================


class ValidationError(ConverterError):
    """Raised when a request is semantically empty or invalid."""

    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INVALID_REQUEST,
        field: str | None = None,
        errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with validation details.

        Args:
            message: Main error message.
            error_code: Error code.
            field: Field that failed validation.
            errors: List of validation errors.
            details: Additional details.
        """
        details = details or {}
        if field:
            details["field"] = field
        if errors:
            details["validation_errors"] = errors
        super().__init__(message, error_code, details)
        self.field = field
        self.errors = errors or []


# =============================================================================
# Internal Errors (E9xxx)
# =============================================================================


class InternalError(ConverterError):
    """Raised for unexpected failures during a conversion."""

    http_status: int = 500

    def __init__(
        self,
        message: str = "Internal server error",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=ErrorCode.UNEXPECTED_ERROR,
            details=details,
        )
