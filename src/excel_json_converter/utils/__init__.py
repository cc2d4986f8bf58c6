"""Utilities package for the Excel/JSON converter.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from excel_json_converter.utils.exceptions import (
    ConverterError,
    ErrorCode,
    FileTooLargeError,
    FormatError,
    HTTPStatusMixin,
    InternalError,
    SchemaError,
    UnsupportedFormatError,
    ValidationError,
)
from excel_json_converter.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "ConverterError",
    "ErrorCode",
    "FileTooLargeError",
    "FormatError",
    "HTTPStatusMixin",
    "InternalError",
    "SchemaError",
    "UnsupportedFormatError",
    "ValidationError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
