"""Structured logging for conversions.

Log lines carry the request ID and any :class:`LogContext` fields (such as
the sheet being processed) as a ``[key=value ...]`` prefix, and structured
keyword arguments as a ``| key=value, ...`` suffix::

    logger = get_logger(__name__)

    set_request_id("abc-123")
    with LogContext(sheet="Sheet1"):
        logger.info("Decoded sheet", rows=120)
    # [request_id=abc-123 sheet=Sheet1] Decoded sheet | rows=120

    with timed_operation(logger, "decode") as metrics:
        metrics.sheets_processed = 3

Context lives in contextvars, so it follows a request across
``asyncio.to_thread`` and the per-sheet worker threads.
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_log_fields: ContextVar[dict[str, Any] | None] = ContextVar(
    "log_fields", default=None
)


def get_request_id() -> str | None:
    """Return the request ID bound to the current context, if any."""
    return _request_id.get()


def set_request_id(request_id: str | None) -> None:
    _request_id.set(request_id)


def get_extra_context() -> dict[str, Any]:
    """Return a copy of the LogContext fields bound to the current context."""
    return dict(_log_fields.get() or {})


def set_extra_context(context: dict[str, Any]) -> None:
    _log_fields.set(dict(context))


def clear_context() -> None:
    """Forget the request ID and every LogContext field."""
    _request_id.set(None)
    _log_fields.set(None)


def _context_prefix() -> str:
    parts = []
    request_id = get_request_id()
    if request_id:
        parts.append(f"request_id={request_id}")
    parts.extend(f"{key}={value}" for key, value in get_extra_context().items())
    return f"[{' '.join(parts)}] " if parts else ""


_COUNTERS = ("sheets_processed", "rows_processed", "bytes_in", "bytes_out")


@dataclass
class PerformanceMetrics:
    """Counters and timing for one decode or encode call.

    Counters left at zero are omitted from the logged summary.
    """

    operation: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    duration_seconds: float = 0.0
    sheets_processed: int = 0
    rows_processed: int = 0
    bytes_in: int = 0
    bytes_out: int = 0
    custom_metrics: dict[str, Any] = field(default_factory=dict)
    _started: float = field(default_factory=time.perf_counter, repr=False)

    def finish(self) -> None:
        """Stamp the end time; the duration comes from a monotonic clock."""
        self.end_time = datetime.now(UTC)
        self.duration_seconds = time.perf_counter() - self._started

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "operation": self.operation,
            "duration_seconds": self.duration_seconds,
        }
        for name in _COUNTERS:
            value = getattr(self, name)
            if value > 0:
                result[name] = value
        if self.custom_metrics:
            result["custom_metrics"] = self.custom_metrics
        return result


class StructuredLogFormatter(logging.Formatter):
    """Formatter that prefixes each message with the bound log context."""

    def format(self, record: logging.LogRecord) -> str:
        prefix = _context_prefix()
        if not prefix:
            return super().format(record)
        # Format a copy so other handlers see the record unchanged.
        tagged = logging.makeLogRecord(record.__dict__)
        tagged.msg = f"{prefix}{record.msg}"
        return super().format(tagged)


class StructuredLogger:
    """Logger wrapper taking structured fields as keyword arguments.

    ``logger.info("Read workbook", sheets=2)`` logs
    ``Read workbook | sheets=2``.
    """

    def __init__(self, name: str) -> None:
        self._logger = logging.getLogger(name)
        self._name = name

    @property
    def logger(self) -> logging.Logger:
        """The wrapped standard library logger."""
        return self._logger

    def _build_message(self, message: str, **kwargs: Any) -> str:
        if not kwargs:
            return message
        fields = ", ".join(f"{key}={value}" for key, value in kwargs.items())
        return f"{message} | {fields}"

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.debug(self._build_message(message, **kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.info(self._build_message(message, **kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.warning(self._build_message(message, **kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._logger.error(self._build_message(message, **kwargs), exc_info=exc_info)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._logger.exception(self._build_message(message, **kwargs))

    def log_performance(self, metrics: PerformanceMetrics) -> None:
        self.info(f"Performance: {metrics.operation}", **metrics.to_dict())

    def log_conversion_result(
        self,
        direction: str,
        success: bool,
        duration_seconds: float,
        sheets: int = 0,
        rows: int = 0,
        error_message: str | None = None,
    ) -> None:
        """Log the outcome of one HTTP conversion request.

        Successful conversions log at INFO, failed ones at ERROR.

        Args:
            direction: ``excel_to_json`` or ``json_to_excel``.
            success: Whether the conversion produced a response body.
            duration_seconds: Wall time spent converting.
            sheets: Sheets decoded or written.
            rows: Data rows decoded or written.
            error_message: Message of the error that ended the conversion.
        """
        fields: dict[str, Any] = {
            "direction": direction,
            "success": success,
            "duration_seconds": f"{duration_seconds:.3f}",
            "sheets": sheets,
            "rows": rows,
        }
        if error_message:
            fields["error"] = error_message

        level = logging.INFO if success else logging.ERROR
        self._logger.log(level, self._build_message("Conversion completed", **fields))


class LogContext:
    """Bind fields to every log line emitted inside a ``with`` block.

    A ``request_id`` keyword sets the request ID instead of a plain field.
    Nested contexts merge with, and on exit restore, the enclosing one.
    """

    def __init__(self, **kwargs: Any) -> None:
        self._request_id = kwargs.pop("request_id", None)
        self._fields = kwargs
        self._tokens: list[tuple[ContextVar[Any], Token[Any]]] = []

    def __enter__(self) -> "LogContext":
        merged = {**get_extra_context(), **self._fields}
        self._tokens.append((_log_fields, _log_fields.set(merged)))
        if self._request_id is not None:
            self._tokens.append((_request_id, _request_id.set(self._request_id)))
        return self

    def __exit__(self, *args: Any) -> None:
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


@contextmanager
def timed_operation(
    logger: StructuredLogger,
    operation: str,
) -> Generator[PerformanceMetrics, None, None]:
    """Time a block and log its metrics when it ends.

    Metrics are logged even when the block raises; ``custom_metrics`` then
    records ``failed=True``.

    Yields:
        The PerformanceMetrics the block fills in.
    """
    metrics = PerformanceMetrics(operation=operation)
    try:
        yield metrics
    except BaseException:
        metrics.custom_metrics["failed"] = True
        raise
    finally:
        metrics.finish()
        logger.log_performance(metrics)


def configure_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    use_structured_formatter: bool = True,
) -> None:
    """Install a single stream handler on the root logger.

    Args:
        level: Log level, as a number or a name such as ``"INFO"``.
        format_string: Format for each line; DEFAULT_FORMAT when None.
        use_structured_formatter: Prefix lines with the bound log context.
    """
    if isinstance(level, str):
        level = logging.getLevelNamesMapping()[level.upper()]

    formatter_class = (
        StructuredLogFormatter if use_structured_formatter else logging.Formatter
    )
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter_class(format_string or DEFAULT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Return a StructuredLogger, usually for ``__name__``."""
    return StructuredLogger(name)
