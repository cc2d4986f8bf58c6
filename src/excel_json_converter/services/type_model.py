"""Shared type model: widening lattice and cell <-> JSON coercions.

Column types widen along ``boolean < integer < float < string``. ``date``
sits beside the numeric chain and joins anything but itself at ``string``.
``mixed`` is the top element; the inferencer never reaches it, but layout
summaries use it for columns whose cells carry different tags.

Coercions are total in both directions:

* workbook cell -> JSON value (decode)
* JSON value -> workbook cell (encode)
* native library value -> workbook cell (reading openpyxl/xlrd output)
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, timedelta
from typing import Any

from excel_json_converter.config import DEFAULT_DATE_FORMATS
from excel_json_converter.utils.exceptions import ValidationError
from excel_json_converter.utils.logging import get_logger
from excel_json_converter.workbook import (
    EMPTY_CELL,
    CellType,
    CellValue,
    InferredType,
)

logger = get_logger(__name__)

__all__ = [
    "MAX_SAFE_INTEGER",
    "DatePatterns",
    "canonical_json",
    "cell_from_native",
    "cell_to_json",
    "cell_types_of",
    "inferred_type_of",
    "json_to_cell",
    "widen",
]

# Largest integer an IEEE-754 double (Excel's only number type) holds exactly.
MAX_SAFE_INTEGER = 2**53 - 1

_NUMERIC_CHAIN: dict[InferredType, int] = {
    InferredType.BOOLEAN: 0,
    InferredType.INTEGER: 1,
    InferredType.FLOAT: 2,
    InferredType.STRING: 3,
}

_CELL_TO_INFERRED: dict[CellType, InferredType] = {
    CellType.BOOLEAN: InferredType.BOOLEAN,
    CellType.INTEGER: InferredType.INTEGER,
    CellType.FLOAT: InferredType.FLOAT,
    CellType.TEXT: InferredType.STRING,
    CellType.DATETIME: InferredType.DATE,
}

_TIME_DIRECTIVES = ("%H", "%I", "%M", "%S", "%f", "%X", "%c", "%p")
_DATE_DIRECTIVES = ("%Y", "%y", "%m", "%d", "%j", "%b", "%B", "%x", "%c")


def widen(current: InferredType | None, observed: InferredType) -> InferredType:
    """Join two column types in the widening lattice.

    ``None`` stands for "nothing observed yet" and is the identity, so a
    column holding only dates stays ``date``. The join is associative,
    commutative and idempotent.
    """
    if current is None or current is observed:
        return observed
    if InferredType.MIXED in (current, observed):
        return InferredType.MIXED
    if InferredType.DATE in (current, observed):
        return InferredType.STRING
    if _NUMERIC_CHAIN[current] >= _NUMERIC_CHAIN[observed]:
        return current
    return observed


def inferred_type_of(cell: CellValue) -> InferredType | None:
    """Column type contributed by a single cell; ``None`` for Empty."""
    return _CELL_TO_INFERRED.get(cell.cell_type)


def canonical_json(value: Any) -> str:
    """Serialize nested JSON values deterministically."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class DatePatterns:
    """A set of strptime formats recognised as dates when encoding.

    Formats without an hour/minute/second directive yield ``date`` values,
    formats without a year/month/day directive yield ``time`` values and the
    others ``datetime`` values. Matching is locale independent as long as the
    formats avoid ``%a``/``%b``-style names.
    """

    def __init__(self, formats: Sequence[str] | None = None) -> None:
        self._formats: list[tuple[str, bool, bool]] = [
            (
                fmt,
                any(d in fmt for d in _DATE_DIRECTIVES),
                any(d in fmt for d in _TIME_DIRECTIVES),
            )
            for fmt in (formats if formats is not None else DEFAULT_DATE_FORMATS)
        ]

    @property
    def formats(self) -> list[str]:
        return [fmt for fmt, _, _ in self._formats]

    def parse(self, text: str) -> date | datetime | time | None:
        """Return the parsed value, or ``None`` if no format matches."""
        if not text or not text[0].isdigit():
            return None
        for fmt, has_date, has_time in self._formats:
            try:
                parsed = datetime.strptime(text, fmt)
            except ValueError:
                continue
            if not has_time:
                return parsed.date()
            if not has_date:
                return parsed.time()
            return parsed
        return None


# =============================================================================
# Decode direction
# =============================================================================


def cell_to_json(cell: CellValue) -> Any:
    """Render a cell as a JSON-compatible value."""
    if cell.cell_type is CellType.EMPTY:
        return None
    if cell.cell_type is CellType.DATETIME:
        return _iso_format(cell.value)
    return cell.value


def _iso_format(value: Any) -> str:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None).isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


def cell_from_native(value: Any, *, date_only: bool = False) -> CellValue:
    """Tag a value produced by a workbook reader.

    Integral floats inside the safe integer range become Integer, since
    .xls files and some writers store every number as a double. The empty
    string is Empty. ``date_only`` drops the time part of datetimes whose
    number format shows no time.
    """
    if value is None:
        return EMPTY_CELL
    if isinstance(value, bool):
        return CellValue(CellType.BOOLEAN, value)
    if isinstance(value, int):
        return CellValue(CellType.INTEGER, value)
    if isinstance(value, float):
        return _number_cell(value)
    if isinstance(value, str):
        return CellValue(CellType.TEXT, value) if value else EMPTY_CELL
    if isinstance(value, datetime):
        if date_only:
            return CellValue(CellType.DATETIME, value.date())
        return CellValue(CellType.DATETIME, value.replace(tzinfo=None))
    if isinstance(value, (date, time)):
        return CellValue(CellType.DATETIME, value)
    if isinstance(value, timedelta):
        # Duration formats ([h]:mm) have no ISO cell counterpart here.
        return CellValue(CellType.TEXT, str(value))
    return CellValue(CellType.TEXT, str(value))


def _number_cell(value: float) -> CellValue:
    if math.isfinite(value) and value.is_integer() and abs(value) <= MAX_SAFE_INTEGER:
        return CellValue(CellType.INTEGER, int(value))
    return CellValue(CellType.FLOAT, value)


# =============================================================================
# Encode direction
# =============================================================================


def json_to_cell(value: Any, date_patterns: DatePatterns) -> CellValue:
    """Coerce one JSON value into a workbook cell.

    Raises:
        ValidationError: For non-finite numbers or non-JSON values.
    """
    if value is None:
        return EMPTY_CELL
    if isinstance(value, bool):
        return CellValue(CellType.BOOLEAN, value)
    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INTEGER:
            logger.warning(
                "Integer exceeds safe range, writing as text",
                digits=len(str(abs(value))),
            )
            return CellValue(CellType.TEXT, str(value))
        return CellValue(CellType.INTEGER, value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(
                f"Non-finite number cannot be stored in a workbook: {value}",
            )
        return _number_cell(value)
    if isinstance(value, str):
        if not value:
            return EMPTY_CELL
        parsed = date_patterns.parse(value)
        if parsed is not None:
            return CellValue(CellType.DATETIME, parsed)
        return CellValue(CellType.TEXT, value)
    if isinstance(value, (list, dict)):
        return CellValue(CellType.TEXT, canonical_json(value))
    raise ValidationError(
        f"Unsupported value type for a workbook cell: {type(value).__name__}"
    )


def cell_types_of(cells: Iterable[CellValue]) -> set[CellType]:
    """Distinct non-empty tags among ``cells``."""
    return {cell.cell_type for cell in cells if not cell.is_empty}
