"""Dataclasses representing workbooks, cells and inferred column schemas."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any

Record = dict[str, Any]
"""One data row keyed by column name, holding JSON-compatible values."""

Document = dict[str, list[Record]]
"""Sheet name to record sequence; insertion order is sheet order."""


class CellType(str, Enum):
    """Tag of a single cell value."""

    EMPTY = "empty"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    DATETIME = "datetime"


class InferredType(str, Enum):
    """Column type reported in a sheet schema."""

    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    DATE = "date"
    MIXED = "mixed"


@dataclass(frozen=True)
class CellValue:
    """A tagged cell value; ``value`` always matches ``cell_type``."""

    cell_type: CellType
    value: bool | int | float | str | date | datetime | time | None = None

    @property
    def is_empty(self) -> bool:
        return self.cell_type is CellType.EMPTY


EMPTY_CELL = CellValue(CellType.EMPTY)


@dataclass
class Sheet:
    """A named grid of cells; rows may have differing lengths."""

    name: str
    rows: list[list[CellValue]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass
class Workbook:
    """A workbook read from an .xlsx or .xls container."""

    sheets: list[Sheet]
    source_format: str

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    @property
    def total_rows(self) -> int:
        return sum(sheet.row_count for sheet in self.sheets)


@dataclass(frozen=True)
class ColumnSchema:
    """Inferred type and nullability of one column."""

    name: str
    type: InferredType
    nullable: bool

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.type.value, "nullable": self.nullable}


SheetSchema = list[ColumnSchema]
