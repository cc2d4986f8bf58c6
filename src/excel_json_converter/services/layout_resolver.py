"""Column layout resolution for records with heterogeneous key sets."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from excel_json_converter.services.type_model import (
    DatePatterns,
    inferred_type_of,
    json_to_cell,
)
from excel_json_converter.utils.exceptions import ValidationError
from excel_json_converter.workbook import CellValue, InferredType


@dataclass
class ResolvedColumn:
    """One output column and the cell types written into it.

    Coercion happens per cell, so one column may legitimately hold numbers
    in some rows and text in others.
    """

    name: str
    observed_types: set[InferredType] = field(default_factory=set)
    nullable: bool = False

    @property
    def summary_type(self) -> InferredType | None:
        """The shared type of all non-empty cells, ``mixed`` if they differ."""
        if not self.observed_types:
            return None
        if len(self.observed_types) == 1:
            return next(iter(self.observed_types))
        return InferredType.MIXED

    def describe(self) -> str:
        """``name:type``, suffixed with ``?`` when some record left it empty."""
        summary = self.summary_type
        kind = summary.value if summary is not None else "empty"
        return f"{self.name}:{kind}{'?' if self.nullable else ''}"


@dataclass
class SheetLayout:
    """Resolved columns and coerced cell rows for one sheet."""

    columns: list[ResolvedColumn]
    rows: list[list[CellValue]]

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]


class LayoutResolver:
    """Compute column order and per-cell coercion for encoding.

    Without an explicit column list, columns are the union of record keys
    in first-seen order: the first record's keys, then keys introduced by
    later records appended in the order they appear. With a list, exactly
    those columns are emitted; other keys are dropped and missing keys
    render as empty cells.
    """

    def __init__(self, date_patterns: DatePatterns | None = None) -> None:
        self._date_patterns = date_patterns or DatePatterns()

    def resolve_columns(
        self,
        records: Sequence[Any],
        columns: Sequence[Any] | None = None,
        sheet: str | None = None,
    ) -> list[str]:
        """Return the ordered column names for ``records``.

        Raises:
            ValidationError: If a record is not an object or a column name
                is blank, duplicated or not a string.
        """
        _validate_records(records, sheet)
        if columns is not None:
            return _validate_column_list(columns, sheet)

        ordered: dict[str, None] = {}
        for record in records:
            for key in record:
                ordered.setdefault(key, None)
        names = list(ordered)
        for name in names:
            if not isinstance(name, str) or not name.strip():
                raise ValidationError(
                    f"Sheet '{sheet}' has a record with key {name!r}; "
                    "column names must be non-empty strings",
                    field=_field(sheet),
                )
        return names

    def resolve(
        self,
        records: Sequence[Any],
        columns: Sequence[Any] | None = None,
        sheet: str | None = None,
    ) -> SheetLayout:
        """Resolve columns and coerce every record into a cell row.

        Raises:
            ValidationError: If the records, column list or a value cannot
                be written to a workbook.
        """
        names = self.resolve_columns(records, columns, sheet)
        resolved = [ResolvedColumn(name=name) for name in names]

        rows: list[list[CellValue]] = []
        for row_index, record in enumerate(records):
            row: list[CellValue] = []
            for column in resolved:
                cell = self._coerce(record.get(column.name), sheet, row_index, column)
                cell_type = inferred_type_of(cell)
                if cell_type is None:
                    column.nullable = True
                else:
                    column.observed_types.add(cell_type)
                row.append(cell)
            rows.append(row)

        return SheetLayout(columns=resolved, rows=rows)

    def _coerce(
        self,
        value: Any,
        sheet: str | None,
        row_index: int,
        column: ResolvedColumn,
    ) -> CellValue:
        try:
            return json_to_cell(value, self._date_patterns)
        except ValidationError as e:
            raise ValidationError(
                f"Sheet '{sheet}', record {row_index}, column '{column.name}': "
                f"{e.message}",
                field=_field(sheet),
                details={"record_index": row_index, "column": column.name},
            ) from e


def _field(sheet: str | None) -> str:
    return f"json.{sheet}" if sheet is not None else "json"


def _validate_records(records: Sequence[Any], sheet: str | None) -> None:
    if not isinstance(records, list):
        raise ValidationError(
            f"Sheet '{sheet}' must be a list of records",
            field=_field(sheet),
        )
    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise ValidationError(
                f"Sheet '{sheet}' record {index} must be an object, "
                f"got {type(record).__name__}",
                field=_field(sheet),
            )


def _validate_column_list(columns: Sequence[Any], sheet: str | None) -> list[str]:
    field_name = f"format.{sheet}" if sheet is not None else "format"
    if not isinstance(columns, list):
        raise ValidationError(
            f"Format for sheet '{sheet}' must be a list of column names",
            field=field_name,
        )

    names: list[str] = []
    seen: set[str] = set()
    for name in columns:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(
                f"Format for sheet '{sheet}' has an invalid column name: {name!r}",
                field=field_name,
            )
        if name in seen:
            raise ValidationError(
                f"Format for sheet '{sheet}' lists column '{name}' more than once",
                field=field_name,
            )
        seen.add(name)
        names.append(name)
    return names
