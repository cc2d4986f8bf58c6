"""Document -> .xlsx encoding."""

from __future__ import annotations

import io
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.workbook.child import INVALID_TITLE_REGEX
from openpyxl.worksheet.worksheet import Worksheet

from excel_json_converter.config import DEFAULT_DATE_FORMATS
from excel_json_converter.services.layout_resolver import LayoutResolver, SheetLayout
from excel_json_converter.services.sheet_pool import SheetPoolOptions, map_sheets
from excel_json_converter.services.type_model import DatePatterns
from excel_json_converter.utils.exceptions import ErrorCode, ValidationError
from excel_json_converter.utils.logging import LogContext, get_logger, timed_operation
from excel_json_converter.workbook import CellType, CellValue, InferredType

logger = get_logger(__name__)

MAX_SHEET_TITLE_LENGTH = 31

DATE_NUMBER_FORMAT = "yyyy-mm-dd"
DATETIME_NUMBER_FORMAT = "yyyy-mm-dd hh:mm:ss"
TIME_NUMBER_FORMAT = "hh:mm:ss"


@dataclass
class EncodeOptions:
    """Options controlling Document encoding."""

    date_formats: list[str] = field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))
    pool: SheetPoolOptions = field(default_factory=SheetPoolOptions)


class WorkbookEncoder:
    """Encode a Document (sheet name -> records) as an .xlsx workbook."""

    def __init__(
        self,
        options: EncodeOptions | None = None,
        resolver: LayoutResolver | None = None,
    ) -> None:
        self._options = options or EncodeOptions()
        self._resolver = resolver or LayoutResolver(
            DatePatterns(self._options.date_formats)
        )

    def encode(
        self,
        document: Any,
        format_spec: Any = None,
    ) -> bytes:
        """Encode ``document`` into workbook bytes.

        Args:
            document: Mapping of sheet name to a list of record objects.
            format_spec: Optional mapping of sheet name to the ordered column
                names to emit. Entries for sheets absent from ``document``
                are ignored.

        Returns:
            The .xlsx file content.

        Raises:
            ValidationError: If there is nothing to encode or the input
                cannot be represented in a workbook.
        """
        with timed_operation(logger, "encode") as metrics:
            sheet_names = self._validate_document(document)
            formats = self._validate_format_spec(format_spec)

            ignored = [name for name in formats if name not in document]
            if ignored:
                logger.debug(
                    "Ignoring format entries for absent sheets", sheets=ignored
                )

            total_rows = sum(
                len(records)
                for records in document.values()
                if isinstance(records, list)
            )
            layouts = map_sheets(
                lambda name: self._layout_sheet(name, document[name], formats),
                sheet_names,
                total_rows,
                self._options.pool,
            )

            wb = Workbook()
            wb.remove(wb.active)
            for name, layout in zip(sheet_names, layouts, strict=True):
                if not layout.columns:
                    logger.info("Omitting sheet without resolvable columns", sheet=name)
                    continue
                self._write_sheet(wb.create_sheet(title=name), name, layout)
                metrics.sheets_processed += 1
                metrics.rows_processed += len(layout.rows)

            if not wb.worksheets:
                raise ValidationError(
                    "no sheet data to encode",
                    error_code=ErrorCode.EMPTY_DOCUMENT,
                    field="json",
                )

            buffer = io.BytesIO()
            wb.save(buffer)
            content = buffer.getvalue()
            metrics.bytes_out = len(content)
        return content

    def _layout_sheet(
        self,
        name: str,
        records: Any,
        formats: Mapping[str, Any],
    ) -> SheetLayout:
        with LogContext(sheet=name):
            layout = self._resolver.resolve(records, formats.get(name), sheet=name)
            logger.debug(
                "Resolved sheet layout",
                rows=len(layout.rows),
                columns=", ".join(column.describe() for column in layout.columns),
            )
            mixed = [
                column.name
                for column in layout.columns
                if column.summary_type is InferredType.MIXED
            ]
            if mixed:
                logger.debug("Columns hold cells of differing types", columns=mixed)
            return layout

    @staticmethod
    def _validate_document(document: Any) -> list[str]:
        if not isinstance(document, Mapping):
            raise ValidationError(
                "JSON data must be an object mapping sheet names to record lists",
                field="json",
            )
        if not document:
            raise ValidationError(
                "no sheet data to encode",
                error_code=ErrorCode.EMPTY_DOCUMENT,
                field="json",
            )

        names: list[str] = []
        seen: set[str] = set()
        for name in document:
            _validate_sheet_title(name)
            folded = name.casefold()
            if folded in seen:
                raise ValidationError(
                    f"Sheet name '{name}' duplicates another sheet (names are "
                    "case-insensitive in workbooks)",
                    field="json",
                )
            seen.add(folded)
            names.append(name)
        return names

    @staticmethod
    def _validate_format_spec(format_spec: Any) -> Mapping[str, Any]:
        if format_spec is None:
            return {}
        if not isinstance(format_spec, Mapping):
            raise ValidationError(
                "Format specification must be an object mapping sheet names "
                "to column lists",
                field="format",
            )
        return format_spec

    def _write_sheet(self, ws: Worksheet, name: str, layout: SheetLayout) -> None:
        for col_index, column_name in enumerate(layout.column_names, start=1):
            _check_text(column_name, name, "header", column_name)
            header = ws.cell(row=1, column=col_index, value=column_name)
            if column_name.startswith("="):
                header.data_type = "s"

        for row_offset, cells in enumerate(layout.rows):
            row_index = row_offset + 2
            # An all-empty record still needs a <row>, or decoding loses it.
            ws.cell(row=row_index, column=1)
            for col_index, (column_name, cell) in enumerate(
                zip(layout.column_names, cells, strict=True), start=1
            ):
                if cell.is_empty:
                    continue
                self._write_cell(ws, row_index, col_index, cell, name, column_name)

    @staticmethod
    def _write_cell(
        ws: Worksheet,
        row_index: int,
        col_index: int,
        cell: CellValue,
        sheet: str,
        column_name: str,
    ) -> None:
        if cell.cell_type is CellType.TEXT:
            text = str(cell.value)
            _check_text(text, sheet, f"record {row_index - 2}", column_name)
            target = ws.cell(row=row_index, column=col_index, value=text)
            if text.startswith("="):
                # Caller text is data, never a formula.
                target.data_type = "s"
            return

        target = ws.cell(row=row_index, column=col_index, value=cell.value)
        if cell.cell_type is CellType.DATETIME:
            target.number_format = _number_format_for(cell.value)


def _number_format_for(value: Any) -> str:
    if isinstance(value, datetime):
        return DATETIME_NUMBER_FORMAT
    if isinstance(value, date):
        return DATE_NUMBER_FORMAT
    if isinstance(value, time):
        return TIME_NUMBER_FORMAT
    return DATETIME_NUMBER_FORMAT


def _validate_sheet_title(name: Any) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(
            f"Sheet name must be a non-empty string, got {name!r}",
            field="json",
        )
    problems: list[str] = []
    if len(name) > MAX_SHEET_TITLE_LENGTH:
        problems.append(f"longer than {MAX_SHEET_TITLE_LENGTH} characters")
    if INVALID_TITLE_REGEX.search(name):
        problems.append("contains one of []:*?/\\")
    if name.startswith("'") or name.endswith("'"):
        problems.append("starts or ends with an apostrophe")
    if problems:
        raise ValidationError(
            f"Invalid sheet name '{name}'",
            field="json",
            errors=problems,
        )


def _check_text(text: str, sheet: str, location: str, column: str) -> None:
    if ILLEGAL_CHARACTERS_RE.search(text):
        raise ValidationError(
            f"Sheet '{sheet}', {location}, column '{column}': text contains "
            "control characters that workbooks cannot store",
            field=f"json.{sheet}",
        )
