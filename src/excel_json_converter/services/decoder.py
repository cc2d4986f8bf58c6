"""Workbook -> Document decoding with per-column schema inference."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from excel_json_converter.services.format_detector import FormatDetector
from excel_json_converter.services.schema_inferencer import SchemaInferencer
from excel_json_converter.services.sheet_pool import SheetPoolOptions, map_sheets
from excel_json_converter.services.type_model import cell_to_json
from excel_json_converter.services.workbook_reader import WorkbookReader
from excel_json_converter.utils.exceptions import BlankHeaderError, DuplicateHeaderError
from excel_json_converter.utils.logging import LogContext, get_logger, timed_operation
from excel_json_converter.workbook import (
    EMPTY_CELL,
    CellType,
    CellValue,
    Document,
    Record,
    Sheet,
    SheetSchema,
    Workbook,
)

logger = get_logger(__name__)


@dataclass
class DecodeOptions:
    """Options controlling workbook decoding."""

    pool: SheetPoolOptions = field(default_factory=SheetPoolOptions)


@dataclass
class SheetDecodeResult:
    """Records and schema decoded from one sheet."""

    name: str
    records: list[Record]
    schema: SheetSchema


@dataclass
class DecodeResult:
    """A decoded workbook: the Document plus a schema per sheet."""

    document: Document
    schemas: dict[str, SheetSchema]
    source_format: str

    @property
    def row_count(self) -> int:
        return sum(len(records) for records in self.document.values())

    def to_payload(self) -> dict[str, Any]:
        """Render the ``{json, schema}`` body returned to clients."""
        return {
            "json": self.document,
            "schema": {
                name: [column.to_dict() for column in schema]
                for name, schema in self.schemas.items()
            },
        }


class WorkbookDecoder:
    """Decode workbook bytes into row records keyed by header name.

    The first row of every sheet is its header. Header cells must be
    non-blank; trailing blank header cells are dropped with their columns.
    Short rows are padded with empty cells. Every row inside the sheet,
    blank ones included, becomes a record.
    """

    def __init__(
        self,
        options: DecodeOptions | None = None,
        format_detector: FormatDetector | None = None,
        reader: WorkbookReader | None = None,
        inferencer: SchemaInferencer | None = None,
    ) -> None:
        self._options = options or DecodeOptions()
        self._format_detector = format_detector or FormatDetector()
        self._reader = reader or WorkbookReader()
        self._inferencer = inferencer or SchemaInferencer()

    def decode(self, content: bytes, filename: str | None = None) -> DecodeResult:
        """Decode workbook bytes.

        Args:
            content: The complete uploaded workbook.
            filename: Client filename, used only for diagnostics and as a
                format hint when the content is inconclusive.

        Returns:
            DecodeResult with the Document and per-sheet schemas.

        Raises:
            FormatError: If the content is not a readable workbook.
            SchemaError: If a sheet's header row is ambiguous.
        """
        with timed_operation(logger, "decode") as metrics:
            metrics.bytes_in = len(content)
            format_info = self._format_detector.detect_from_content(content, filename)
            workbook = self._reader.read(
                content, format_info.workbook_format, filename=filename
            )
            result = self.decode_workbook(workbook)
            metrics.sheets_processed = len(result.schemas)
            metrics.rows_processed = result.row_count
        return result

    def decode_workbook(self, workbook: Workbook) -> DecodeResult:
        """Decode an already parsed workbook, keeping sheet order."""
        sheet_results = map_sheets(
            self.decode_sheet,
            workbook.sheets,
            workbook.total_rows,
            self._options.pool,
        )
        return DecodeResult(
            document={result.name: result.records for result in sheet_results},
            schemas={result.name: result.schema for result in sheet_results},
            source_format=workbook.source_format,
        )

    def decode_sheet(self, sheet: Sheet) -> SheetDecodeResult:
        """Decode one sheet into records and its inferred schema.

        Raises:
            BlankHeaderError: If a blank header cell precedes a named one.
            DuplicateHeaderError: If two header cells share a name.
        """
        with LogContext(sheet=sheet.name):
            if not sheet.rows:
                logger.debug("Sheet has no rows")
                return SheetDecodeResult(name=sheet.name, records=[], schema=[])

            headers = self._resolve_headers(sheet.name, sheet.rows[0])
            data_rows = sheet.rows[1:]

            if not headers:
                if any(not cell.is_empty for row in data_rows for cell in row):
                    logger.warning(
                        "Header row is blank, sheet data ignored",
                        data_rows=len(data_rows),
                    )
                return SheetDecodeResult(name=sheet.name, records=[], schema=[])

            width = len(headers)
            rows = [_normalize_row(row, width) for row in data_rows]
            schema = self._inferencer.infer_sheet(headers, rows)
            records = [
                {name: cell_to_json(row[index]) for index, name in enumerate(headers)}
                for row in rows
            ]
            logger.debug("Decoded sheet", columns=width, rows=len(records))
            return SheetDecodeResult(name=sheet.name, records=records, schema=schema)

    @staticmethod
    def _resolve_headers(
        sheet_name: str, header_row: Sequence[CellValue]
    ) -> list[str]:
        names = [_header_name(cell) for cell in header_row]

        width = len(names)
        while width and names[width - 1] is None:
            width -= 1
        if width < len(names):
            logger.debug(
                "Dropping trailing blank header columns",
                dropped=len(names) - width,
            )

        headers: list[str] = []
        seen: set[str] = set()
        for index, name in enumerate(names[:width]):
            if name is None:
                raise BlankHeaderError(sheet=sheet_name, column_index=index)
            if name in seen:
                raise DuplicateHeaderError(sheet=sheet_name, column_name=name)
            seen.add(name)
            headers.append(name)
        return headers


def _header_name(cell: CellValue) -> str | None:
    """Column name for a header cell, or None when blank."""
    if cell.is_empty:
        return None
    if cell.cell_type is CellType.TEXT:
        text = str(cell.value)
        return text if text.strip() else None
    if cell.cell_type is CellType.BOOLEAN:
        return "true" if cell.value else "false"
    return str(cell_to_json(cell))


def _normalize_row(row: Sequence[CellValue], width: int) -> list[CellValue]:
    """Pad a short row with empty cells; cut cells beyond the header."""
    cells = list(row[:width])
    if len(cells) < width:
        cells.extend([EMPTY_CELL] * (width - len(cells)))
    return cells
