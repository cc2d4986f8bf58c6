"""Native workbook parser producing tagged cell grids.

``.xlsx`` files are read with openpyxl, legacy ``.xls`` files with xlrd.
Only cached formula results are read; formulas are never evaluated.
"""

from __future__ import annotations

import io
import re
from typing import Any

import xlrd
from openpyxl import load_workbook
from openpyxl.cell.read_only import EmptyCell, ReadOnlyCell
from openpyxl.worksheet._read_only import ReadOnlyWorksheet

from excel_json_converter.models import WorkbookFormat
from excel_json_converter.services.type_model import cell_from_native
from excel_json_converter.utils.exceptions import FormatError
from excel_json_converter.utils.logging import get_logger
from excel_json_converter.workbook import (
    EMPTY_CELL,
    CellType,
    CellValue,
    Sheet,
    Workbook,
)

logger = get_logger(__name__)

# Quoted literals and [colour]/[$-locale] sections carry no date tokens.
_FORMAT_NOISE_RE = re.compile(r'"[^"]*"|\[[^\]]*\]|\\.')


def _has_time_component(number_format: str | None) -> bool:
    """Whether a date number format displays hours or seconds."""
    if not number_format:
        return True
    cleaned = _FORMAT_NOISE_RE.sub("", number_format).lower()
    return "h" in cleaned or "s" in cleaned


class WorkbookReader:
    """Read workbook bytes into :class:`Workbook` instances."""

    def read(
        self,
        content: bytes,
        workbook_format: WorkbookFormat,
        filename: str | None = None,
    ) -> Workbook:
        """Parse ``content`` according to ``workbook_format``.

        Raises:
            FormatError: If the container is unreadable or corrupt.
        """
        if workbook_format is WorkbookFormat.XLS:
            return self._read_xls(content, filename)
        return self._read_xlsx(content, filename)

    # ------------------------------------------------------------------ #
    # .xlsx (openpyxl)
    # ------------------------------------------------------------------ #

    def _read_xlsx(self, content: bytes, filename: str | None) -> Workbook:
        try:
            wb = load_workbook(
                filename=io.BytesIO(content), read_only=True, data_only=True
            )
        except Exception as e:
            logger.warning(
                "openpyxl could not open workbook",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise FormatError(
                f"Unreadable or corrupt .xlsx workbook: {e}",
                filename=filename,
            ) from e

        try:
            sheets = [self._read_xlsx_sheet(ws) for ws in wb.worksheets]
        except FormatError:
            raise
        except Exception as e:
            raise FormatError(
                f"Corrupt worksheet data in .xlsx workbook: {e}",
                filename=filename,
            ) from e
        finally:
            wb.close()

        logger.debug("Read .xlsx workbook", sheets=len(sheets))
        return Workbook(sheets=sheets, source_format=WorkbookFormat.XLSX.value)

    def _read_xlsx_sheet(self, ws: ReadOnlyWorksheet) -> Sheet:
        rows: list[list[CellValue]] = []
        for row_cells in ws.iter_rows():
            rows.append([self._build_xlsx_cell(cell) for cell in row_cells])
        return Sheet(name=ws.title, rows=rows)

    @staticmethod
    def _build_xlsx_cell(cell: ReadOnlyCell | EmptyCell) -> CellValue:
        value = cell.value
        if value is None:
            return EMPTY_CELL
        if getattr(cell, "is_date", False):
            return cell_from_native(
                value, date_only=not _has_time_component(cell.number_format)
            )
        if cell.data_type == "e":
            # Cached error results such as #DIV/0! stay visible as text.
            return CellValue(CellType.TEXT, str(value))
        return cell_from_native(value)

    # ------------------------------------------------------------------ #
    # .xls (xlrd)
    # ------------------------------------------------------------------ #

    def _read_xls(self, content: bytes, filename: str | None) -> Workbook:
        try:
            book = xlrd.open_workbook(file_contents=content, on_demand=True)
        except Exception as e:
            logger.warning(
                "xlrd could not open workbook",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise FormatError(
                f"Unreadable or corrupt .xls workbook: {e}",
                filename=filename,
            ) from e

        try:
            sheets = [
                self._read_xls_sheet(book, book.sheet_by_index(index))
                for index in range(book.nsheets)
            ]
        except xlrd.XLRDError as e:
            raise FormatError(
                f"Corrupt worksheet data in .xls workbook: {e}",
                filename=filename,
            ) from e
        finally:
            book.release_resources()

        logger.debug("Read .xls workbook", sheets=len(sheets))
        return Workbook(sheets=sheets, source_format=WorkbookFormat.XLS.value)

    def _read_xls_sheet(self, book: Any, sheet: Any) -> Sheet:
        rows: list[list[CellValue]] = []
        for row_index in range(sheet.nrows):
            rows.append(
                [
                    self._build_xls_cell(book, cell_type, value)
                    for cell_type, value in zip(
                        sheet.row_types(row_index),
                        sheet.row_values(row_index),
                        strict=True,
                    )
                ]
            )
        return Sheet(name=sheet.name, rows=rows)

    @staticmethod
    def _build_xls_cell(book: Any, cell_type: int, value: Any) -> CellValue:
        if cell_type in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
            return EMPTY_CELL
        if cell_type == xlrd.XL_CELL_BOOLEAN:
            return CellValue(CellType.BOOLEAN, bool(value))
        if cell_type == xlrd.XL_CELL_ERROR:
            return CellValue(
                CellType.TEXT, xlrd.error_text_from_code.get(value, "#ERROR")
            )
        if cell_type == xlrd.XL_CELL_DATE:
            try:
                parsed = xlrd.xldate_as_datetime(value, book.datemode)
            except (xlrd.XLDateError, ValueError, OverflowError):
                return cell_from_native(value)
            if value < 1:
                return CellValue(CellType.DATETIME, parsed.time())
            midnight = (parsed.hour, parsed.minute, parsed.second) == (0, 0, 0)
            return cell_from_native(
                parsed, date_only=midnight and not parsed.microsecond
            )
        return cell_from_native(value)
