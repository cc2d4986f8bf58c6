"""Test fixtures and helpers for building and inspecting workbooks in memory.

Example usage:
    from tests.fixtures import build_xlsx, read_xlsx_values

    # Build a workbook with one sheet
    content = build_xlsx({"People": [["name", "age"], ["Ada", 36]]})

    # Read it back as plain cell values
    values = read_xlsx_values(content)
"""

import io
from typing import Any

from openpyxl import Workbook, load_workbook

SAMPLE_DOCUMENT: dict[str, list[dict[str, Any]]] = {
    "People": [
        {"name": "Ada", "age": 36, "active": True, "joined": "2024-01-15"},
        {"name": "Grace", "age": 45, "active": False, "joined": "2023-06-30"},
        {"name": "Linus", "age": None, "active": True, "joined": None},
    ],
    "Scores": [
        {"player": "p1", "score": 1.5},
        {"player": "p2", "score": 3},
    ],
}


def build_xlsx(sheets: dict[str, list[list[Any]]]) -> bytes:
    """Build an .xlsx workbook from raw rows.

    Args:
        sheets: Sheet name mapped to its rows, the first row being the header.
            ``None`` leaves a cell blank.

    Returns:
        The workbook file content.
    """
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def load_xlsx(content: bytes) -> Workbook:
    """Load workbook bytes with openpyxl, keeping formulas as written."""
    return load_workbook(io.BytesIO(content))


def read_xlsx_values(content: bytes) -> dict[str, list[list[Any]]]:
    """Read every sheet of a workbook as lists of cell values."""
    wb = load_xlsx(content)
    return {
        ws.title: [list(row) for row in ws.iter_rows(values_only=True)]
        for ws in wb.worksheets
    }
