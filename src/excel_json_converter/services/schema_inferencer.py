"""Column schema inference over decoded sheet cells."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from functools import reduce

from excel_json_converter.services.type_model import inferred_type_of, widen
from excel_json_converter.workbook import (
    CellValue,
    ColumnSchema,
    InferredType,
    SheetSchema,
)


class SchemaInferencer:
    """Reduce each column's values to the narrowest common type.

    Inference is a pure fold over the lattice in ``type_model``: it is
    repeatable and independent of row order. A column is only summarised
    after every one of its values has been seen.
    """

    def infer_column(self, name: str, cells: Iterable[CellValue]) -> ColumnSchema:
        """Infer the schema of one column.

        Args:
            name: Column (header) name.
            cells: Every realized data cell of the column, Empty included.

        Returns:
            ColumnSchema; ``string``/nullable when no value was observed.
        """
        nullable = False
        observed: list[InferredType] = []
        for cell in cells:
            cell_type = inferred_type_of(cell)
            if cell_type is None:
                nullable = True
            else:
                observed.append(cell_type)

        if not observed:
            return ColumnSchema(name=name, type=InferredType.STRING, nullable=True)

        column_type = reduce(widen, observed[1:], observed[0])
        return ColumnSchema(name=name, type=column_type, nullable=nullable)

    def infer_sheet(
        self, headers: Sequence[str], rows: Sequence[Sequence[CellValue]]
    ) -> SheetSchema:
        """Infer a sheet schema in header order.

        Args:
            headers: Column names.
            rows: Data rows already padded to ``len(headers)``.
        """
        return [
            self.infer_column(name, (row[index] for row in rows))
            for index, name in enumerate(headers)
        ]
