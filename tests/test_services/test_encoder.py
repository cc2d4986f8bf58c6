"""Tests for Document encoding into .xlsx workbooks."""

from datetime import datetime, time
from typing import Any

import pytest

from excel_json_converter.services.encoder import (
    DATE_NUMBER_FORMAT,
    DATETIME_NUMBER_FORMAT,
    TIME_NUMBER_FORMAT,
    EncodeOptions,
    WorkbookEncoder,
)
from excel_json_converter.services.sheet_pool import SheetPoolOptions
from excel_json_converter.utils.exceptions import ErrorCode, ValidationError
from tests.fixtures import load_xlsx, read_xlsx_values


class TestEncode:
    """Tests for WorkbookEncoder.encode."""

    def test_header_and_rows(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"People": [{"name": "Ada", "age": 36}]})
        assert read_xlsx_values(content) == {"People": [["name", "age"], ["Ada", 36]]}

    def test_sheet_order_preserved(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"Zeta": [{"a": 1}], "Alpha": [{"a": 2}]})
        assert list(read_xlsx_values(content)) == ["Zeta", "Alpha"]

    def test_first_seen_column_union(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"S": [{"b": 1}, {"a": 2, "b": 3}]})
        assert read_xlsx_values(content)["S"] == [["b", "a"], [1, None], [3, 2]]

    def test_format_specification_takes_precedence(
        self, encoder: WorkbookEncoder
    ) -> None:
        content = encoder.encode(
            {"Sheet1": [{"a": 1, "b": 2}]}, {"Sheet1": ["b"]}
        )
        assert read_xlsx_values(content) == {"Sheet1": [["b"], [2]]}

    def test_format_for_absent_sheet_ignored(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"S": [{"a": 1}]}, {"Other": ["x"], "S": ["a"]})
        assert read_xlsx_values(content) == {"S": [["a"], [1]]}

    def test_zero_records_with_format_writes_header(
        self, encoder: WorkbookEncoder
    ) -> None:
        content = encoder.encode({"S": []}, {"S": ["a", "b"]})
        assert read_xlsx_values(content) == {"S": [["a", "b"]]}

    def test_sheet_without_columns_omitted(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"Empty": [], "S": [{"a": 1}]})
        assert list(read_xlsx_values(content)) == ["S"]

    def test_null_and_empty_string_leave_cells_blank(
        self, encoder: WorkbookEncoder
    ) -> None:
        content = encoder.encode({"S": [{"a": None, "b": "", "c": 1}]})
        assert read_xlsx_values(content)["S"][1] == [None, None, 1]

    def test_all_null_record_keeps_its_row(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"S": [{"a": None, "b": None}]})
        assert load_xlsx(content)["S"].max_row == 2
        assert read_xlsx_values(content)["S"] == [["a", "b"], [None, None]]

    def test_scalar_types(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode(
            {"S": [{"b": True, "i": 7, "f": 2.5, "t": "x", "n": {"k": [1]}}]}
        )
        assert read_xlsx_values(content)["S"][1] == [True, 7, 2.5, "x", '{"k":[1]}']

    def test_big_integer_written_as_text(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"S": [{"id": 2**60}]})
        assert read_xlsx_values(content)["S"][1] == [str(2**60)]

    def test_dates_get_number_formats(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode(
            {"S": [{"d": "2024-01-15", "dt": "2024-01-15T10:30:00"}]}
        )
        ws = load_xlsx(content)["S"]
        assert ws["A2"].value == datetime(2024, 1, 15)
        assert ws["A2"].number_format == DATE_NUMBER_FORMAT
        assert ws["B2"].value == datetime(2024, 1, 15, 10, 30)
        assert ws["B2"].number_format == DATETIME_NUMBER_FORMAT

    def test_time_number_format(self) -> None:
        encoder = WorkbookEncoder(EncodeOptions(date_formats=["%H:%M:%S"]))
        content = encoder.encode({"S": [{"t": "08:15:00"}]})
        ws = load_xlsx(content)["S"]
        assert ws["A2"].value == time(8, 15)
        assert ws["A2"].number_format == TIME_NUMBER_FORMAT

    def test_custom_date_formats(self) -> None:
        encoder = WorkbookEncoder(EncodeOptions(date_formats=["%d/%m/%Y"]))
        content = encoder.encode({"S": [{"d": "15/01/2024", "iso": "2024-01-15"}]})
        ws = load_xlsx(content)["S"]
        assert ws["A2"].value == datetime(2024, 1, 15)
        assert ws["B2"].value == "2024-01-15"

    def test_leading_equals_is_not_a_formula(self, encoder: WorkbookEncoder) -> None:
        content = encoder.encode({"S": [{"=col": "=SUM(A1:A3)"}]})
        ws = load_xlsx(content)["S"]
        assert ws["A1"].value == "=col"
        assert ws["A1"].data_type == "s"
        assert ws["A2"].value == "=SUM(A1:A3)"
        assert ws["A2"].data_type == "s"

    def test_parallel_layout_matches_sequential(self) -> None:
        document = {
            f"S{n}": [{"n": i, "label": f"r{i}"} for i in range(40)] for n in range(5)
        }
        sequential = WorkbookEncoder().encode(document)
        parallel = WorkbookEncoder(
            EncodeOptions(pool=SheetPoolOptions(max_workers=4, row_threshold=0))
        ).encode(document)
        assert read_xlsx_values(parallel) == read_xlsx_values(sequential)


class TestEncodeValidation:
    """Tests for rejected encode input."""

    def test_empty_document(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(
            ValidationError, match="no sheet data to encode"
        ) as exc_info:
            encoder.encode({})
        assert exc_info.value.error_code is ErrorCode.EMPTY_DOCUMENT

    def test_every_sheet_omitted(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(ValidationError, match="no sheet data to encode"):
            encoder.encode({"A": [], "B": [{}]})

    def test_document_must_be_mapping(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(ValidationError, match="mapping sheet names"):
            encoder.encode([{"a": 1}])

    def test_sheet_value_must_be_list(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(ValidationError, match="must be a list of records"):
            encoder.encode({"S": {"a": 1}})

    def test_format_must_be_mapping(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(ValidationError) as exc_info:
            encoder.encode({"S": [{"a": 1}]}, ["a"])
        assert exc_info.value.field == "format"

    @pytest.mark.parametrize(
        "name",
        ["", "   ", "x" * 32, "a/b", "a[1]", "what?", "star*", "c:d", "'quoted'"],
    )
    def test_invalid_sheet_names(self, encoder: WorkbookEncoder, name: str) -> None:
        with pytest.raises(ValidationError):
            encoder.encode({name: [{"a": 1}]})

    def test_sheet_name_at_limit_accepted(self, encoder: WorkbookEncoder) -> None:
        name = "x" * 31
        assert list(read_xlsx_values(encoder.encode({name: [{"a": 1}]}))) == [name]

    def test_sheet_names_unique_ignoring_case(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(ValidationError, match="duplicates another sheet"):
            encoder.encode({"Data": [{"a": 1}], "DATA": [{"a": 2}]})

    def test_control_characters_rejected(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(ValidationError, match="control characters"):
            encoder.encode({"S": [{"a": "bell\x07"}]})

    def test_non_finite_number_rejected(self, encoder: WorkbookEncoder) -> None:
        with pytest.raises(ValidationError, match="Non-finite"):
            encoder.encode({"S": [{"a": float("inf")}]})

    def test_blank_record_key_rejected(self, encoder: WorkbookEncoder) -> None:
        records: list[dict[str, Any]] = [{"": 1}]
        with pytest.raises(ValidationError):
            encoder.encode({"S": records})

