from __future__ import annotations

from typing import Any

import pytest

from excel_json_converter.services.decoder import WorkbookDecoder
from excel_json_converter.services.encoder import WorkbookEncoder
from excel_json_converter.services.type_model import DatePatterns
from excel_json_converter.utils.logging import clear_context
from tests.fixtures import SAMPLE_DOCUMENT, build_xlsx


@pytest.fixture(autouse=True)
def _reset_log_context() -> Any:
    clear_context()
    yield
    clear_context()


@pytest.fixture
def date_patterns() -> DatePatterns:
    return DatePatterns()


@pytest.fixture
def decoder() -> WorkbookDecoder:
    return WorkbookDecoder()


@pytest.fixture
def encoder() -> WorkbookEncoder:
    return WorkbookEncoder()


@pytest.fixture
def sample_document() -> dict[str, list[dict[str, Any]]]:
    """A two-sheet Document covering every scalar type."""
    return {
        name: [dict(record) for record in records]
        for name, records in SAMPLE_DOCUMENT.items()
    }


@pytest.fixture
def people_xlsx() -> bytes:
    """Workbook with one typed sheet."""
    return build_xlsx(
        {
            "People": [
                ["name", "age", "active"],
                ["Ada", 36, True],
                ["Grace", None, False],
            ]
        }
    )
