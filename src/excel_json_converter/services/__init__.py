"""Conversion services for the Excel/JSON converter."""

from excel_json_converter.services.decoder import (
    DecodeOptions,
    DecodeResult,
    WorkbookDecoder,
)
from excel_json_converter.services.encoder import EncodeOptions, WorkbookEncoder
from excel_json_converter.services.format_detector import (
    FormatDetector,
    UnsupportedFormatError,
)
from excel_json_converter.services.layout_resolver import LayoutResolver
from excel_json_converter.services.schema_inferencer import SchemaInferencer
from excel_json_converter.services.sheet_pool import SheetPoolOptions

__all__ = [
    "DecodeOptions",
    "DecodeResult",
    "EncodeOptions",
    "FormatDetector",
    "LayoutResolver",
    "SchemaInferencer",
    "SheetPoolOptions",
    "UnsupportedFormatError",
    "WorkbookDecoder",
    "WorkbookEncoder",
]
