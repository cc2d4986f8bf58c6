"""Pydantic models for API requests, responses and format detection."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str


class WorkbookFormat(str, Enum):
    """Binary workbook container formats the decoder can read."""

    XLSX = "xlsx"
    XLS = "xls"


class FormatInfo(BaseModel):
    """Workbook format detection result."""

    workbook_format: WorkbookFormat = Field(
        ..., description="Container format the content will be read as"
    )
    mime_type: str = Field(
        ..., description="MIME type reported for the content (or extension)"
    )
    detected_from_content: bool = Field(
        default=False,
        description="Whether format was detected from file content (magic bytes)",
    )
    original_extension: str | None = Field(
        default=None,
        description="Client file extension when it disagrees with the content",
    )


class ColumnSchemaModel(BaseModel):
    """Inferred type and nullability of one column."""

    name: str = Field(..., description="Header name of the column")
    type: str = Field(
        ...,
        description="One of boolean, integer, float, string, date, mixed",
    )
    nullable: bool = Field(..., description="Whether any data row left it empty")


class ExcelToJsonResponse(BaseModel):
    """Response model for the workbook decode endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    document: dict[str, list[dict[str, Any]]] = Field(
        ...,
        alias="json",
        description="Sheet name mapped to its row records",
    )
    sheet_schemas: dict[str, list[ColumnSchemaModel]] = Field(
        ...,
        alias="schema",
        description="Sheet name mapped to its inferred column schemas",
    )


class JsonToExcelRequest(BaseModel):
    """Request body for the workbook encode endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    document: dict[str, Any] = Field(
        ...,
        alias="json",
        description="Sheet name mapped to a list of record objects",
    )
    format_spec: dict[str, Any] | None = Field(
        default=None,
        alias="format",
        description="Optional sheet name mapped to an ordered list of columns",
    )


class ErrorResponse(BaseModel):
    """Error body returned by every failing request.

    This model provides:
    - Human-readable error message under ``error``
    - Machine-readable error code
    - Optional additional details for debugging
    - Optional request ID for correlation
    """

    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code (e.g., 'E1001')",
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error details for debugging",
    )
    request_id: str | None = Field(
        default=None,
        description="Request ID for error correlation",
    )
