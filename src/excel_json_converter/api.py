"""FastAPI application for Excel/JSON conversion."""

import asyncio
import json
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Annotated, Any, TypeVar

from fastapi import (
    FastAPI,
    File,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from excel_json_converter.config import settings, validate_settings_on_startup
from excel_json_converter.models import (
    ErrorResponse,
    ExcelToJsonResponse,
    HealthResponse,
    JsonToExcelRequest,
)
from excel_json_converter.services.decoder import DecodeOptions, WorkbookDecoder
from excel_json_converter.services.encoder import EncodeOptions, WorkbookEncoder
from excel_json_converter.services.format_detector import XLSX_MIME_TYPE
from excel_json_converter.services.sheet_pool import SheetPoolOptions
from excel_json_converter.utils.exceptions import (
    ConverterError,
    ErrorCode,
    FileTooLargeError,
    InternalError,
    ValidationError,
)
from excel_json_converter.utils.logging import (
    clear_context,
    configure_logging,
    get_logger,
    get_request_id,
    set_request_id,
)

VERSION = "0.1.0"

# Configure structured logging using settings
configure_logging(
    level=settings.log_level_int,
    use_structured_formatter=True,
)
logger = get_logger(__name__)

T = TypeVar("T")

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Invalid request"},
    413: {"model": ErrorResponse, "description": "Payload too large"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}


def _error_body(
    request: Request,
    message: str,
    error_code: ErrorCode | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    request_id = getattr(request.state, "request_id", get_request_id())
    return ErrorResponse(
        error=message,
        error_code=error_code.value if error_code else None,
        details=details or None,
        request_id=request_id,
    ).model_dump(exclude_none=True)


async def _convert(direction: str, func: Callable[[], T]) -> T:
    """Run a blocking conversion on a worker thread.

    Converter errors propagate unchanged; anything else is logged with its
    traceback and reported as an InternalError.
    """
    try:
        return await asyncio.to_thread(func)
    except ConverterError:
        raise
    except Exception as e:
        logger.exception(
            f"Unexpected error during {direction}",
            error_type=type(e).__name__,
        )
        if settings.debug:
            raise InternalError(
                f"Internal server error: {type(e).__name__}: {e}"
            ) from e
        raise InternalError() from e


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Excel/JSON Converter API",
        description=(
            "Bidirectional conversion between spreadsheet workbooks and JSON, "
            "with per-column schema inference."
        ),
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Configure CORS using settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    # Validate settings on startup
    validate_settings_on_startup(settings)

    pool = SheetPoolOptions(
        max_workers=settings.max_sheet_workers,
        row_threshold=settings.parallel_row_threshold,
    )
    decoder = WorkbookDecoder(DecodeOptions(pool=pool))
    encoder = WorkbookEncoder(
        EncodeOptions(date_formats=list(settings.date_formats), pool=pool)
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next: Any) -> Any:
        """Assign a request ID, expose it to logging and echo it back."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        set_request_id(request_id)
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()

    @app.exception_handler(ConverterError)
    async def converter_exception_handler(
        request: Request, exc: ConverterError
    ) -> JSONResponse:
        """Render converter exceptions as structured error bodies."""
        logger.error(
            f"Converter error: {exc.message}",
            error_code=exc.error_code.value,
            http_status=exc.http_status,
        )
        return JSONResponse(
            status_code=exc.http_status,
            content=_error_body(request, exc.message, exc.error_code, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report malformed requests in the same shape as other errors."""
        errors = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        logger.warning("Request validation failed", errors=errors)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body(
                request,
                "Invalid request",
                ErrorCode.INVALID_REQUEST,
                {"validation_errors": errors},
            ),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        """Custom exception handler for HTTP exceptions."""
        logger.warning(
            f"HTTP Error: {exc.detail}",
            status_code=exc.status_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, str(exc.detail)),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all handler that hides internals outside debug mode."""
        logger.exception(
            f"Unexpected error: {type(exc).__name__}",
            error_type=type(exc).__name__,
        )
        if settings.debug:
            message = f"Internal server error: {type(exc).__name__}: {exc}"
        else:
            message = "Internal server error. Please try again later."

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body(request, message, ErrorCode.INTERNAL_ERROR),
        )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> dict[str, Any]:
        """Check the health status of the service."""
        logger.debug("Health check requested")
        return {
            "status": "healthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "version": VERSION,
        }

    @app.post(
        "/api/excel-to-json",
        response_model=ExcelToJsonResponse,
        tags=["Conversion"],
        responses={
            **_ERROR_RESPONSES,
            415: {"model": ErrorResponse, "description": "Not a workbook"},
            422: {"model": ErrorResponse, "description": "Ambiguous header row"},
        },
    )
    async def excel_to_json(
        file: Annotated[
            UploadFile | None,
            File(description="Workbook to convert (.xlsx or .xls)"),
        ] = None,
    ) -> dict[str, Any]:
        """Convert an uploaded workbook into JSON records plus column schemas.

        Every sheet becomes a list of records keyed by its header row, and
        every column gets an inferred type and nullability.

        Raises:
            ValidationError: 400 if no file was uploaded.
            FileTooLargeError: 413 if the upload exceeds the size limit.
            UnsupportedFormatError: 415 if the upload is not a workbook.
            SchemaError: 422 if a header row is ambiguous.
        """
        if file is None or not file.filename:
            logger.warning("Decode request missing file")
            raise ValidationError(
                message="A workbook file must be uploaded in the 'file' field",
                field="file",
            )

        filename = file.filename
        content = await file.read()
        if len(content) > settings.max_file_size_bytes:
            raise FileTooLargeError(
                file_size=len(content),
                max_size=settings.max_file_size_bytes,
                filename=filename,
            )

        logger.info(
            "Workbook received",
            filename=filename,
            file_size=len(content),
        )
        started = time.perf_counter()
        try:
            result = await _convert(
                "excel_to_json", lambda: decoder.decode(content, filename)
            )
        except ConverterError as e:
            logger.log_conversion_result(
                direction="excel_to_json",
                success=False,
                duration_seconds=time.perf_counter() - started,
                error_message=e.message,
            )
            raise

        logger.log_conversion_result(
            direction="excel_to_json",
            success=True,
            duration_seconds=time.perf_counter() - started,
            sheets=len(result.schemas),
            rows=result.row_count,
        )
        return result.to_payload()

    @app.post(
        "/api/json-to-excel",
        response_class=Response,
        tags=["Conversion"],
        responses={
            200: {
                "content": {XLSX_MIME_TYPE: {}},
                "description": "The encoded workbook",
            },
            **_ERROR_RESPONSES,
        },
        openapi_extra={
            "requestBody": {
                "required": True,
                "content": {
                    "application/json": {
                        "schema": JsonToExcelRequest.model_json_schema(
                            by_alias=True
                        )
                    }
                },
            }
        },
    )
    async def json_to_excel(request: Request) -> Response:
        """Convert ``{json, format?}`` into a downloadable .xlsx workbook.

        ``json`` maps sheet names to lists of records. ``format`` optionally
        maps sheet names to the ordered columns to write.
        """
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > settings.max_file_size_bytes:
            raise FileTooLargeError(
                file_size=int(declared), max_size=settings.max_file_size_bytes
            )

        body = await request.body()
        if len(body) > settings.max_file_size_bytes:
            raise FileTooLargeError(
                file_size=len(body), max_size=settings.max_file_size_bytes
            )

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Malformed JSON body", error=str(e))
            raise ValidationError(
                message=f"Request body is not valid JSON: {e}",
                error_code=ErrorCode.INVALID_JSON,
                details={"parse_error": str(e)},
            ) from e

        try:
            parsed = JsonToExcelRequest.model_validate(payload)
        except PydanticValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in error['loc']) or 'body'}: "
                f"{error['msg']}"
                for error in e.errors()
            ]
            raise ValidationError(
                message="Request body must be an object with a 'json' field "
                "and an optional 'format' field",
                field="body",
                errors=errors,
            ) from e

        started = time.perf_counter()
        try:
            content = await _convert(
                "json_to_excel",
                lambda: encoder.encode(parsed.document, parsed.format_spec),
            )
        except ConverterError as e:
            logger.log_conversion_result(
                direction="json_to_excel",
                success=False,
                duration_seconds=time.perf_counter() - started,
                error_message=e.message,
            )
            raise

        logger.log_conversion_result(
            direction="json_to_excel",
            success=True,
            duration_seconds=time.perf_counter() - started,
            sheets=len(parsed.document),
            rows=sum(
                len(records)
                for records in parsed.document.values()
                if isinstance(records, list)
            ),
        )
        return Response(
            content=content,
            media_type=XLSX_MIME_TYPE,
            headers={
                "Content-Disposition": (
                    f'attachment; filename="{settings.output_filename}"'
                )
            },
        )

    return app


# Create the default app instance
app = create_app()
