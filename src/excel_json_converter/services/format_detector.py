"""Workbook format detection from magic bytes and file extensions.

Client-side extension checks are advisory only, so uploaded content is
re-validated here before any parser sees it.
"""

from pathlib import Path

import magic

from excel_json_converter.models import FormatInfo, WorkbookFormat
from excel_json_converter.utils.exceptions import UnsupportedFormatError
from excel_json_converter.utils.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    "EXTENSION_TO_FORMAT",
    "FormatDetector",
    "MIME_TO_FORMAT",
    "UnsupportedFormatError",
    "XLSX_MIME_TYPE",
]

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS_MIME_TYPE = "application/vnd.ms-excel"

EXTENSION_TO_FORMAT: dict[str, WorkbookFormat] = {
    ".xlsx": WorkbookFormat.XLSX,
    ".xlsm": WorkbookFormat.XLSX,
    ".xls": WorkbookFormat.XLS,
}

# libmagic reports OOXML packages as plain zip unless [Content_Types].xml is
# the first entry, and legacy BIFF files under several CDF aliases.
MIME_TO_FORMAT: dict[str, WorkbookFormat] = {
    XLSX_MIME_TYPE: WorkbookFormat.XLSX,
    "application/vnd.ms-excel.sheet.macroenabled.12": WorkbookFormat.XLSX,
    "application/zip": WorkbookFormat.XLSX,
    "application/x-zip-compressed": WorkbookFormat.XLSX,
    XLS_MIME_TYPE: WorkbookFormat.XLS,
    "application/cdfv2": WorkbookFormat.XLS,
    "application/x-ole-storage": WorkbookFormat.XLS,
    "application/vnd.ms-office": WorkbookFormat.XLS,
}

# Content libmagic could not classify; the extension decides.
_INCONCLUSIVE_MIME_TYPES = {"application/octet-stream"}


class FormatDetector:
    """Detects whether uploaded bytes are an .xlsx or .xls workbook.

    Content wins over the client's filename; the extension is consulted only
    when libmagic cannot classify the bytes.
    """

    def __init__(self) -> None:
        """Initialize the format detector with a magic instance."""
        self._magic = magic.Magic(mime=True)

    def detect_from_content(
        self,
        content: bytes,
        filename: str | None = None,
    ) -> FormatInfo:
        """Detect the workbook format of ``content``.

        Args:
            content: Uploaded bytes.
            filename: Optional client filename for extension fallback.

        Returns:
            FormatInfo naming the container format to read.

        Raises:
            UnsupportedFormatError: If the content is not a workbook.
        """
        if not content:
            raise UnsupportedFormatError(
                "Uploaded file is empty",
                filename=filename,
            )

        extension = Path(filename).suffix.lower() if filename else ""
        extension_format = EXTENSION_TO_FORMAT.get(extension)
        detected_mime = self._detect_mime_from_content(content)

        if detected_mime in MIME_TO_FORMAT:
            workbook_format = MIME_TO_FORMAT[detected_mime]
            original_extension = None
            if extension and extension_format is not workbook_format:
                original_extension = extension
                logger.warning(
                    "File extension does not match detected content",
                    extension=extension,
                    detected_mime=detected_mime,
                )
            return FormatInfo(
                workbook_format=workbook_format,
                mime_type=detected_mime,
                detected_from_content=True,
                original_extension=original_extension,
            )

        if (
            detected_mime is None or detected_mime in _INCONCLUSIVE_MIME_TYPES
        ) and extension_format is not None:
            logger.debug(
                "Falling back to extension-based format detection",
                extension=extension,
            )
            mime_type = (
                XLSX_MIME_TYPE
                if extension_format is WorkbookFormat.XLSX
                else XLS_MIME_TYPE
            )
            return FormatInfo(
                workbook_format=extension_format,
                mime_type=mime_type,
                detected_from_content=False,
            )

        raise UnsupportedFormatError(
            "Unsupported file format. Only .xlsx and .xls workbooks are supported.",
            detected_mime=detected_mime,
            filename=filename,
        )

    def _detect_mime_from_content(self, content: bytes) -> str | None:
        """Detect MIME type from magic bytes, lowercased, or None."""
        try:
            detected = self._magic.from_buffer(content)
        except magic.MagicException as e:
            logger.warning(
                "Magic detection failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return None
        return detected.lower() if detected else None

    @staticmethod
    def get_supported_extensions() -> list[str]:
        """Get list of supported file extensions."""
        return sorted(EXTENSION_TO_FORMAT.keys())
