"""Excel/JSON Converter - bidirectional workbook and JSON conversion service."""

from excel_json_converter.api import app, create_app

__all__ = ["app", "create_app"]
__version__ = "0.1.0"


def main() -> None:
    """Run the FastAPI server using uvicorn."""
    import uvicorn

    from excel_json_converter.config import settings

    uvicorn.run(
        "excel_json_converter.api:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )
