"""Configuration management for the Excel/JSON converter.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
EJC_ prefix, or via a .env file in the project root.

Environment Variables:
    EJC_MAX_FILE_SIZE_MB: Maximum upload / request body size in MB (default: 10)
    EJC_DATE_FORMATS: JSON list of strptime formats recognised as dates when
        encoding (default: ISO-8601 date and datetime forms)
    EJC_MAX_SHEET_WORKERS: Threads used for per-sheet work (default: 4)
    EJC_PARALLEL_ROW_THRESHOLD: Minimum total rows before sheets are
        processed in parallel (default: 5000)
    EJC_OUTPUT_FILENAME: Download name for encoded workbooks
        (default: converted.xlsx)
    EJC_LOG_LEVEL: Logging level (default: INFO)
    EJC_DEBUG: Enable debug mode (default: false)
    EJC_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    EJC_SERVER_HOST: Server bind host (default: 0.0.0.0)
    EJC_SERVER_PORT: Server bind port (default: 8000)
"""

import logging
import re
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATE_FORMATS: list[str] = [
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%d %H:%M:%S",
]

_STRPTIME_DIRECTIVE_RE = re.compile(r"%[a-zA-Z]")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables prefixed with
    EJC_ or via a .env file.

    Example .env file:
        EJC_LOG_LEVEL=DEBUG
        EJC_DATE_FORMATS=["%Y-%m-%d", "%d/%m/%Y"]
        EJC_MAX_SHEET_WORKERS=8
    """

    model_config = SettingsConfigDict(
        env_prefix="EJC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_file_size_mb: int = 10
    """Maximum upload or JSON body size in megabytes."""

    # =========================================================================
    # Conversion Settings
    # =========================================================================

    date_formats: list[str] = list(DEFAULT_DATE_FORMATS)
    """strptime formats; strings matching one of them are written as dates."""

    max_sheet_workers: int = 4
    """Maximum threads used to decode or lay out sheets concurrently."""

    parallel_row_threshold: int = 5000
    """Total row count at which multi-sheet work moves onto a thread pool."""

    output_filename: str = "converted.xlsx"
    """Filename suggested to clients downloading an encoded workbook."""

    # =========================================================================
    # Logging Settings
    # =========================================================================

    log_level: str = "INFO"
    """Logging level: DEBUG, INFO, WARNING, ERROR, or CRITICAL."""

    debug: bool = False
    """Enable debug mode with additional error details."""

    # =========================================================================
    # Server Settings
    # =========================================================================

    cors_origins: str = "*"
    """Comma-separated list of allowed CORS origins, or * for all."""

    server_host: str = "0.0.0.0"
    """Host address for the server to bind to."""

    server_port: int = 8000
    """Port for the server to listen on."""

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: {', '.join(valid_levels)}"
            )
        return upper_v

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_file_size(cls, v: int) -> int:
        """Validate file size is positive and reasonable."""
        if not 1 <= v <= 500:
            raise ValueError(f"max_file_size_mb must be between 1 and 500, got {v}")
        return v

    @field_validator("date_formats")
    @classmethod
    def validate_date_formats(cls, v: list[str]) -> list[str]:
        """Validate every entry is a non-empty strptime format."""
        if not v:
            raise ValueError("date_formats must contain at least one format")
        for fmt in v:
            if not _STRPTIME_DIRECTIVE_RE.search(fmt):
                raise ValueError(f"date format has no strptime directive: {fmt!r}")
        return v

    @field_validator("max_sheet_workers")
    @classmethod
    def validate_sheet_workers(cls, v: int) -> int:
        if not 1 <= v <= 64:
            raise ValueError(f"max_sheet_workers must be between 1 and 64, got {v}")
        return v

    @field_validator("parallel_row_threshold")
    @classmethod
    def validate_row_threshold(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"parallel_row_threshold must be >= 0, got {v}")
        return v

    @field_validator("output_filename")
    @classmethod
    def validate_output_filename(cls, v: str) -> str:
        """Validate the download name is a bare .xlsx filename."""
        name = v.strip()
        if not name.lower().endswith(".xlsx") or "/" in name or "\\" in name:
            raise ValueError(
                f"output_filename must be a bare filename ending in .xlsx, got {v!r}"
            )
        return name

    @field_validator("server_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError(f"server_port must be between 1 and 65535, got {v}")
        return v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_file_size_bytes(self) -> int:
        """Get max file size in bytes."""
        return self.max_file_size_mb * 1024 * 1024

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def log_level_int(self) -> int:
        """Get log level as integer for logging module."""
        level: int = getattr(logging, self.log_level)
        return level

    def to_safe_dict(self) -> dict[str, Any]:
        """Convert settings to a dictionary suitable for logging."""
        return {
            "max_file_size_mb": self.max_file_size_mb,
            "date_formats": list(self.date_formats),
            "max_sheet_workers": self.max_sheet_workers,
            "parallel_row_threshold": self.parallel_row_threshold,
            "output_filename": self.output_filename,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Validate settings on application startup.

    Emits warnings for settings that are legal but questionable in
    production and logs a configuration summary.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"max_file_size_mb={s.max_file_size_mb}, "
        f"max_sheet_workers={s.max_sheet_workers}, "
        f"date_formats={len(s.date_formats)}"
    )


settings = Settings()
