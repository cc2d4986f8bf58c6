"""Tests for configuration management module."""

import logging
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from excel_json_converter.config import (
    DEFAULT_DATE_FORMATS,
    Settings,
    validate_settings_on_startup,
)


class TestSettings:
    """Tests for the Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        # Upload defaults
        assert settings.max_file_size_mb == 10

        # Conversion defaults
        assert settings.date_formats == DEFAULT_DATE_FORMATS
        assert settings.max_sheet_workers == 4
        assert settings.parallel_row_threshold == 5000
        assert settings.output_filename == "converted.xlsx"

        # Logging defaults
        assert settings.log_level == "INFO"
        assert settings.debug is False

        # Server defaults
        assert settings.cors_origins == "*"
        assert settings.server_host == "0.0.0.0"
        assert settings.server_port == 8000

    def test_environment_variable_prefix(self) -> None:
        """Test that environment variables use the EJC_ prefix."""
        env_vars = {
            "EJC_MAX_FILE_SIZE_MB": "25",
            "EJC_MAX_SHEET_WORKERS": "8",
            "EJC_LOG_LEVEL": "DEBUG",
            "EJC_OUTPUT_FILENAME": "export.xlsx",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_file_size_mb == 25
        assert settings.max_sheet_workers == 8
        assert settings.log_level == "DEBUG"
        assert settings.output_filename == "export.xlsx"

    def test_date_formats_from_json_env(self) -> None:
        """List settings are read as JSON."""
        env_vars = {"EJC_DATE_FORMATS": '["%d/%m/%Y", "%Y-%m-%d"]'}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.date_formats == ["%d/%m/%Y", "%Y-%m-%d"]

    def test_max_file_size_bytes_property(self) -> None:
        """Test max_file_size_bytes computed property."""
        settings = Settings(_env_file=None, max_file_size_mb=3)
        assert settings.max_file_size_bytes == 3 * 1024 * 1024

    def test_cors_origins_list_single(self) -> None:
        settings = Settings(_env_file=None, cors_origins="https://example.com")
        assert settings.cors_origins_list == ["https://example.com"]

    def test_cors_origins_list_multiple(self) -> None:
        settings = Settings(
            _env_file=None, cors_origins="https://a.example, https://b.example"
        )
        assert settings.cors_origins_list == ["https://a.example", "https://b.example"]

    def test_cors_origins_list_wildcard(self) -> None:
        settings = Settings(_env_file=None, cors_origins="*")
        assert settings.cors_origins_list == ["*"]

    def test_log_level_int_property(self) -> None:
        """Test log_level_int computed property."""
        for name, level in [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
        ]:
            assert Settings(_env_file=None, log_level=name).log_level_int == level

    def test_to_safe_dict(self) -> None:
        settings = Settings(_env_file=None)
        safe = settings.to_safe_dict()
        assert safe["max_file_size_mb"] == 10
        assert safe["date_formats"] == DEFAULT_DATE_FORMATS
        assert safe["output_filename"] == "converted.xlsx"
        assert set(safe) >= {"log_level", "debug", "server_host", "server_port"}


class TestSettingsValidation:
    """Tests for Settings field validators."""

    def test_lowercase_log_level_normalized(self) -> None:
        assert Settings(_env_file=None, log_level="warning").log_level == "WARNING"

    def test_invalid_log_level_raises_error(self) -> None:
        with pytest.raises(ValidationError, match="Invalid log level"):
            Settings(_env_file=None, log_level="LOUD")

    @pytest.mark.parametrize("size", [0, 501])
    def test_file_size_must_be_between_1_and_500(self, size: int) -> None:
        with pytest.raises(ValidationError, match="max_file_size_mb"):
            Settings(_env_file=None, max_file_size_mb=size)

    def test_date_formats_must_not_be_empty(self) -> None:
        with pytest.raises(ValidationError, match="at least one format"):
            Settings(_env_file=None, date_formats=[])

    def test_date_format_needs_directive(self) -> None:
        with pytest.raises(ValidationError, match="no strptime directive"):
            Settings(_env_file=None, date_formats=["yyyy-mm-dd"])

    @pytest.mark.parametrize("workers", [0, 65])
    def test_sheet_workers_range(self, workers: int) -> None:
        with pytest.raises(ValidationError, match="max_sheet_workers"):
            Settings(_env_file=None, max_sheet_workers=workers)

    def test_row_threshold_not_negative(self) -> None:
        with pytest.raises(ValidationError, match="parallel_row_threshold"):
            Settings(_env_file=None, parallel_row_threshold=-1)

    @pytest.mark.parametrize("name", ["export.csv", "dir/export.xlsx", "a\\b.xlsx"])
    def test_output_filename_rules(self, name: str) -> None:
        with pytest.raises(ValidationError, match="output_filename"):
            Settings(_env_file=None, output_filename=name)

    def test_output_filename_stripped(self) -> None:
        settings = Settings(_env_file=None, output_filename="  report.XLSX ")
        assert settings.output_filename == "report.XLSX"

    @pytest.mark.parametrize("port", [0, 65536])
    def test_port_must_be_valid(self, port: int) -> None:
        with pytest.raises(ValidationError, match="server_port"):
            Settings(_env_file=None, server_port=port)


class TestValidateSettingsOnStartup:
    """Tests for the validate_settings_on_startup function."""

    def test_warns_about_permissive_cors_in_production(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        settings = Settings(_env_file=None, cors_origins="*", debug=False)
        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "CORS is configured to allow all origins" in caplog.text

    def test_no_cors_warning_in_debug_mode(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        settings = Settings(_env_file=None, cors_origins="*", debug=True)
        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "CORS is configured to allow all origins" not in caplog.text

    def test_logs_configuration_summary(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        settings = Settings(_env_file=None, cors_origins="https://example.com")
        with caplog.at_level(logging.INFO):
            validate_settings_on_startup(settings)

        assert "Configuration loaded" in caplog.text
        assert "max_sheet_workers=4" in caplog.text
