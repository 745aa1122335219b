"""Configuration management for the XLSX to CSV converter.

This module provides centralized configuration using pydantic-settings.
All configuration options can be set via environment variables with the
XCC_ prefix, or via a .env file in the project root.

Environment Variables:
    XCC_SEPARATOR: Field separator character (default: ,)
    XCC_ESCAPING_STYLE: Field escaping, backslash or quote (default: backslash)
    XCC_LINE_TERMINATOR: Row delimiter, LF or CRLF (default: LF)
    XCC_LEGACY_CELL_BOUNDS: Visit one extra trailing cell per row (default: true)
    XCC_EVALUATION_ERROR_TEXT: Text emitted for unevaluable formulas (default: #N/A)
    XCC_DECIMAL_SEPARATOR: Decimal mark used when rendering numbers (default: .)
    XCC_THOUSANDS_SEPARATOR: Digit grouping mark (default: ,)
    XCC_MAX_FILE_SIZE_MB: Maximum upload size in MB (default: 10)
    XCC_LOG_LEVEL: Logging level (default: INFO)
    XCC_DEBUG: Enable debug mode (default: false)
    XCC_CORS_ORIGINS: Comma-separated CORS origins (default: *)
    XCC_SERVER_HOST: Server bind host (default: 0.0.0.0)
    XCC_SERVER_PORT: Server bind port (default: 8000)
"""

import logging
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from xlsx_csv_converter.models import EscapingStyle

_LINE_TERMINATORS = {"\n", "\r\n"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Example .env file:
        XCC_SEPARATOR=;
        XCC_ESCAPING_STYLE=quote
        XCC_LOG_LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="XCC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # =========================================================================
    # CSV Output Settings
    # =========================================================================

    separator: str = ","
    """Single character placed between fields."""

    escaping_style: EscapingStyle = EscapingStyle.BACKSLASH
    """Escaping applied to fields containing separators, newlines or quotes."""

    line_terminator: str = "\n"
    """Row delimiter; never written after the final row."""

    # =========================================================================
    # Conversion Settings
    # =========================================================================

    legacy_cell_bounds: bool = True
    """Visit cells up to and including the row's last cell number.

    Kept on by default for consumers that rely on the historical matrix
    shape. The emitted CSV is the same either way.
    """

    evaluation_error_text: str = "#N/A"
    """Field text for formula cells whose result cannot be determined."""

    decimal_separator: str = "."
    """Decimal mark used by number display rules."""

    thousands_separator: str = ","
    """Grouping mark used by number formats such as #,##0."""

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_file_size_mb: int = 10
    """Maximum upload size in megabytes for the HTTP adapter."""

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

    @field_validator("separator")
    @classmethod
    def validate_separator(cls, v: str) -> str:
        """Validate the separator is one character that can delimit fields."""
        if len(v) != 1:
            raise ValueError(f"separator must be a single character, got {v!r}")
        if v in {'"', "\r", "\n"}:
            raise ValueError(f"separator cannot be {v!r}")
        return v

    @field_validator("line_terminator")
    @classmethod
    def validate_line_terminator(cls, v: str) -> str:
        """Accept LF/CRLF, either literally or as escape sequences."""
        normalized = v.replace("\\r", "\r").replace("\\n", "\n")
        if normalized not in _LINE_TERMINATORS:
            raise ValueError(f"line_terminator must be LF or CRLF, got {v!r}")
        return normalized

    @field_validator("decimal_separator")
    @classmethod
    def validate_decimal_separator(cls, v: str) -> str:
        """Validate the decimal mark is a single character."""
        if len(v) != 1:
            raise ValueError(f"decimal_separator must be a single character, got {v!r}")
        return v

    @field_validator("thousands_separator")
    @classmethod
    def validate_thousands_separator(cls, v: str) -> str:
        """Validate the grouping mark is empty or a single character."""
        if len(v) > 1:
            raise ValueError(
                f"thousands_separator must be at most one character, got {v!r}"
            )
        return v

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
            "separator": self.separator,
            "escaping_style": self.escaping_style.value,
            "line_terminator": self.line_terminator.encode("unicode_escape").decode(),
            "legacy_cell_bounds": self.legacy_cell_bounds,
            "evaluation_error_text": self.evaluation_error_text,
            "decimal_separator": self.decimal_separator,
            "thousands_separator": self.thousands_separator,
            "max_file_size_mb": self.max_file_size_mb,
            "log_level": self.log_level,
            "debug": self.debug,
            "cors_origins": self.cors_origins,
            "server_host": self.server_host,
            "server_port": self.server_port,
        }


def validate_settings_on_startup(s: Settings) -> None:
    """Log warnings for settings that are valid but likely to surprise.

    Args:
        s: Settings instance to validate.
    """
    logger = logging.getLogger(__name__)

    if s.decimal_separator == s.separator:
        logger.warning(
            "Decimal separator matches the field separator; fractional numbers "
            "will be escaped in every row."
        )

    if s.cors_origins == "*" and not s.debug:
        logger.warning(
            "CORS is configured to allow all origins (*). "
            "Consider restricting this in production."
        )

    logger.info(
        f"Configuration loaded: log_level={s.log_level}, debug={s.debug}, "
        f"separator={s.separator!r}, escaping_style={s.escaping_style.value}"
    )


settings = Settings()
