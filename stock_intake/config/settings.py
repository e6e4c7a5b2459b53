"""
==============================================================================
Application Settings Module
==============================================================================

Configuration management for the scan intake service using Pydantic Settings.

This module implements the Singleton pattern to ensure a single global
configuration instance throughout the application lifecycle.

Features:
---------
- Environment variable loading with type validation
- .env file support for local development
- Serial link tuning (baud candidates, vendor filters, read chunk size)
- Auto-submit policy default and backend location

Configuration Priority (highest to lowest):
------------------------------------------
1. Environment variables
2. .env file
3. Default values

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Module logger
logger = logging.getLogger(__name__)


# Candidate baud rates, tried in this order when opening a serial scanner
DEFAULT_BAUD_RATES = [9600, 115200, 38400, 19200, 57600]

# USB vendor ids of common scanner brands and USB-serial bridge chipsets
DEFAULT_VENDOR_IDS = [
    0x0403,  # FTDI
    0x067B,  # Prolific
    0x10C4,  # Silicon Labs CP210x
    0x1A86,  # QinHeng CH340
    0x05E0,  # Symbol / Zebra
    0x0C2E,  # Honeywell / Metrologic
    0x1EAB,  # Newland
    0x2341,  # Arduino
]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: Display name for the application
        app_env: Environment mode (development/staging/production)
        debug: Enable debug mode for verbose logging
        host: Server bind address
        port: Server port number
        cors_origins: Allowed CORS origins (JSON array string)
        backend_url: Base URL of the stock-intake backend
        submit_timeout_seconds: Timeout for a single submission call
        auto_submit: Submit parsed scans immediately
        serial_enabled: Whether the host offers serial port access
        serial_baud_rates: Baud rates tried in order when opening a port
        serial_vendor_ids: USB vendor ids for the filtered port request
        serial_read_chunk_size: Max bytes per read from the serial stream
        debug_log_capacity: Entries kept in the operator diagnostic ring

    Example:
        >>> settings = Settings()
        >>> settings.serial_baud_rates
        [9600, 115200, 38400, 19200, 57600]
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # APPLICATION SETTINGS
    # =========================================================================
    app_name: str = Field(
        default="Stock Intake Scanner",
        description="Display name for the application"
    )

    app_env: str = Field(
        default="development",
        description="Environment mode: development, staging, production"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode for verbose logging"
    )

    # =========================================================================
    # SERVER SETTINGS
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Server bind address"
    )

    port: int = Field(
        default=8001,
        ge=1,
        le=65535,
        description="Server port number"
    )

    cors_origins: str = Field(
        default='["*"]',
        description="Allowed CORS origins as JSON array string"
    )

    # =========================================================================
    # BACKEND SUBMISSION SETTINGS
    # =========================================================================
    backend_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the stock-intake backend"
    )

    submit_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Timeout for a single submission call"
    )

    auto_submit: bool = Field(
        default=True,
        description="Submit parsed scans without operator confirmation"
    )

    # =========================================================================
    # SERIAL SCANNER SETTINGS
    # =========================================================================
    serial_enabled: bool = Field(
        default=True,
        description="Whether the host offers serial port access"
    )

    serial_baud_rates: List[int] = Field(
        default_factory=lambda: list(DEFAULT_BAUD_RATES),
        min_length=1,
        description="Baud rates tried in order when opening a port"
    )

    serial_vendor_ids: List[int] = Field(
        default_factory=lambda: list(DEFAULT_VENDOR_IDS),
        description="USB vendor ids used for the filtered port request"
    )

    serial_read_chunk_size: int = Field(
        default=256,
        ge=1,
        le=65536,
        description="Max bytes per read from the serial stream"
    )

    debug_log_capacity: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Entries kept in the operator diagnostic ring"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        """Normalize the environment name, defaulting unknown values."""
        valid_envs = {"development", "staging", "production"}
        normalized = value.lower().strip()

        if normalized not in valid_envs:
            logger.warning(
                f"Unknown environment '{value}', defaulting to 'development'"
            )
            return "development"

        return normalized

    @field_validator("backend_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("serial_baud_rates")
    @classmethod
    def validate_baud_rates(cls, value: List[int]) -> List[int]:
        """
        Reject non-positive rates and drop duplicates, keeping order.

        Raises:
            ValueError: If a rate is not positive
        """
        seen = []
        for rate in value:
            if rate <= 0:
                raise ValueError(f"Invalid baud rate: {rate}")
            if rate not in seen:
                seen.append(rate)
        return seen

    # =========================================================================
    # COMPUTED PROPERTIES
    # =========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Parse CORS origins from JSON string to list.

        Returns:
            List of allowed origin strings
        """
        try:
            origins = json.loads(self.cors_origins)
            if isinstance(origins, list):
                return origins
            return ["*"]
        except json.JSONDecodeError:
            logger.warning(
                f"Invalid CORS origins JSON: {self.cors_origins}, "
                "defaulting to ['*']"
            )
            return ["*"]

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"Settings(app_name={self.app_name!r}, "
            f"app_env={self.app_env!r}, "
            f"serial_enabled={self.serial_enabled}, "
            f"auto_submit={self.auto_submit})"
        )


# =============================================================================
# SINGLETON INSTANCE MANAGEMENT
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the global Settings instance (singleton pattern).

    Returns:
        Global Settings instance
    """
    settings = Settings()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
