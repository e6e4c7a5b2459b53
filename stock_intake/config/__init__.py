"""
==============================================================================
Configuration Package
==============================================================================

Centralized configuration management using Pydantic Settings.

Usage:
------
    from stock_intake.config import get_settings

    settings = get_settings()
    print(settings.serial_baud_rates)

==============================================================================
"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
