"""
==============================================================================
Core Package
==============================================================================

Cross-cutting pieces shared by the scanner, services and API layers.

Modules:
--------
- exceptions: AppException, FastAPI handler and error factories
- dependencies: FastAPI dependency providers (import directly)

==============================================================================
"""

from .exceptions import AppException, register_exception_handlers

__all__ = [
    "AppException",
    "register_exception_handlers",
]
