"""
==============================================================================
WebSocket Package
==============================================================================

Real-time WebSocket handlers for scanning.

Handlers:
---------
- scanner: Keystroke capture and live scan events

==============================================================================
"""

from .scanner import router as scanner_router

__all__ = ["scanner_router"]
