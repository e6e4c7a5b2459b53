"""
==============================================================================
Utilities Package
==============================================================================

Modules:
--------
- debug_log: Bounded operator diagnostic log

==============================================================================
"""

from .debug_log import DebugLog, DebugLogEntry, Severity

__all__ = [
    "DebugLog",
    "DebugLogEntry",
    "Severity",
]
