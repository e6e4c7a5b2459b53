"""
==============================================================================
API v1 Package
==============================================================================

Endpoint modules:
-----------------
- health: Health and orchestration probes
- scanner: Scan channels, parser and pending record

==============================================================================
"""

from . import health, scanner

__all__ = ["health", "scanner"]
