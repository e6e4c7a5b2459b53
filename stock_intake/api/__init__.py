"""
==============================================================================
API Package
==============================================================================

REST endpoints mounted under /api/v1.

==============================================================================
"""

from .router import api_router

__all__ = ["api_router"]
