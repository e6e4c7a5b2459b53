"""
==============================================================================
Services Package
==============================================================================

Services:
---------
- ScanIngestionController: Channel orchestration and auto-submit policy
- StockIntakeClient: Submission to the stock-intake backend

==============================================================================
"""

from .intake_client import StockIntakeClient
from .ingestion_service import ScanIngestionController

__all__ = [
    "ScanIngestionController",
    "StockIntakeClient",
]
