"""
==============================================================================
Schemas Package - Pydantic Models
==============================================================================

This package provides:
- Common: Shared response schemas
- Scan: Pipeline data model, events and scanner request bodies

==============================================================================
"""

from .common import MessageResponse
from .scan import (
    AutoSubmitRequest,
    ChannelRequest,
    KeyboardScanRequest,
    ParseOutcome,
    ParseRequest,
    Parsed,
    PendingUpdate,
    RawScanLine,
    ScanEvent,
    ScanEventType,
    ScanMode,
    ScannedPayload,
    ScanSource,
    SerialConnectionState,
    Unparseable,
)

__all__ = [
    # Common
    "MessageResponse",
    # Scan
    "AutoSubmitRequest",
    "ChannelRequest",
    "KeyboardScanRequest",
    "ParseOutcome",
    "ParseRequest",
    "Parsed",
    "PendingUpdate",
    "RawScanLine",
    "ScanEvent",
    "ScanEventType",
    "ScanMode",
    "ScannedPayload",
    "ScanSource",
    "SerialConnectionState",
    "Unparseable",
]
