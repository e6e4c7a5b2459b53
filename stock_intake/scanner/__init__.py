"""
==============================================================================
Scanner Package - Scan Ingestion
==============================================================================

Capture channels and the payload parser.

Modules:
--------
- parser: Strategy cascade from raw text to ScannedPayload
- keyboard: HID keystroke / paste capture
- serial_backend: Host serial capability (pyserial)
- serial_link: Serial link state machine and read loop

==============================================================================
"""

from .keyboard import KeyboardCapture
from .parser import PayloadParser, parse
from .serial_backend import PortInfo, PySerialBackend, SerialBackend, SerialLink
from .serial_link import SerialLinkManager

__all__ = [
    "KeyboardCapture",
    "PayloadParser",
    "parse",
    "PortInfo",
    "PySerialBackend",
    "SerialBackend",
    "SerialLink",
    "SerialLinkManager",
]
