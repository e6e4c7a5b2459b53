"""
==============================================================================
Stock Intake Scanner
==============================================================================

Barcode/QR scanner ingestion for stock intake: keyboard-wedge and serial
scanners in, structured {name, count, category} records out.

==============================================================================
"""

__version__ = "1.0.0"
