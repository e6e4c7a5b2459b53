"""
==============================================================================
Keyboard Capture Module
==============================================================================

Capture channel for HID scanners that type the decoded code as a burst of
keystrokes followed by Enter.

The sink accumulates characters until Enter, then hands the trimmed text
over as one RawScanLine and clears itself. A paste is forwarded directly
and never lands in the sink. Characters are not interpreted one by one.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from stock_intake.schemas.scan import RawScanLine, ScanSource


# Module logger
logger = logging.getLogger(__name__)


LineHandler = Callable[[RawScanLine], Awaitable[None]]

ENTER_KEYS = frozenset({"Enter", "Return", "NumpadEnter", "\r", "\n"})
BACKSPACE_KEYS = frozenset({"Backspace", "\b"})


class KeyboardCapture:
    """
    Focused text sink fed by an external keystroke source.

    Example:
        >>> capture = KeyboardCapture(on_line=controller.ingest)
        >>> capture.open()
        >>> for ch in "Paracetamol|5":
        ...     await capture.key(ch)
        >>> await capture.key("Enter")
    """

    def __init__(self, on_line: Optional[LineHandler] = None) -> None:
        self._on_line = on_line
        self._buffer: List[str] = []
        self._open = False

    def set_handler(self, on_line: Optional[LineHandler]) -> None:
        self._on_line = on_line

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def text(self) -> str:
        """Characters typed since the last Enter."""
        return "".join(self._buffer)

    def open(self) -> None:
        self._buffer.clear()
        self._open = True
        logger.debug("Keyboard capture opened")

    def close(self) -> None:
        self._buffer.clear()
        self._open = False
        logger.debug("Keyboard capture closed")

    async def key(self, key: str) -> Optional[RawScanLine]:
        """
        Feed one key event.

        Args:
            key: A printable character or a key name such as "Enter"

        Returns:
            The forwarded line when the key terminated a scan, else None
        """
        if not self._open:
            return None

        if key in ENTER_KEYS:
            text = "".join(self._buffer).strip()
            self._buffer.clear()
            return await self._forward(text, ScanSource.KEYBOARD)

        if key in BACKSPACE_KEYS:
            if self._buffer:
                self._buffer.pop()
            return None

        if len(key) == 1 and key.isprintable():
            self._buffer.append(key)

        return None

    async def paste(self, text: str) -> Optional[RawScanLine]:
        """Forward pasted text without touching the sink."""
        if not self._open:
            return None
        return await self._forward((text or "").strip(), ScanSource.PASTE)

    async def submit(self, text: str, source: ScanSource = ScanSource.KEYBOARD) -> Optional[RawScanLine]:
        """Forward a burst already terminated by a client-side sink."""
        if not self._open:
            return None
        self._buffer.clear()
        return await self._forward((text or "").strip(), source)

    async def _forward(self, text: str, source: ScanSource) -> RawScanLine:
        line = RawScanLine(text=text, source=source)
        logger.debug(f"Keyboard scan captured from {source} ({len(text)} chars)")
        if self._on_line is not None:
            await self._on_line(line)
        return line
