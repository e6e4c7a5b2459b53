"""
==============================================================================
Debug Log Module
==============================================================================

Bounded diagnostic log shown to the operator next to the scanner controls.

Only the last N entries are kept. Every entry is also written to the
module logger so the server log has the full history. Nothing reads these
entries to make decisions.

==============================================================================
"""

from __future__ import annotations

import enum
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List

from pydantic import BaseModel, Field


# Module logger
logger = logging.getLogger(__name__)


class Severity(str, enum.Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def level(self) -> int:
        """Matching stdlib logging level."""
        return getattr(logging, self.name)


class DebugLogEntry(BaseModel):
    message: str
    severity: Severity = Severity.INFO
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DebugLog:
    """
    Fixed-capacity, append-only ring of DebugLogEntry.

    Example:
        >>> log = DebugLog(capacity=2)
        >>> for message in ("a", "b", "c"):
        ...     _ = log.info(message)
        >>> [e.message for e in log.entries()]
        ['b', 'c']
    """

    def __init__(self, capacity: int = 50) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: Deque[DebugLogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def append(self, message: str, severity: Severity = Severity.INFO) -> DebugLogEntry:
        entry = DebugLogEntry(message=message, severity=severity)
        self._entries.append(entry)
        logger.log(severity.level, message)
        return entry

    def debug(self, message: str) -> DebugLogEntry:
        return self.append(message, Severity.DEBUG)

    def info(self, message: str) -> DebugLogEntry:
        return self.append(message, Severity.INFO)

    def warning(self, message: str) -> DebugLogEntry:
        return self.append(message, Severity.WARNING)

    def error(self, message: str) -> DebugLogEntry:
        return self.append(message, Severity.ERROR)

    def entries(self) -> List[DebugLogEntry]:
        """Oldest first."""
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
