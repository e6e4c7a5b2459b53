"""
==============================================================================
Scan Schemas Module
==============================================================================

Data model of the ingestion pipeline and the request/response bodies of
the scanner endpoints.

Includes:
- RawScanLine: one terminated burst from a channel
- ScannedPayload: the structured {name, count, category} result
- Parsed / Unparseable: the tagged parse outcome
- ScanEvent: what the controller pushes to its listeners

==============================================================================
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class ScanSource(str, enum.Enum):
    """Where a raw line came from."""

    KEYBOARD = "keyboard"
    PASTE = "paste"
    SERIAL = "serial"

    def __str__(self) -> str:
        return self.value


class ScanMode(str, enum.Enum):
    """
    Scan channel selectable by the operator.

    Only one channel is open at a time.
    """

    KEYBOARD = "keyboard"
    SERIAL = "serial"

    def __str__(self) -> str:
        return self.value


class SerialConnectionState(str, enum.Enum):
    """
    Serial link state machine.

    Transitions:
        DISCONNECTED -> CONNECTING   (connect requested)
        CONNECTING   -> CONNECTED    (port opened, stream attached)
        CONNECTING   -> DISCONNECTED (no device chosen, open failed)
        CONNECTED    -> READING      (read loop started)
        READING      -> CONNECTED    (line produced)
        any          -> DISCONNECTED (stop protocol)
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    READING = "reading"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# PIPELINE MODELS
# =============================================================================

class RawScanLine(BaseModel):
    """A complete scan as received from a channel; never persisted."""

    text: str
    source: ScanSource
    timestamp: datetime = Field(default_factory=_utcnow)


class ScannedPayload(BaseModel):
    """Structured stock-intake record extracted from a scan."""

    name: str = Field(..., min_length=1)
    count: int = Field(default=1, ge=1)
    category: str = Field(default="")

    @field_validator("name", "category")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()


class Parsed(BaseModel):
    """Successful parse; `strategy` names the cascade step that won."""

    kind: Literal["parsed"] = "parsed"
    payload: ScannedPayload
    strategy: str


class Unparseable(BaseModel):
    """Failed parse; only produced for blank input."""

    kind: Literal["unparseable"] = "unparseable"
    reason: str


ParseOutcome = Union[Parsed, Unparseable]


# =============================================================================
# EVENTS
# =============================================================================

class ScanEventType(str, enum.Enum):
    PAYLOAD = "payload"
    ERROR = "error"
    NOTICE = "notice"
    SUBMITTED = "submitted"
    STATE = "state"

    def __str__(self) -> str:
        return self.value


class ScanEvent(BaseModel):
    """Event pushed by the ingestion controller to UI listeners."""

    type: ScanEventType
    message: Optional[str] = None
    code: Optional[str] = None
    payload: Optional[ScannedPayload] = None
    source: Optional[ScanSource] = None
    data: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


# =============================================================================
# REQUEST BODIES
# =============================================================================

class ParseRequest(BaseModel):
    """Raw text to run through the parser."""
    text: str = Field(..., max_length=4096)


class KeyboardScanRequest(BaseModel):
    """Terminated keystroke burst or paste captured by a client sink."""
    text: str = Field(..., max_length=4096)
    source: Literal["keyboard", "paste"] = "keyboard"


class ChannelRequest(BaseModel):
    """Open or switch to a scan channel."""
    mode: ScanMode
    port: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Serial device to use instead of the first detected scanner"
    )


class AutoSubmitRequest(BaseModel):
    enabled: bool


class PendingUpdate(BaseModel):
    """Operator corrections to the pending record before confirming."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    count: Optional[int] = Field(default=None, ge=1, le=100000)
    category: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v
