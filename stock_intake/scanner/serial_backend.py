"""
==============================================================================
Serial Backend Module
==============================================================================

Host serial port capability used by the serial link manager.

Classes:
--------
- SerialBackend: Abstract capability (enumerate, request, open)
- PySerialBackend: pyserial / pyserial-asyncio implementation
- SerialLink: One open port with its byte stream

Port Request:
-------------
request_port() narrows the enumerated ports by USB vendor id (or not, when
no filter is given) and hands the candidates to a selector that stands in
for the operator. A selector returning None means the operator declined.

==============================================================================
"""

from __future__ import annotations

import asyncio
import errno
import logging
from abc import ABCMeta, abstractmethod
from typing import Awaitable, Callable, List, Optional, Sequence

import serial
import serial_asyncio
from serial.tools import list_ports
from pydantic import BaseModel, Field


# Module logger
logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class SerialBackendError(Exception):
    """Error raised by a serial backend."""


class PortSelectionCancelled(SerialBackendError):
    """Operator declined to pick a device, or there was nothing to pick."""


class PortNotFoundError(SerialBackendError):
    """The chosen device is not among the candidates."""


class PortAccessError(SerialBackendError):
    """The host refused access to the device."""


class PortBusyError(SerialBackendError):
    """The device is held by another process or has gone away."""


# =============================================================================
# MODELS
# =============================================================================

class PortInfo(BaseModel):
    """A serial device known to the host."""

    device: str = Field(..., min_length=1)
    description: str = ""
    manufacturer: Optional[str] = None
    vid: Optional[int] = None
    pid: Optional[int] = None
    serial_number: Optional[str] = None


class LinkFraming(BaseModel):
    """Line settings; scanners are fixed at 8N1 without flow control."""

    bytesize: int = serial.EIGHTBITS
    parity: str = serial.PARITY_NONE
    stopbits: float = serial.STOPBITS_ONE
    flow_control: bool = False


PortSelector = Callable[[List[PortInfo]], Awaitable[Optional[PortInfo]]]


async def first_port_selector(candidates: List[PortInfo]) -> Optional[PortInfo]:
    """Pick the first candidate; decline when there is none."""
    return candidates[0] if candidates else None


def device_selector(device: str) -> PortSelector:
    """
    Selector for an operator who named a device up front.

    Returns the matching candidate, or a bare PortInfo for the named device
    so that request_port() reports it as not found.
    """
    async def select(candidates: List[PortInfo]) -> Optional[PortInfo]:
        for port in candidates:
            if port.device == device:
                return port
        return PortInfo(device=device)

    return select


class SerialLink:
    """
    An open serial port.

    Attributes:
        port: Device the link was opened on
        baudrate: Rate that opened successfully
        reader: Byte stream, or None when the port is not readable
    """

    def __init__(
        self,
        port: PortInfo,
        baudrate: int,
        reader: Optional[asyncio.StreamReader],
        writer: Optional[asyncio.StreamWriter] = None,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.reader = reader
        self._writer = writer
        self._closed = False

    @property
    def readable(self) -> bool:
        return self.reader is not None

    @property
    def is_open(self) -> bool:
        if self._closed:
            return False
        if self._writer is not None and self._writer.is_closing():
            return False
        return True

    def release_reader(self) -> None:
        """Detach the byte stream; the port itself stays open."""
        self.reader = None

    async def close(self) -> None:
        """Close the port; closing an already closed link is a no-op."""
        if self._closed:
            return
        self._closed = True
        if self._writer is None or self._writer.is_closing():
            return
        self._writer.close()
        await self._writer.wait_closed()

    def __repr__(self) -> str:
        return f"SerialLink(port={self.port.device!r}, baudrate={self.baudrate})"


# =============================================================================
# BACKENDS
# =============================================================================

class SerialBackend(metaclass=ABCMeta):
    """Serial port capability of the host."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the host can access serial ports at all."""

    @abstractmethod
    async def list_ports(self) -> List[PortInfo]:
        """Ports the host currently exposes."""

    @abstractmethod
    async def open(self, port: PortInfo, baudrate: int, framing: LinkFraming) -> SerialLink:
        """Open the port at one baud rate; raises on failure."""

    async def request_port(
        self,
        vendor_ids: Optional[Sequence[int]] = None,
        selector: PortSelector = first_port_selector,
    ) -> PortInfo:
        """
        Ask the operator for a port.

        Args:
            vendor_ids: Only offer ports with these USB vendor ids (None = all)
            selector: Operator choice among the candidates

        Raises:
            PortSelectionCancelled: The selector declined
            PortNotFoundError: The selected device is not a candidate
        """
        candidates = await self.list_ports()
        if vendor_ids is not None:
            allowed = set(vendor_ids)
            candidates = [p for p in candidates if p.vid in allowed]

        choice = await selector(candidates)
        if choice is None:
            raise PortSelectionCancelled("No device selected")

        if choice.device not in {p.device for p in candidates}:
            raise PortNotFoundError(f"Device {choice.device} not found")

        return choice


class PySerialBackend(SerialBackend):
    """
    Backend over pyserial enumeration and pyserial-asyncio streams.

    Example:
        >>> backend = PySerialBackend()
        >>> ports = await backend.list_ports()
        >>> link = await backend.open(ports[0], 9600, LinkFraming())
    """

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled

    def is_available(self) -> bool:
        return self._enabled

    async def list_ports(self) -> List[PortInfo]:
        found = await asyncio.to_thread(list_ports.comports)
        return [
            PortInfo(
                device=info.device,
                description=info.description or "",
                manufacturer=info.manufacturer,
                vid=info.vid,
                pid=info.pid,
                serial_number=info.serial_number,
            )
            for info in found
        ]

    async def open(self, port: PortInfo, baudrate: int, framing: LinkFraming) -> SerialLink:
        try:
            reader, writer = await serial_asyncio.open_serial_connection(
                url=port.device,
                baudrate=baudrate,
                bytesize=framing.bytesize,
                parity=framing.parity,
                stopbits=framing.stopbits,
                xonxoff=framing.flow_control,
                rtscts=framing.flow_control,
                dsrdtr=False,
            )
        except serial.SerialException as exc:
            if exc.errno in (errno.EACCES, errno.EPERM):
                raise PortAccessError(str(exc)) from exc
            if exc.errno in (errno.EBUSY, errno.ENODEV, errno.ENXIO):
                raise PortBusyError(str(exc)) from exc
            raise
        logger.debug(f"Opened {port.device} at {baudrate} baud")
        return SerialLink(port, baudrate, reader, writer)
