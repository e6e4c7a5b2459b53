"""
==============================================================================
Serial Link Manager Module
==============================================================================

Owns the optional hardware serial connection to a scanner.

State Machine:
--------------
    DISCONNECTED --connect--> CONNECTING --port open--> CONNECTED
    CONNECTED --read loop--> READING --line--> CONNECTED
    CONNECTING --no device / open failed--> DISCONNECTED
    any --stop--> DISCONNECTED

`state` is the only source of truth; there are no separate "is open" or
"is reading" flags. A single in-flight stop future collapses concurrent
stop requests into one teardown.

Connect:
--------
1. Refuse when the host has no serial capability
2. Stop any existing link
3. Request a port with the vendor filter, then once without it
4. Open at the first candidate baud rate that works (8N1, no flow control)
5. Attach an incremental UTF-8 decoder and start the read loop

Read Loop:
----------
Decoded chunks are appended to a buffer split on runs of CR/LF; every
fragment but the last is a complete line. The first non-blank line is
forwarded and the loop ends, so a connection yields at most one scan
unless resume() is called. End of stream or a read error tears the link
down.

==============================================================================
"""

from __future__ import annotations

import asyncio
import codecs
import errno
import logging
import re
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from stock_intake.config.settings import DEFAULT_BAUD_RATES, DEFAULT_VENDOR_IDS, Settings
from stock_intake.core import exceptions
from stock_intake.core.exceptions import AppException
from stock_intake.schemas.scan import RawScanLine, ScanSource, SerialConnectionState
from stock_intake.utils.debug_log import DebugLog

from .serial_backend import (
    LinkFraming,
    PortAccessError,
    PortBusyError,
    PortInfo,
    PortNotFoundError,
    PortSelectionCancelled,
    PortSelector,
    SerialBackend,
    SerialBackendError,
    SerialLink,
    first_port_selector,
)


# Module logger
logger = logging.getLogger(__name__)


LineHandler = Callable[[RawScanLine], Awaitable[None]]
ErrorHandler = Callable[[AppException], Awaitable[None]]
NoticeHandler = Callable[[str], Awaitable[None]]

State = SerialConnectionState

_TRANSITIONS: Dict[State, set] = {
    State.DISCONNECTED: {State.CONNECTING},
    State.CONNECTING: {State.CONNECTED, State.DISCONNECTED},
    State.CONNECTED: {State.READING, State.DISCONNECTED},
    State.READING: {State.CONNECTED, State.DISCONNECTED},
}

_LINE_BREAKS = re.compile(r"[\r\n]+")

_BUSY_ERRNOS = {errno.EBUSY, errno.ENODEV, errno.ENXIO, errno.EIO}


def classify_link_error(exc: BaseException) -> AppException:
    """Map a connect-time failure onto the operator error taxonomy."""
    if isinstance(exc, AppException):
        return exc
    if isinstance(exc, PortNotFoundError):
        return exceptions.device_not_found(str(exc))
    if isinstance(exc, (PortAccessError, PermissionError)):
        return exceptions.device_not_found(f"access denied: {exc}")
    if isinstance(exc, PortBusyError):
        return exceptions.port_busy(str(exc))
    if isinstance(exc, OSError) and exc.errno in _BUSY_ERRNOS:
        return exceptions.port_busy(str(exc))
    return exceptions.connection_error(str(exc) or type(exc).__name__)


class SerialLinkManager:
    """
    Lifecycle of one scanner serial connection at a time.

    Completed lines go to the line handler; failures become AppException
    values passed to the error handler. Nothing raised inside the link
    escapes connect(), stop() or the read loop.

    Example:
        >>> manager = SerialLinkManager(PySerialBackend())
        >>> manager.set_handlers(on_line=controller.ingest)
        >>> await manager.connect()
        <SerialConnectionState.READING: 'reading'>
        >>> await manager.stop()
    """

    def __init__(
        self,
        backend: Optional[SerialBackend],
        baud_rates: Sequence[int] = DEFAULT_BAUD_RATES,
        vendor_ids: Optional[Sequence[int]] = DEFAULT_VENDOR_IDS,
        chunk_size: int = 256,
        debug_log: Optional[DebugLog] = None,
        framing: Optional[LinkFraming] = None,
    ) -> None:
        self._backend = backend
        self._baud_rates: List[int] = list(baud_rates)
        self._vendor_ids = list(vendor_ids) if vendor_ids is not None else None
        self._chunk_size = chunk_size
        self._framing = framing or LinkFraming()
        self._log = debug_log or DebugLog()

        self._state = State.DISCONNECTED
        self._link: Optional[SerialLink] = None
        self._decoder: Optional[codecs.IncrementalDecoder] = None
        self._read_task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Future] = None
        # Bumped by every stop; stale connects and read loops compare against it
        self._session = 0

        self._on_line: Optional[LineHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._on_notice: Optional[NoticeHandler] = None

    @classmethod
    def from_settings(
        cls,
        backend: Optional[SerialBackend],
        settings: Settings,
        debug_log: Optional[DebugLog] = None,
    ) -> SerialLinkManager:
        return cls(
            backend,
            baud_rates=settings.serial_baud_rates,
            vendor_ids=settings.serial_vendor_ids,
            chunk_size=settings.serial_read_chunk_size,
            debug_log=debug_log,
        )

    def set_handlers(
        self,
        on_line: Optional[LineHandler] = None,
        on_error: Optional[ErrorHandler] = None,
        on_notice: Optional[NoticeHandler] = None,
    ) -> None:
        self._on_line = on_line
        self._on_error = on_error
        self._on_notice = on_notice

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def state(self) -> State:
        return self._state

    @property
    def link(self) -> Optional[SerialLink]:
        return self._link

    @property
    def is_available(self) -> bool:
        return self._backend is not None and self._backend.is_available()

    def snapshot(self) -> dict:
        """Current link status for the operator."""
        return {
            "state": self._state.value,
            "available": self.is_available,
            "port": self._link.port.device if self._link else None,
            "baudrate": self._link.baudrate if self._link else None,
        }

    async def list_ports(self) -> List[PortInfo]:
        if not self.is_available:
            raise exceptions.serial_unavailable()
        return await self._backend.list_ports()

    def _transition(self, new: State) -> None:
        if new not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Illegal serial transition {self._state} -> {new}")
        logger.debug(f"Serial link {self._state} -> {new}")
        self._state = new

    # =========================================================================
    # CONNECT
    # =========================================================================

    async def connect(self, selector: PortSelector = first_port_selector) -> State:
        """
        Run the connect protocol.

        Args:
            selector: Operator choice among candidate ports

        Returns:
            State after the attempt (READING on success)
        """
        if not self.is_available:
            await self._report(exceptions.serial_unavailable())
            return self._state

        if self._state is not State.DISCONNECTED:
            self._log.info("Closing existing serial link before reconnecting")
            await self.stop()

        session = self._session
        self._transition(State.CONNECTING)

        try:
            port = await self._request_port(selector)
            if session != self._session:
                return self._state

            self._log.info(f"Selected {port.device} ({port.description or 'no description'})")
            link = await self._open_port(port)
            if session != self._session:
                await link.close()
                return self._state

        except PortSelectionCancelled:
            if session == self._session:
                await self._notify("No device selected")
                self._transition(State.DISCONNECTED)
            return self._state

        except Exception as exc:
            if session == self._session:
                await self._report(classify_link_error(exc))
                await self.stop()
            return self._state

        self._link = link
        self._transition(State.CONNECTED)

        if not link.readable:
            # Port stays open; the operator has to disconnect and reconnect
            await self._report(exceptions.not_readable())
            return self._state

        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._start_reading()
        return self._state

    async def _request_port(self, selector: PortSelector) -> PortInfo:
        try:
            return await self._backend.request_port(self._vendor_ids, selector)
        except SerialBackendError as exc:
            self._log.info(f"Filtered port request failed ({exc}); retrying without filter")
        return await self._backend.request_port(None, selector)

    async def _open_port(self, port: PortInfo) -> SerialLink:
        for baudrate in self._baud_rates:
            try:
                link = await self._backend.open(port, baudrate, self._framing)
            except (PortAccessError, PortBusyError):
                raise
            except (OSError, ValueError) as exc:
                self._log.warning(f"Open at {baudrate} baud failed: {exc}")
                continue
            self._log.info(f"Opened {port.device} at {baudrate} baud")
            return link

        raise exceptions.open_failed(self._baud_rates)

    # =========================================================================
    # READ LOOP
    # =========================================================================

    def _start_reading(self) -> None:
        self._transition(State.READING)
        self._read_task = asyncio.create_task(
            self._read_loop(self._session),
            name="serial-scanner-read",
        )

    def resume(self) -> bool:
        """
        Start a fresh read on a connected link that has stopped reading.

        Returns:
            True if a read loop was started
        """
        if self._state is not State.CONNECTED or self._link is None:
            return False
        if not self._link.readable or self._decoder is None:
            return False
        self._start_reading()
        return True

    async def _read_loop(self, session: int) -> None:
        link = self._link
        decoder = self._decoder
        buffer = ""

        try:
            while True:
                chunk = await link.reader.read(self._chunk_size)
                if not chunk:
                    self._log.info("Scanner stream ended")
                    break

                buffer += decoder.decode(chunk)
                *lines, buffer = _LINE_BREAKS.split(buffer)

                for line in lines:
                    text = line.strip()
                    if not text:
                        continue
                    self._transition(State.CONNECTED)
                    self._read_task = None
                    await self._forward(text)
                    return

        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if session != self._session:
                return
            await self._report(exceptions.read_error(str(exc)))

        if session == self._session:
            await self.stop()

    async def _forward(self, text: str) -> None:
        self._log.info(f"Serial scan received ({len(text)} chars)")
        if self._on_line is None:
            return
        try:
            await self._on_line(RawScanLine(text=text, source=ScanSource.SERIAL))
        except Exception as exc:
            logger.exception(f"Serial line handler failed: {exc}")

    # =========================================================================
    # STOP
    # =========================================================================

    async def stop(self) -> None:
        """
        Idempotent teardown; safe with no link, mid-connect and twice in a row.

        A stop requested while another is running waits for that one.
        """
        if self._stopping is not None:
            await self._stopping
            return

        self._stopping = asyncio.get_running_loop().create_future()
        self._session += 1
        try:
            await self._teardown()
        finally:
            self._stopping.set_result(None)
            self._stopping = None

    async def _teardown(self) -> None:
        task, self._read_task = self._read_task, None
        link, self._link = self._link, None
        decoder, self._decoder = self._decoder, None

        # 1. cancel the active read
        if task is not None and task is not asyncio.current_task() and not task.done():
            try:
                task.cancel()
                await asyncio.wait({task})
            except Exception as exc:
                self._log.warning(f"Cancelling serial read failed: {exc}")

        # 2. detach the byte stream
        if link is not None:
            try:
                link.release_reader()
            except Exception as exc:
                self._log.warning(f"Releasing serial reader failed: {exc}")

        # 3. flush the decoding pipe
        if decoder is not None:
            try:
                tail = decoder.decode(b"", final=True)
                if tail.strip():
                    self._log.debug(f"Discarded partial scan data ({len(tail)} chars)")
            except Exception as exc:
                self._log.debug(f"Decoder flush failed: {exc}")

        # 4. close the port
        if link is not None:
            try:
                if link.is_open:
                    await link.close()
            except Exception as exc:
                if link.is_open:
                    self._log.warning(f"Closing {link.port.device} failed: {exc}")
                else:
                    self._log.debug(f"{link.port.device} was already closed")

        if self._state is not State.DISCONNECTED:
            self._transition(State.DISCONNECTED)
            self._log.info("Serial link disconnected")

    # =========================================================================
    # REPORTING
    # =========================================================================

    async def _report(self, error: AppException) -> None:
        self._log.error(f"{error.code}: {error.message}")
        if self._on_error is None:
            return
        try:
            await self._on_error(error)
        except Exception as exc:
            logger.exception(f"Serial error handler failed: {exc}")

    async def _notify(self, message: str) -> None:
        self._log.info(message)
        if self._on_notice is None:
            return
        try:
            await self._on_notice(message)
        except Exception as exc:
            logger.exception(f"Serial notice handler failed: {exc}")
