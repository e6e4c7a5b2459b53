"""
==============================================================================
Scan Ingestion Service Module
==============================================================================

Orchestrates the keyboard and serial channels and decides what happens to
every parsed scan.

Channel Rules:
--------------
- One channel is open at a time
- Opening a channel never closes the other one; the operator switches
  modes explicitly (switch_mode)
- Closing the serial channel runs the link's stop protocol

Auto-Submit Policy:
-------------------
On a parsed scan the pending record is replaced and the channel closed.
With auto-submit on, the payload is also sent to the backend in the
background; otherwise it waits for confirm_pending(). An unparseable scan
reports "could not extract information" and leaves the channel open.

Events:
-------
Listeners receive ScanEvent objects (payload, error, notice, submitted,
state). A failing listener is logged and skipped.

==============================================================================
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from stock_intake.config import Settings
from stock_intake.core import exceptions
from stock_intake.core.exceptions import AppException
from stock_intake.scanner.keyboard import KeyboardCapture
from stock_intake.scanner.parser import PayloadParser
from stock_intake.scanner.serial_backend import (
    PortSelector,
    SerialBackend,
    device_selector,
    first_port_selector,
)
from stock_intake.scanner.serial_link import SerialLinkManager
from stock_intake.schemas.scan import (
    ParseOutcome,
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
from stock_intake.utils.debug_log import DebugLog

from .intake_client import StockIntakeClient


# Module logger
logger = logging.getLogger(__name__)


Listener = Callable[[ScanEvent], Awaitable[None]]


class ScanIngestionController:
    """
    Single result/error sink for the scanner UI.

    Attributes:
        serial: SerialLinkManager owning the hardware link
        keyboard: KeyboardCapture for HID scanners
        debug_log: Operator diagnostic ring shared with the link

    Example:
        >>> controller = ScanIngestionController.from_settings(settings, PySerialBackend())
        >>> await controller.open_channel(ScanMode.KEYBOARD)
        >>> await controller.keyboard.paste("Paracetamol|5|analgesic")
        >>> controller.pending.count
        5
    """

    def __init__(
        self,
        serial: SerialLinkManager,
        keyboard: Optional[KeyboardCapture] = None,
        submitter: Optional[StockIntakeClient] = None,
        auto_submit: bool = True,
        parser: Optional[PayloadParser] = None,
        debug_log: Optional[DebugLog] = None,
    ) -> None:
        self.debug_log = debug_log or DebugLog()
        self.serial = serial
        self.keyboard = keyboard or KeyboardCapture()
        self._submitter = submitter
        self._auto_submit = auto_submit
        self._parser = parser or PayloadParser()

        self._mode: Optional[ScanMode] = None
        self._pending: Optional[ScannedPayload] = None
        self._last_outcome: Optional[ParseOutcome] = None
        self._listeners: List[Listener] = []
        self._submissions: Set[asyncio.Task] = set()

        self.serial.set_handlers(
            on_line=self.ingest,
            on_error=self._on_link_error,
            on_notice=self._on_link_notice,
        )
        self.keyboard.set_handler(self.ingest)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        backend: Optional[SerialBackend],
        submitter: Optional[StockIntakeClient] = None,
    ) -> ScanIngestionController:
        """Build the controller, its link manager and debug log from settings."""
        debug_log = DebugLog(settings.debug_log_capacity)
        serial = SerialLinkManager.from_settings(backend, settings, debug_log)
        return cls(
            serial,
            submitter=submitter or StockIntakeClient.from_settings(settings),
            auto_submit=settings.auto_submit,
            debug_log=debug_log,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def mode(self) -> Optional[ScanMode]:
        """Open channel, or None. A dead serial link counts as closed."""
        if self._mode is ScanMode.SERIAL and self.serial.state is SerialConnectionState.DISCONNECTED:
            return None
        return self._mode

    @property
    def pending(self) -> Optional[ScannedPayload]:
        return self._pending

    @property
    def auto_submit(self) -> bool:
        return self._auto_submit

    def set_auto_submit(self, enabled: bool) -> None:
        self._auto_submit = enabled
        self.debug_log.info(f"Auto-submit {'enabled' if enabled else 'disabled'}")

    def status(self) -> Dict[str, Any]:
        mode = self.mode
        return {
            "mode": mode.value if mode else None,
            "channel_open": mode is not None,
            "auto_submit": self._auto_submit,
            "keyboard": {"open": self.keyboard.is_open},
            "serial": self.serial.snapshot(),
            "pending": self._pending.model_dump() if self._pending else None,
        }

    # =========================================================================
    # CHANNELS
    # =========================================================================

    async def open_channel(self, mode: ScanMode, port: Optional[str] = None) -> Dict[str, Any]:
        """
        Open a channel.

        Args:
            mode: Channel to open
            port: Serial device chosen by the operator (serial only)

        Raises:
            AppException: CHANNEL_BUSY when the other channel is open
        """
        active = self.mode
        if active is not None and active is not mode:
            raise exceptions.channel_busy(active.value, mode.value)

        self._mode = mode

        if mode is ScanMode.KEYBOARD:
            if not self.keyboard.is_open:
                self.keyboard.open()
                self.debug_log.info("Keyboard scanning started")
        else:
            selector: PortSelector = device_selector(port) if port else first_port_selector
            state = await self.serial.connect(selector)
            if state is SerialConnectionState.DISCONNECTED and self._mode is ScanMode.SERIAL:
                self._mode = None

        await self._emit_state()
        return self.status()

    async def close_channel(self) -> Dict[str, Any]:
        """Close whichever channel is open; serial runs the stop protocol."""
        mode, self._mode = self._mode, None

        if mode is ScanMode.KEYBOARD:
            self.keyboard.close()
            self.debug_log.info("Keyboard scanning stopped")
        elif mode is ScanMode.SERIAL:
            await self.serial.stop()

        if mode is not None:
            await self._emit_state()
        return self.status()

    async def switch_mode(self, mode: ScanMode, port: Optional[str] = None) -> Dict[str, Any]:
        await self.close_channel()
        return await self.open_channel(mode, port)

    async def submit_keyboard_text(self, text: str, source: ScanSource = ScanSource.KEYBOARD) -> ParseOutcome:
        """Feed a client-terminated burst into the keyboard channel."""
        if not self.keyboard.is_open:
            raise exceptions.channel_not_open(ScanMode.KEYBOARD.value)
        await self.keyboard.submit(text, source)
        return self._last_outcome

    # =========================================================================
    # INGESTION
    # =========================================================================

    async def ingest(self, line: RawScanLine) -> ParseOutcome:
        """
        Parse one raw line and apply the auto-submit policy.
        """
        outcome = self._parser.parse(line.text)
        self._last_outcome = outcome

        if isinstance(outcome, Unparseable):
            error = exceptions.unparseable_scan(outcome.reason)
            self.debug_log.warning(f"Unparseable {line.source} scan: {outcome.reason}")
            await self._emit(ScanEvent(
                type=ScanEventType.ERROR,
                code=error.code,
                message=error.message,
                source=line.source,
            ))
            if line.source is ScanSource.SERIAL:
                self.serial.resume()
            return outcome

        payload = outcome.payload
        self._pending = payload
        self.debug_log.info(
            f"Parsed {line.source} scan with {outcome.strategy} strategy: "
            f"{payload.name} x{payload.count}"
        )
        await self._emit(ScanEvent(
            type=ScanEventType.PAYLOAD,
            payload=payload,
            source=line.source,
            data={"strategy": outcome.strategy},
        ))

        if self._auto_submit and self._submitter is not None:
            self._schedule_submission(payload)

        await self.close_channel()
        return outcome

    # =========================================================================
    # PENDING RECORD
    # =========================================================================

    def update_pending(self, update: PendingUpdate) -> ScannedPayload:
        if self._pending is None:
            raise exceptions.no_pending_record()
        changes = update.model_dump(exclude_none=True)
        self._pending = ScannedPayload(**{**self._pending.model_dump(), **changes})
        return self._pending

    def clear_pending(self) -> None:
        self._pending = None

    async def confirm_pending(self) -> Dict[str, Any]:
        """
        Submit the pending record and wait for the backend.

        Raises:
            AppException: NO_PENDING_RECORD, or SUBMISSION_FAILED from the backend
        """
        payload = self._pending
        if payload is None:
            raise exceptions.no_pending_record()
        if self._submitter is None:
            raise exceptions.internal_error("No stock-intake backend configured")

        result = await self._submitter.submit(payload)
        if self._pending is payload:
            self._pending = None
        await self._emit(ScanEvent(type=ScanEventType.SUBMITTED, payload=payload, data=result))
        return result

    def _schedule_submission(self, payload: ScannedPayload) -> None:
        task = asyncio.create_task(self._submit_in_background(payload))
        self._submissions.add(task)
        task.add_done_callback(self._submissions.discard)

    async def _submit_in_background(self, payload: ScannedPayload) -> None:
        try:
            result = await self._submitter.submit(payload)
        except AppException as exc:
            self.debug_log.error(f"Auto-submit failed: {exc.message}")
            await self._emit(ScanEvent(
                type=ScanEventType.ERROR,
                code=exc.code,
                message=exc.message,
                payload=payload,
            ))
            return
        except Exception as exc:
            logger.exception(f"Unexpected auto-submit failure: {exc}")
            error = exceptions.submission_failed()
            await self._emit(ScanEvent(
                type=ScanEventType.ERROR,
                code=error.code,
                message=error.message,
                payload=payload,
            ))
            return

        if self._pending is payload:
            self._pending = None
        self.debug_log.info(f"Submitted {payload.name} x{payload.count}")
        await self._emit(ScanEvent(type=ScanEventType.SUBMITTED, payload=payload, data=result))

    async def drain(self) -> None:
        """Wait for background submissions to finish."""
        if self._submissions:
            await asyncio.gather(*list(self._submissions), return_exceptions=True)

    async def shutdown(self) -> None:
        """Close every channel through the normal stop path."""
        self._mode = None
        self.keyboard.close()
        await self.serial.stop()
        for task in list(self._submissions):
            task.cancel()
        await self.drain()

    # =========================================================================
    # EVENTS
    # =========================================================================

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _emit(self, event: ScanEvent) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as exc:
                logger.warning(f"Scan event listener failed: {exc}")

    async def _emit_state(self) -> None:
        await self._emit(ScanEvent(type=ScanEventType.STATE, data=self.status()))

    async def _on_link_error(self, error: AppException) -> None:
        await self._emit(ScanEvent(
            type=ScanEventType.ERROR,
            code=error.code,
            message=error.message,
            source=ScanSource.SERIAL,
        ))

    async def _on_link_notice(self, message: str) -> None:
        await self._emit(ScanEvent(
            type=ScanEventType.NOTICE,
            message=message,
            source=ScanSource.SERIAL,
        ))
