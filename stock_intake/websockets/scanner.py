"""
==============================================================================
Scanner WebSocket Module
==============================================================================

Keystroke capture and live scan events over one WebSocket.

Protocol:
---------
1. Client connects; the keyboard channel is opened unless another
   channel is already open
2. Client forwards key events and pastes from its focused input:
       {"type": "key", "key": "P"}      {"type": "key", "key": "Enter"}
       {"type": "paste", "text": "Paracetamol|5|analgesic"}
3. Server pushes every ScanEvent as JSON (payload, error, notice,
   submitted, state)
4. {"type": "open", "mode": "keyboard"|"serial", "port": ...} reopens a
   channel after a scan closed it
5. {"type": "stop"} or a disconnect closes the channel this session opened

==============================================================================
"""

import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from stock_intake.core.dependencies import get_ws_controller
from stock_intake.core.exceptions import AppException
from stock_intake.schemas.scan import ScanEvent, ScanMode
from stock_intake.services.ingestion_service import ScanIngestionController


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScannerWebSocketHandler:
    """
    Handler for one scanner UI connection.

    Manages the lifecycle of a scan session:
    - Event subscription
    - Keyboard channel open/close
    - Key and paste forwarding
    """

    def __init__(self, websocket: WebSocket, controller: ScanIngestionController):
        self._websocket = websocket
        self._controller = controller
        # Channel this session opened; only that one is closed on exit
        self._opened: Optional[ScanMode] = None

    async def send_event(self, event: ScanEvent) -> None:
        """Push a controller event to the client."""
        await self._websocket.send_json(event.model_dump(mode="json", exclude_none=True))

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        """Send error message to client."""
        await self._websocket.send_json({
            "type": "error",
            "code": code,
            "message": message
        })

    async def _open(self, mode: ScanMode, port: Optional[str] = None) -> None:
        await self._controller.open_channel(mode, port)
        if self._controller.mode is mode:
            self._opened = mode

    async def handle_message(self, data) -> bool:
        """
        Handle one client message.

        Returns:
            False when the client asked to stop
        """
        if not isinstance(data, dict):
            await self.send_error("Messages must be JSON objects", "INVALID_MESSAGE")
            return True

        kind = data.get("type")
        keyboard = self._controller.keyboard

        if kind == "key":
            await keyboard.key(str(data.get("key", "")))
        elif kind == "paste":
            await keyboard.paste(str(data.get("text", "")))
        elif kind == "open":
            try:
                await self._open(
                    ScanMode(data.get("mode", ScanMode.KEYBOARD.value)),
                    data.get("port"),
                )
            except ValueError:
                await self.send_error(f"Unknown scan mode: {data.get('mode')}", "UNKNOWN_MODE")
            except AppException as e:
                await self.send_error(e.message, e.code)
        elif kind == "stop":
            logger.info("🛑 Client requested stop")
            return False
        else:
            await self.send_error(f"Unknown message type: {kind}", "UNKNOWN_MESSAGE")

        return True

    async def run(self) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Scanner WebSocket connected")

        self._controller.subscribe(self.send_event)

        try:
            if self._controller.mode is None:
                await self._open(ScanMode.KEYBOARD)
            else:
                await self.send_event(ScanEvent(type="state", data=self._controller.status()))

            while True:
                data = await self._websocket.receive_json()
                if not await self.handle_message(data):
                    break

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except AppException as e:
            logger.warning(f"Scanner session error: {e.message}")
            await self.send_error(e.message, e.code)
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
            try:
                await self.send_error(str(e))
            except Exception as send_exc:
                logger.debug(f"Could not report error to client: {send_exc}")
        finally:
            self._controller.unsubscribe(self.send_event)
            if self._opened is not None and self._controller.mode is self._opened:
                await self._controller.close_channel()
            logger.info("✅ Scanner WebSocket closed")


@router.websocket("/ws/scan")
async def websocket_scan(websocket: WebSocket):
    """Keystroke capture and live scan events."""
    handler = ScannerWebSocketHandler(websocket, get_ws_controller(websocket))
    await handler.run()
