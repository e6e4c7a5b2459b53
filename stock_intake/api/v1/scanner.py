"""
==============================================================================
Scanner Endpoints
==============================================================================

Operator controls for scan channels, parsing and the pending record.

==============================================================================
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from stock_intake.core.dependencies import get_controller
from stock_intake.scanner.parser import parse
from stock_intake.schemas.common import MessageResponse
from stock_intake.schemas.scan import (
    AutoSubmitRequest,
    ChannelRequest,
    KeyboardScanRequest,
    ParseOutcome,
    ParseRequest,
    Parsed,
    PendingUpdate,
    ScanSource,
)
from stock_intake.services.ingestion_service import ScanIngestionController


router = APIRouter(prefix="/scanner", tags=["Scanner"])


class ScannerController:
    """Controller for scanner operations."""

    def __init__(self, ingestion: ScanIngestionController):
        self._ingestion = ingestion

    @staticmethod
    def outcome_response(outcome: ParseOutcome) -> Dict[str, Any]:
        if isinstance(outcome, Parsed):
            return {
                "success": True,
                "strategy": outcome.strategy,
                "payload": outcome.payload.model_dump(),
            }
        return {
            "success": False,
            "reason": outcome.reason,
            "message": "Could not extract information from the scan",
        }

    def status(self) -> Dict[str, Any]:
        return {"success": True, **self._ingestion.status()}

    def logs(self, limit: int) -> Dict[str, Any]:
        entries = self._ingestion.debug_log.entries()[-limit:]
        return {
            "success": True,
            "capacity": self._ingestion.debug_log.capacity,
            "entries": [entry.model_dump(mode="json") for entry in entries],
        }

    async def ports(self) -> Dict[str, Any]:
        ports = await self._ingestion.serial.list_ports()
        return {"success": True, "ports": [p.model_dump() for p in ports]}

    async def open_channel(self, data: ChannelRequest) -> Dict[str, Any]:
        status = await self._ingestion.open_channel(data.mode, data.port)
        return {"success": True, **status}

    async def switch_mode(self, data: ChannelRequest) -> Dict[str, Any]:
        status = await self._ingestion.switch_mode(data.mode, data.port)
        return {"success": True, **status}

    async def close_channel(self) -> Dict[str, Any]:
        status = await self._ingestion.close_channel()
        return {"success": True, **status}

    async def keyboard(self, data: KeyboardScanRequest) -> Dict[str, Any]:
        outcome = await self._ingestion.submit_keyboard_text(data.text, ScanSource(data.source))
        return self.outcome_response(outcome)

    async def confirm(self) -> Dict[str, Any]:
        result = await self._ingestion.confirm_pending()
        return {"success": True, "result": result}


@router.post("/parse")
async def parse_scan(data: ParseRequest):
    """Run raw scanner text through the parser without side effects."""
    return ScannerController.outcome_response(parse(data.text))


@router.get("/status")
async def get_status(ingestion: ScanIngestionController = Depends(get_controller)):
    """Open channel, serial link state, auto-submit flag and pending record."""
    return ScannerController(ingestion).status()


@router.get("/logs")
async def get_logs(
    limit: int = Query(50, ge=1, le=1000),
    ingestion: ScanIngestionController = Depends(get_controller)
):
    """Most recent operator diagnostics, oldest first."""
    return ScannerController(ingestion).logs(limit)


@router.get("/ports")
async def list_ports(ingestion: ScanIngestionController = Depends(get_controller)):
    """Serial ports the host currently exposes."""
    return await ScannerController(ingestion).ports()


@router.post("/channel")
async def open_channel(
    data: ChannelRequest,
    ingestion: ScanIngestionController = Depends(get_controller)
):
    """
    Open the keyboard or serial channel.

    Fails with CHANNEL_BUSY while the other channel is open. Serial link
    problems do not fail the request; they show up in `serial.state`, the
    logs and the WebSocket event stream.
    """
    return await ScannerController(ingestion).open_channel(data)


@router.put("/channel")
async def switch_channel(
    data: ChannelRequest,
    ingestion: ScanIngestionController = Depends(get_controller)
):
    """Close the open channel and open the requested one."""
    return await ScannerController(ingestion).switch_mode(data)


@router.delete("/channel")
async def close_channel(ingestion: ScanIngestionController = Depends(get_controller)):
    """Close the open channel (serial runs the full stop protocol)."""
    return await ScannerController(ingestion).close_channel()


@router.post("/keyboard")
async def keyboard_scan(
    data: KeyboardScanRequest,
    ingestion: ScanIngestionController = Depends(get_controller)
):
    """Deliver an Enter-terminated burst or a paste captured by the client."""
    return await ScannerController(ingestion).keyboard(data)


@router.put("/auto-submit")
async def set_auto_submit(
    data: AutoSubmitRequest,
    ingestion: ScanIngestionController = Depends(get_controller)
):
    """Enable or disable immediate submission of parsed scans."""
    ingestion.set_auto_submit(data.enabled)
    return {"success": True, "auto_submit": ingestion.auto_submit}


@router.patch("/pending")
async def update_pending(
    data: PendingUpdate,
    ingestion: ScanIngestionController = Depends(get_controller)
):
    """Correct the pending record before confirming it."""
    payload = ingestion.update_pending(data)
    return {"success": True, "pending": payload.model_dump()}


@router.post("/pending/confirm")
async def confirm_pending(ingestion: ScanIngestionController = Depends(get_controller)):
    """Submit the pending record to the stock-intake backend."""
    return await ScannerController(ingestion).confirm()


@router.delete("/pending", response_model=MessageResponse)
async def clear_pending(ingestion: ScanIngestionController = Depends(get_controller)):
    """Discard the pending record."""
    ingestion.clear_pending()
    return MessageResponse(message="Pending record cleared")
