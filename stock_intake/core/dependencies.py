"""
==============================================================================
FastAPI Dependencies Module
==============================================================================

Dependency providers for the scanner endpoints.

The ingestion controller lives on `app.state` so each Application instance
(and each test client) has its own serial link and keyboard sink.

Usage:
------
    @router.get("/status")
    async def status(controller: ScanIngestionController = Depends(get_controller)):
        return controller.status()

==============================================================================
"""

from __future__ import annotations

from fastapi import Request, WebSocket

from stock_intake.core.exceptions import internal_error
from stock_intake.services.ingestion_service import ScanIngestionController


def get_controller(request: Request) -> ScanIngestionController:
    """Controller of the application serving this request."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        raise internal_error("Scan ingestion controller not initialized")
    return controller


def get_ws_controller(websocket: WebSocket) -> ScanIngestionController:
    """Controller of the application serving this WebSocket."""
    controller = getattr(websocket.app.state, "controller", None)
    if controller is None:
        raise internal_error("Scan ingestion controller not initialized")
    return controller
