"""
==============================================================================
Health Check Endpoints
==============================================================================

System health status endpoints for monitoring and orchestration.

==============================================================================
"""

from fastapi import APIRouter, Depends

from stock_intake.core.dependencies import get_controller
from stock_intake.schemas.scan import SerialConnectionState
from stock_intake.services.ingestion_service import ScanIngestionController


router = APIRouter(prefix="/health", tags=["Health"])


class HealthController:
    """Controller for health check operations."""

    def __init__(self, ingestion: ScanIngestionController):
        self._ingestion = ingestion

    def check_serial(self) -> str:
        """Serial capability and link state."""
        serial = self._ingestion.serial
        if not serial.is_available:
            return "unavailable"
        if serial.state is SerialConnectionState.DISCONNECTED:
            return "idle"
        return serial.state.value

    def get_health(self) -> dict:
        """Get full health status."""
        serial_status = self.check_serial()
        overall = "healthy" if serial_status != "unavailable" else "degraded"

        return {
            "status": overall,
            "components": {
                "api": "healthy",
                "serial": serial_status,
                "keyboard": "open" if self._ingestion.keyboard.is_open else "idle",
            },
            "details": {
                "auto_submit": self._ingestion.auto_submit,
                "pending_record": self._ingestion.pending is not None,
            }
        }


@router.get("")
async def health_check(ingestion: ScanIngestionController = Depends(get_controller)):
    """
    Health check endpoint.

    Returns API, serial link and keyboard channel status.
    """
    return HealthController(ingestion).get_health()


@router.get("/ready")
async def readiness_check():
    """Readiness probe for container orchestration."""
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """Liveness probe for container orchestration."""
    return {"alive": True}
