"""
==============================================================================
Stock Intake Scanner - Application Entry Point
==============================================================================

FastAPI application with:
- Scan channel controls and parser endpoints
- WebSocket keystroke capture and live scan events
- Serial scanner link on the server host

Usage:
------
    # Development
    uvicorn stock_intake.main:app --reload

    # Production
    uvicorn stock_intake.main:app --host 0.0.0.0 --port 8001

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stock_intake.config import Settings, get_settings
from stock_intake.core.exceptions import register_exception_handlers
from stock_intake.api.router import api_router
from stock_intake.scanner.serial_backend import PySerialBackend, SerialBackend
from stock_intake.services.ingestion_service import ScanIngestionController
from stock_intake.services.intake_client import StockIntakeClient
from stock_intake.websockets import scanner_router


# ============================================================================
# LOGGING SETUP
# ============================================================================

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)

logger = logging.getLogger(__name__)


# ============================================================================
# APPLICATION FACTORY
# ============================================================================

class Application:
    """
    FastAPI application factory and manager.

    Handles application lifecycle including:
    - Ingestion controller construction
    - Startup and shutdown events
    - Middleware configuration
    - Router registration
    - Exception handler setup

    Args:
        settings: Settings to use (global settings if None)
        serial_backend: Serial capability (pyserial if None)
        intake_client: Backend submission client (from settings if None)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        serial_backend: Optional[SerialBackend] = None,
        intake_client: Optional[StockIntakeClient] = None,
    ):
        """Initialize the application."""
        self._settings = settings or get_settings()
        backend = serial_backend or PySerialBackend(enabled=self._settings.serial_enabled)
        self._controller = ScanIngestionController.from_settings(
            self._settings,
            backend,
            submitter=intake_client,
        )
        self._app = self._create_app()

    def _create_app(self) -> FastAPI:
        """Create and configure the FastAPI application."""
        app = FastAPI(
            title=self._settings.app_name,
            version="1.0.0",
            description="Barcode/QR scan ingestion for stock intake",
            lifespan=self._lifespan,
            docs_url="/docs",
            redoc_url="/redoc",
        )

        app.state.controller = self._controller

        self._configure_middleware(app)
        register_exception_handlers(app)
        self._register_routers(app)

        return app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Application lifespan manager."""
        self._startup()
        yield
        await self._shutdown()

    def _startup(self) -> None:
        """Application startup tasks."""
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {self._settings.app_name}")
        logger.info("=" * 60)

        if self._controller.serial.is_available:
            logger.info(f"🔌 Serial scanners enabled, baud candidates {self._settings.serial_baud_rates}")
        else:
            logger.warning("⚠️ Serial scanners unavailable on this host")

        logger.info(f"📦 Stock backend: {self._settings.backend_url}")
        logger.info(f"⚡ Auto-submit: {'on' if self._controller.auto_submit else 'off'}")
        logger.info(f"📖 API Docs: http://{self._settings.host}:{self._settings.port}/docs")
        logger.info("=" * 60)

    async def _shutdown(self) -> None:
        """Application shutdown tasks."""
        logger.info("🛑 Shutting down...")
        await self._controller.shutdown()
        logger.info("✅ Shutdown complete")

    def _configure_middleware(self, app: FastAPI) -> None:
        """Configure application middleware."""
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _register_routers(self, app: FastAPI) -> None:
        """Register API routers."""
        app.include_router(api_router)
        app.include_router(scanner_router)

    @property
    def controller(self) -> ScanIngestionController:
        """Scan ingestion controller owned by this application."""
        return self._controller

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application instance."""
        return self._app


# ============================================================================
# APPLICATION INSTANCE
# ============================================================================

application = Application()
app = application.app


# ============================================================================
# ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "stock_intake.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )
