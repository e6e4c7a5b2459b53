"""
Application Exception Handling

Single AppException class for all application errors with FastAPI integration.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppException(Exception):
    """
    Unified application exception for all error scenarios.

    Serial link failures are not raised to callers; the link manager turns
    them into AppException values and reports their message to the operator.

    Usage:
        raise AppException("Another scan channel is open", "CHANNEL_BUSY", 409)

    Error Codes:
        Serial link:
            - SERIAL_UNAVAILABLE (503)
            - DEVICE_NOT_FOUND (404)
            - PORT_BUSY (409)
            - OPEN_FAILED (502)
            - NOT_READABLE (502)
            - READ_ERROR (502)
            - CONNECTION_ERROR (502)

        Scanning:
            - SCAN_UNPARSEABLE (422)
            - CHANNEL_BUSY (409)
            - CHANNEL_NOT_OPEN (409)
            - NO_PENDING_RECORD (404)
            - SUBMISSION_FAILED (502)

        General:
            - INTERNAL_ERROR (500)
    """

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize application exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code (e.g., "PORT_BUSY")
            status_code: HTTP status code (default: 400)
            details: Additional error context (optional)
        """
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        error_dict = {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp
            }
        }

        if self.details:
            error_dict["error"]["details"] = self.details

        return error_dict


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    FastAPI exception handler for AppException.

    Converts AppException to consistent JSON error response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)


# ============================================
# SERIAL LINK ERRORS
# ============================================

def serial_unavailable() -> AppException:
    """Host has no serial port capability."""
    return AppException(
        "Serial scanners are not supported on this host",
        "SERIAL_UNAVAILABLE",
        503
    )


def device_not_found(reason: Optional[str] = None) -> AppException:
    """Requested scanner is missing or access to it was denied."""
    details = {"reason": reason} if reason else {}
    return AppException(
        "Scanner not found or access was denied",
        "DEVICE_NOT_FOUND",
        404,
        details
    )


def port_busy(reason: Optional[str] = None) -> AppException:
    """Port is held by another process or the device went away."""
    details = {"reason": reason} if reason else {}
    return AppException(
        "Serial port is busy or the scanner was disconnected",
        "PORT_BUSY",
        409,
        details
    )


def open_failed(baud_rates) -> AppException:
    """No candidate baud rate could open the port."""
    return AppException(
        "Unable to open the scanner at common baud rates",
        "OPEN_FAILED",
        502,
        {"baud_rates": list(baud_rates)}
    )


def not_readable() -> AppException:
    """Port opened but exposes no readable stream."""
    return AppException(
        "Serial port is open but not readable; disconnect and reconnect",
        "NOT_READABLE",
        502
    )


def read_error(reason: Optional[str] = None) -> AppException:
    """Reading from the scanner stream failed."""
    details = {"reason": reason} if reason else {}
    return AppException(
        "Error while reading from the scanner",
        "READ_ERROR",
        502,
        details
    )


def connection_error(reason: Optional[str] = None) -> AppException:
    """Any other failure while connecting."""
    details = {"reason": reason} if reason else {}
    return AppException(
        "Could not connect to the scanner",
        "CONNECTION_ERROR",
        502,
        details
    )


# ============================================
# SCANNING ERRORS
# ============================================

def unparseable_scan(reason: str) -> AppException:
    """Scanned text yielded no payload."""
    return AppException(
        "Could not extract information from the scan",
        "SCAN_UNPARSEABLE",
        422,
        {"reason": reason}
    )


def channel_busy(active: str, requested: str) -> AppException:
    """A different channel is already open."""
    return AppException(
        f"The {active} channel is already open; switch modes to use {requested}",
        "CHANNEL_BUSY",
        409,
        {"active": active, "requested": requested}
    )


def channel_not_open(mode: str) -> AppException:
    """Input arrived for a channel that is not open."""
    return AppException(
        f"The {mode} channel is not open",
        "CHANNEL_NOT_OPEN",
        409,
        {"mode": mode}
    )


def no_pending_record() -> AppException:
    """Nothing is waiting for operator confirmation."""
    return AppException(
        "There is no scanned record awaiting confirmation",
        "NO_PENDING_RECORD",
        404
    )


def submission_failed(detail: Optional[str] = None, status: Optional[int] = None) -> AppException:
    """Backend rejected or never answered a stock submission."""
    details = {"backend_status": status} if status else {}
    return AppException(
        detail or "An error occurred while adding stock",
        "SUBMISSION_FAILED",
        502,
        details
    )


def internal_error(message: str = "Internal server error") -> AppException:
    """Create internal server error exception."""
    return AppException(message, "INTERNAL_ERROR", 500)
