"""
==============================================================================
Stock Intake Client Module
==============================================================================

HTTP client for the warehouse backend that assigns a bin to incoming stock.

Endpoint:
---------
    POST {backend_url}/assign-bin
    {"id": "", "name": "...", "category": "...", "count": 3}

A non-2xx answer raises SUBMISSION_FAILED carrying the backend's `detail`
when it sent one. The response body is returned as-is; what the backend
assigns is not interpreted here.

==============================================================================
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from stock_intake.config import Settings
from stock_intake.core import exceptions
from stock_intake.schemas.scan import ScannedPayload


# Module logger
logger = logging.getLogger(__name__)


class StockIntakeClient:
    """
    Submits scanned payloads to the stock-intake backend.

    Attributes:
        _base_url: Backend root URL without trailing slash
        _timeout: Per-request timeout in seconds

    Example:
        >>> client = StockIntakeClient("http://localhost:8000")
        >>> result = await client.submit(ScannedPayload(name="Paracetamol", count=5))
    """

    ASSIGN_PATH = "/assign-bin"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            base_url: Backend root URL
            timeout: Per-request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> StockIntakeClient:
        return cls(settings.backend_url, timeout=settings.submit_timeout_seconds)

    @staticmethod
    def build_body(payload: ScannedPayload) -> Dict[str, Any]:
        return {
            "id": "",
            "name": payload.name,
            "category": payload.category,
            "count": payload.count,
        }

    async def submit(self, payload: ScannedPayload) -> Dict[str, Any]:
        """
        Post one payload.

        Returns:
            Decoded JSON response

        Raises:
            AppException: SUBMISSION_FAILED on transport or HTTP errors
        """
        url = f"{self._base_url}{self.ASSIGN_PATH}"
        logger.info(f"📦 Submitting {payload.name} x{payload.count}")

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=self.build_body(payload))
        except httpx.HTTPError as exc:
            logger.error(f"❌ Submission transport error: {exc}")
            raise exceptions.submission_failed() from exc

        if response.is_error:
            detail = self._extract_detail(response)
            logger.error(f"❌ Backend rejected submission ({response.status_code}): {detail}")
            raise exceptions.submission_failed(detail, response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}

        logger.info(f"✅ Submission accepted for {payload.name}")
        return data if isinstance(data, dict) else {"result": data}

    @staticmethod
    def _extract_detail(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and body.get("detail"):
            detail = body["detail"]
            return detail if isinstance(detail, str) else str(detail)
        return None
