"""
==============================================================================
Pytest Configuration and Fixtures
==============================================================================

Provides a scripted serial backend, a mocked stock-intake backend and
application/client fixtures wired to both.

==============================================================================
"""

import asyncio
import json
from typing import Dict, Generator, List, Optional, Sequence

import httpx
import pytest
from fastapi.testclient import TestClient

from stock_intake.config import Settings
from stock_intake.main import Application
from stock_intake.scanner.serial_backend import (
    LinkFraming,
    PortInfo,
    SerialBackend,
    SerialLink,
    first_port_selector,
)
from stock_intake.services.intake_client import StockIntakeClient


# ============================================================================
# SERIAL FAKES
# ============================================================================

class FakeReader:
    """
    Scripted byte stream.

    Each item is returned by one read(); an exception item is raised.
    Once the script is exhausted the stream either ends (eof=True) or
    blocks until cancelled.
    """

    def __init__(self, chunks: Sequence = (), eof: bool = False):
        self._chunks = list(chunks)
        self._eof = eof
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if self._chunks:
            item = self._chunks.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        if self._eof:
            return b""
        await asyncio.get_running_loop().create_future()


class FakeWriter:
    """Transport side of a fake link; counts closes."""

    def __init__(self):
        self.closed = 0
        self._closing = False

    def close(self) -> None:
        self.closed += 1
        self._closing = True

    def is_closing(self) -> bool:
        return self._closing

    async def wait_closed(self) -> None:
        return None


class FakeSerialBackend(SerialBackend):
    """
    Serial backend driven by test data.

    Args:
        ports: Ports the host "exposes"
        chunks: Script for the reader of every opened link
        eof: End the stream once the script is exhausted
        failures: Exception to raise per baud rate
        readable: Whether opened links expose a reader
        available: Host serial capability
    """

    def __init__(
        self,
        ports: Optional[List[PortInfo]] = None,
        chunks: Sequence = (),
        eof: bool = False,
        failures: Optional[Dict[int, BaseException]] = None,
        readable: bool = True,
        available: bool = True,
    ):
        self.ports = ports if ports is not None else [scanner_port()]
        self.chunks = list(chunks)
        self.eof = eof
        self.failures = failures or {}
        self.readable = readable
        self.available = available
        self.open_gate: Optional[asyncio.Event] = None
        self.opening: Optional[asyncio.Event] = None
        self.open_attempts: List[int] = []
        self.port_requests: List[Optional[Sequence[int]]] = []
        self.links: List[SerialLink] = []
        self.writers: List[FakeWriter] = []

    def is_available(self) -> bool:
        return self.available

    async def list_ports(self) -> List[PortInfo]:
        return list(self.ports)

    async def request_port(self, vendor_ids=None, selector=first_port_selector):
        self.port_requests.append(vendor_ids)
        return await super().request_port(vendor_ids, selector)

    async def open(self, port: PortInfo, baudrate: int, framing: LinkFraming) -> SerialLink:
        self.open_attempts.append(baudrate)
        if self.opening is not None:
            self.opening.set()
        if self.open_gate is not None:
            await self.open_gate.wait()
        if baudrate in self.failures:
            raise self.failures[baudrate]

        writer = FakeWriter()
        reader = FakeReader(self.chunks, eof=self.eof) if self.readable else None
        link = SerialLink(port, baudrate, reader, writer)
        self.links.append(link)
        self.writers.append(writer)
        return link


def scanner_port(device: str = "/dev/ttyUSB0", vid: Optional[int] = 0x0403) -> PortInfo:
    """A USB-serial scanner port."""
    return PortInfo(device=device, description="USB Serial", vid=vid, pid=0x6001)


class Recorder:
    """Collects everything the link manager hands to its handlers."""

    def __init__(self):
        self.lines = []
        self.errors = []
        self.notices = []

    async def on_line(self, line) -> None:
        self.lines.append(line)

    async def on_error(self, error) -> None:
        self.errors.append(error)

    async def on_notice(self, message: str) -> None:
        self.notices.append(message)

    @property
    def error_codes(self) -> List[str]:
        return [e.code for e in self.errors]


async def settle(condition=None, rounds: int = 200) -> None:
    """Yield to the event loop until condition() holds or rounds run out."""
    for _ in range(rounds):
        if condition is not None and condition():
            return
        await asyncio.sleep(0)


# ============================================================================
# BACKEND FAKES
# ============================================================================

class FakeStockBackend:
    """
    Answers POST /assign-bin through httpx.MockTransport.

    Attributes:
        requests: Decoded JSON bodies received
        status_code: Status of the next answers
        body: JSON body of the next answers
        error: Transport exception to raise instead of answering
    """

    def __init__(self):
        self.requests: List[dict] = []
        self.paths: List[str] = []
        self.status_code = 200
        self.body = {"success": True, "bin": "A-12"}
        self.error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.error is not None:
            raise self.error
        self.paths.append(request.url.path)
        self.requests.append(json.loads(request.content))
        return httpx.Response(self.status_code, json=self.body)

    def client(self, base_url: str = "http://stock.test/") -> StockIntakeClient:
        return StockIntakeClient(base_url, timeout=2.0, transport=httpx.MockTransport(self.handler))


# ============================================================================
# APPLICATION FIXTURES
# ============================================================================

@pytest.fixture
def stock_backend() -> FakeStockBackend:
    return FakeStockBackend()


@pytest.fixture
def serial_backend() -> FakeSerialBackend:
    """Serial backend whose link stays in READING until stopped."""
    return FakeSerialBackend()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        debug=False,
        auto_submit=False,
        backend_url="http://stock.test",
        debug_log_capacity=50,
    )


@pytest.fixture
def application(settings, serial_backend, stock_backend) -> Application:
    return Application(
        settings=settings,
        serial_backend=serial_backend,
        intake_client=stock_backend.client(),
    )


@pytest.fixture
def client(application: Application) -> Generator[TestClient, None, None]:
    """Test client running the application lifespan."""
    with TestClient(application.app) as test_client:
        yield test_client
