"""Pytest configuration and fixtures for webx tests.

This file provides:
- Mock clients: httpx clients backed by MockTransport that record requests
- PortReservation: Race-free port allocation for the echo server
- EchoServer: Subprocess management for the FastAPI echo server
- Fixtures: Shared test infrastructure
"""

from __future__ import annotations

import socket
import subprocess
import sys
import time
from pathlib import Path
from typing import Any, Callable, Generator

import httpx
import pytest

from webx.executor import set_default_client

# Project root for subprocess cwd
PROJECT_ROOT = Path(__file__).parent.parent
ECHO_SERVER_MODULE = "tests.integration.echo_server"


# =============================================================================
# Mock Clients
# =============================================================================


class RecordingClient(httpx.Client):
    """httpx.Client over MockTransport that keeps every request it sends.

    The handler builds the reply; by default every request gets 200 with an
    empty body.
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler or (lambda request: httpx.Response(200))
        super().__init__(transport=httpx.MockTransport(self._record))

    def _record(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def last(self) -> httpx.Request:
        assert self.requests, "no request was sent"
        return self.requests[-1]


def reply(
    status_code: int = 200,
    content: bytes = b"",
    headers: dict[str, str] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Create a MockTransport handler that always returns the same response."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, content=content, headers=headers)

    return handler


@pytest.fixture
def recording_client() -> Generator[RecordingClient, None, None]:
    client = RecordingClient()
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def make_client() -> Generator[Callable[..., RecordingClient], None, None]:
    """Factory fixture: make_client(handler) -> RecordingClient, closed after the test."""
    created: list[RecordingClient] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response] | None = None) -> RecordingClient:
        client = RecordingClient(handler)
        created.append(client)
        return client

    yield factory
    for client in created:
        client.close()


@pytest.fixture
def default_client() -> Generator[RecordingClient, None, None]:
    """Install a RecordingClient as the process-wide default client."""
    client = RecordingClient()
    set_default_client(client)
    try:
        yield client
    finally:
        set_default_client(None)
        client.close()


# =============================================================================
# Echo Server
# =============================================================================


class PortReservation:
    """Holds a reserved port with socket kept open to prevent races.

    Usage:
        reservation = PortReservation()
        # port is held exclusively until release()
        server = EchoServer(reservation)
        server.start()  # calls release() internally, then binds
    """

    def __init__(self) -> None:
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind(("127.0.0.1", 0))  # Port 0 = OS assigns ephemeral port
        self._port = self._socket.getsockname()[1]
        self._released = False

    @property
    def port(self) -> int:
        return self._port

    def release(self) -> int:
        """Release the socket and return the port for server use.

        Safe to call multiple times - subsequent calls are no-ops.
        """
        if not self._released:
            self._socket.close()
            self._released = True
        return self._port

    def __enter__(self) -> PortReservation:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()


def wait_for_server_ready(host: str, port: int, timeout: float = 10.0) -> bool:
    """Block until server accepts TCP connections, or timeout expires."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1.0):
                return True
        except (ConnectionRefusedError, socket.timeout, OSError):
            time.sleep(0.1)
    return False


class EchoServer:
    """Manages the echo server subprocess for integration tests."""

    def __init__(self, port: int | PortReservation) -> None:
        if isinstance(port, PortReservation):
            self._reservation = port
            self.port = port.port
        else:
            self._reservation = None
            self.port = port
        self.host = "127.0.0.1"
        self.base_url = f"http://{self.host}:{self.port}"
        self._process: subprocess.Popen | None = None

    def start(self) -> None:
        """Start the echo server subprocess.

        Raises:
            RuntimeError: If server fails to start within 10 seconds.
        """
        if self._reservation:
            self._reservation.release()

        self._process = subprocess.Popen(
            [
                sys.executable, "-m", ECHO_SERVER_MODULE,
                "--host", self.host,
                "--port", str(self.port),
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=PROJECT_ROOT,
        )

        if not wait_for_server_ready(self.host, self.port):
            stderr = ""
            if self._process and self._process.stderr:
                stderr = self._process.stderr.read().decode(errors="replace")
            self.stop()
            raise RuntimeError(
                f"EchoServer failed to start on port {self.port}. "
                f"stderr: {stderr or '(empty)'}"
            )

    def stop(self) -> None:
        """Stop the server with SIGTERM, escalating to SIGKILL after 5s."""
        if self._process:
            self._process.terminate()
            try:
                self._process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self._process.kill()
                try:
                    self._process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    pass  # unkillable, nothing more to do
            self._process = None

    def __enter__(self) -> EchoServer:
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()


@pytest.fixture(scope="session")
def echo_server() -> Generator[EchoServer, None, None]:
    """Session-scoped echo server; starts once per test session."""
    with EchoServer(PortReservation()) as server:
        yield server


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Tag tests as integration or unit based on their directory.

    Enables running subsets via:
        pytest -m integration
        pytest -m unit
    """
    for item in items:
        test_path = Path(item.fspath)
        if "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
