"""Pytest configuration and shared fixtures for ftpqueue tests."""

import pytest
from pathlib import Path
from typing import Callable, List

from ftpqueue.ftp.client import FTPClient
from ftpqueue.ftp.connection import FTPConnectionConfig


# Test constants
TEST_FTP_HOST = "127.0.0.1"
TEST_FTP_PORT = 2121
TEST_FTP_USER = "testuser"
TEST_FTP_PASS = "testpass"


class FakeTransport:
    """Records what a session writes to its control connection."""

    def __init__(self):
        self.written: List[bytes] = []
        self.closed = False
        self.aborted = False

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        self.aborted = True

    @property
    def lines(self) -> List[str]:
        """Command lines written so far, without CRLF."""
        return [data.decode("latin-1").rstrip("\r\n") for data in self.written]


class FakeTimer:
    """Timer handle returned by FakeLoop.call_later."""

    def __init__(self, delay: float, callback: Callable, args: tuple):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Event loop stand-in whose timers only fire when told to."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable, *args) -> FakeTimer:
        timer = FakeTimer(delay, callback, args)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        """Timers neither cancelled nor fired."""
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire(self, timer: FakeTimer) -> None:
        timer.fired = True
        timer.callback(*timer.args)


def feed(session, *lines: str) -> None:
    """Deliver server reply lines to a session."""
    session.data_received("".join(line + "\r\n" for line in lines).encode("latin-1"))


@pytest.fixture
def ftp_config() -> FTPConnectionConfig:
    """Provide a connection configuration with credentials."""
    return FTPConnectionConfig(
        host=TEST_FTP_HOST,
        port=TEST_FTP_PORT,
        user=TEST_FTP_USER,
        password=TEST_FTP_PASS,
        connect_timeout=5.0,
        keepalive_interval=10.0,
    )


@pytest.fixture
def fake_loop() -> FakeLoop:
    """Provide a loop with manually fired timers."""
    return FakeLoop()


@pytest.fixture
def transport() -> FakeTransport:
    """Provide a recording control transport."""
    return FakeTransport()


@pytest.fixture
def make_client(fake_loop, transport) -> Callable[..., FTPClient]:
    """
    Build a client attached to the fake transport and loop.

    The returned client has not received its greeting yet.
    """
    def factory(config: FTPConnectionConfig) -> FTPClient:
        client = FTPClient(config, loop=fake_loop)
        client.connection_made(transport)
        return client

    return factory


@pytest.fixture
def client(make_client, ftp_config) -> FTPClient:
    """Provide a client that has been greeted and logged in."""
    client = make_client(ftp_config)
    feed(client, "220 Service ready")
    feed(client, "331 Password required")
    feed(client, "230 Logged in")
    return client


@pytest.fixture
def temp_settings_file(tmp_path: Path) -> Path:
    """Provide a temporary settings file path for testing."""
    return tmp_path / "settings.json"


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    """Create a local file to upload."""
    path = tmp_path / "test.txt"
    path.write_bytes(b"hello ftp\n" * 2000)
    return path


class FakeWriter:
    """Stream writer stand-in for data connections."""

    def __init__(self):
        self.data = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        self.data.extend(data)

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass
