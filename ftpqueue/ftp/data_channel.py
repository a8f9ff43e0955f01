"""Passive-mode data connections for ftpqueue.

Negotiates PASV on the control connection, opens the second TCP
connection to the advertised address and hands it to the operation
that requested it (upload or listing).
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Tuple, Union

from ftpqueue.ftp.commands import Command, Step
from ftpqueue.ftp.exceptions import FTPConnectionError, PassiveModeError
from ftpqueue.ftp.listing import FileEntry, parse_listing
from ftpqueue.ftp.reply import Reply

if TYPE_CHECKING:
    from ftpqueue.ftp.connection import FTPSession

logger = logging.getLogger("ftpqueue.data")

# Six comma separated integers, IPv4 only (EPSV is not supported)
PASV_PATTERN = re.compile(r"(\d+),(\d+),(\d+),(\d+),(-?\d+),(-?\d+)")

# Block size for reads from the data connection (8KB)
READ_SIZE = 8192

Connector = Callable[[str, int], Awaitable[Tuple[asyncio.StreamReader, asyncio.StreamWriter]]]

# Called with (error, channel); channel is None when negotiation failed
PassiveHandler = Callable[[Optional[Exception], Optional["DataChannel"]], None]

ListingCallback = Callable[[Optional[Exception], Optional[List[Union[FileEntry, str]]]], None]


@dataclass
class PassiveEndpoint:
    """Address and port advertised in a PASV reply."""
    host: str
    port: int
    _claimed: bool = field(default=False, repr=False, compare=False)

    def claim(self) -> None:
        """
        Mark the endpoint as used by a data connection.

        Raises:
            RuntimeError: If the endpoint was already used
        """
        if self._claimed:
            raise RuntimeError(f"Passive endpoint {self.host}:{self.port} already used")
        self._claimed = True


def parse_pasv_reply(reply: Reply) -> PassiveEndpoint:
    """
    Extract the data connection address from a 227 reply.

    Args:
        reply: PASV reply, e.g. "227 Entering Passive Mode (10,0,0,1,200,10)."

    Returns:
        PassiveEndpoint for h1.h2.h3.h4 and port p1*256+p2

    Raises:
        PassiveModeError: If the reply carries no valid address
    """
    match = PASV_PATTERN.search(reply.message)
    if match is None:
        raise PassiveModeError(reply.code, reply.message)

    numbers = [int(n) for n in match.groups()]
    if any(n < 0 or n > 255 for n in numbers):
        raise PassiveModeError(reply.code, reply.message)

    host = ".".join(str(n) for n in numbers[:4])
    port = numbers[4] * 256 + numbers[5]
    return PassiveEndpoint(host=host, port=port)


class DataChannel:
    """
    One passive-mode data connection.

    The TCP connect starts as soon as the channel is created; reads and
    writes wait for it to complete. Connect failures are forwarded to
    the on_error callback (the session's error channel).
    """

    def __init__(
        self,
        endpoint: PassiveEndpoint,
        loop: asyncio.AbstractEventLoop,
        connector: Optional[Connector] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_activity: Optional[Callable[[], None]] = None
    ):
        """
        Initialize the channel and start connecting.

        Args:
            endpoint: Address from the PASV reply (claimed here)
            loop: Event loop to connect on
            connector: Coroutine function opening (reader, writer)
            on_error: Receives connect failures
            on_activity: Called whenever bytes move over the channel
        """
        endpoint.claim()
        self._endpoint = endpoint
        self._connector = connector or asyncio.open_connection
        self._on_error = on_error
        self._on_activity = on_activity
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._closed = False
        self._bytes_written = 0
        self._bytes_read = 0

        logger.debug(f"Opening data connection to {endpoint.host}:{endpoint.port}")
        self._connect_task = loop.create_task(self._connect())
        self._connect_task.add_done_callback(self._on_connect_done)

    @property
    def endpoint(self) -> PassiveEndpoint:
        """Address this channel connects to."""
        return self._endpoint

    @property
    def is_closed(self) -> bool:
        """True once the channel was closed."""
        return self._closed

    @property
    def bytes_written(self) -> int:
        """Bytes written so far."""
        return self._bytes_written

    @property
    def bytes_read(self) -> int:
        """Bytes read so far."""
        return self._bytes_read

    async def _connect(self) -> None:
        reader, writer = await self._connector(self._endpoint.host, self._endpoint.port)
        self._reader = reader
        self._writer = writer
        logger.debug(f"Data connection to {self._endpoint.host}:{self._endpoint.port} open")

    def _on_connect_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            error = FTPConnectionError(self._endpoint.host, self._endpoint.port, exc)
            logger.error(f"Data connection failed: {error}")
            if self._on_error:
                self._on_error(error)

    async def wait_connected(self) -> None:
        """
        Wait for the TCP connect to finish.

        Raises:
            OSError: If the connection could not be opened
        """
        await asyncio.shield(self._connect_task)

    async def write(self, data: bytes) -> None:
        """Write a block and wait until the transport buffer drains."""
        await self.wait_connected()
        self._writer.write(data)
        await self._writer.drain()
        self._bytes_written += len(data)
        if self._on_activity:
            self._on_activity()

    async def read_all(self) -> bytes:
        """Read until the server closes the data connection."""
        await self.wait_connected()
        chunks = []
        while True:
            chunk = await self._reader.read(READ_SIZE)
            if not chunk:
                break
            self._bytes_read += len(chunk)
            chunks.append(chunk)
            if self._on_activity:
                self._on_activity()
        return b"".join(chunks)

    async def aclose(self) -> None:
        """Close the connection, signalling end of data to the server."""
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            self._writer.close()
            await self._writer.wait_closed()
        logger.debug(f"Data connection to {self._endpoint.host}:{self._endpoint.port} closed")

    async def shutdown(self) -> None:
        """
        Finish the pending connect, then close without sending data.

        The server sees an empty transfer and answers the control
        command, where close() would leave it waiting for a connection.
        """
        try:
            await self.wait_connected()
        except OSError:
            # Already reported through on_error
            self.close()
            return
        await self.aclose()

    def close(self) -> None:
        """Close the connection without waiting (cancels a pending connect)."""
        if self._closed:
            return
        self._closed = True
        if not self._connect_task.done():
            self._connect_task.cancel()
        elif self._writer is not None:
            self._writer.close()
        logger.debug(f"Data connection to {self._endpoint.host}:{self._endpoint.port} closed")


class DataChannelManager:
    """Runs PASV negotiations and the transfers that use their data channel."""

    def __init__(self, session: "FTPSession", connector: Optional[Connector] = None):
        """
        Initialize the manager.

        Args:
            session: Session owning the control connection
            connector: Coroutine function opening data connections
                (defaults to asyncio.open_connection)
        """
        self._session = session
        self._connector = connector
        self._channels_opened = 0

    @property
    def channels_opened(self) -> int:
        """Number of data channels opened so far."""
        return self._channels_opened

    def open_passive(self, handler: PassiveHandler, urgent: bool = False) -> None:
        """
        Queue PASV and pass the resulting data channel to handler.

        handler runs synchronously inside the PASV continuation, so any
        command it queues urgently is the next one dispatched.
        """
        self._session.enqueue(
            Command(text="PASV", continuation=partial(self._on_pasv_reply, handler)),
            urgent=urgent,
        )

    def _on_pasv_reply(
        self,
        handler: PassiveHandler,
        error: Optional[Exception],
        reply: Reply
    ) -> Step:
        if error is not None:
            handler(error, None)
            return Step.ADVANCE

        try:
            endpoint = parse_pasv_reply(reply)
        except PassiveModeError as e:
            logger.error(str(e))
            self._session.on_error.emit(e)
            handler(e, None)
            return Step.ADVANCE

        logger.debug(f"Passive endpoint {endpoint.host}:{endpoint.port}")
        channel = DataChannel(
            endpoint,
            self._session.loop,
            connector=self._connector,
            on_error=self._session.on_error.emit,
            on_activity=self._session.extend_inactivity,
        )
        self._channels_opened += 1
        handler(None, channel)
        return Step.ADVANCE

    def list_directory(self, path: Optional[str], callback: ListingCallback) -> None:
        """
        Run LIST over a passive data channel and parse the listing.

        Args:
            path: Directory to list (server default when None)
            callback: Receives (error, entries)
        """
        command = f"LIST {path}" if path else "LIST"
        transfer = _ListingTransfer(self._session, command, callback)
        self.open_passive(transfer.on_passive)


class _ListingTransfer:
    """State of one LIST transfer."""

    def __init__(self, session: "FTPSession", command: str, callback: ListingCallback):
        self._session = session
        self._command = command
        self._callback = callback
        self._channel: Optional[DataChannel] = None
        self._started = False
        self._done = False

    def on_passive(self, error: Optional[Exception], channel: Optional[DataChannel]) -> None:
        if error is not None:
            self._deliver(error, None)
            return
        self._channel = channel
        self._session.queue.append(
            Command(text=self._command, continuation=self._on_reply),
            urgent=True,
        )

    def _on_reply(self, error: Optional[Exception], reply: Reply) -> Step:
        if reply.is_preliminary:
            if not self._started:
                self._started = True
                task = self._session.loop.create_task(self._receive())
                task.add_done_callback(log_task_error)
            return Step.HOLD

        if error is not None:
            self._channel.close()
            self._deliver(error, None)
        elif not self._started:
            # Final reply without a transfer: nothing was listed
            self._channel.close()
            self._deliver(None, [])
        return Step.ADVANCE

    async def _receive(self) -> None:
        try:
            data = await self._channel.read_all()
        except OSError as e:
            self._channel.close()
            self._deliver(e, None)
            return
        await self._channel.aclose()
        try:
            text = data.decode(self._session.config.encoding)
        except UnicodeDecodeError as e:
            logger.error(f"Listing is not valid {self._session.config.encoding}: {e}")
            self._deliver(e, None)
            return
        self._deliver(None, parse_listing(text))

    def _deliver(self, error: Optional[Exception], entries: Optional[list]) -> None:
        if self._done:
            return
        self._done = True
        self._callback(error, entries)


def log_task_error(task: asyncio.Task) -> None:
    """Done-callback that logs the exception of a failed transfer task."""
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"Transfer task failed: {task.exception()!r}")
