"""Caller-facing FTP operations for ftpqueue.

Every operation queues its command(s), returns the client immediately
and reports the outcome through an optional callback(error, result).
Paths and raw command text that would split the command line raise
ValueError before anything is queued.
"""

import asyncio
import logging
from functools import partial
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from ftpqueue.ftp.commands import Command, Step
from ftpqueue.ftp.connection import FTPConnectionConfig, FTPSession
from ftpqueue.ftp.data_channel import Connector, DataChannelManager
from ftpqueue.ftp.exceptions import FTPNotConnectedError
from ftpqueue.ftp.listing import parse_listing
from ftpqueue.ftp.reply import Reply
from ftpqueue.ftp.uploader import FileUploader, ProgressCallback, UploadCallback, UploadJob
from ftpqueue.utils.validators import validate_command_line, validate_ftp_path

logger = logging.getLogger("ftpqueue.client")

# Callback used by operations: (error, result)
ResultCallback = Callable[[Optional[Exception], Any], None]

# Operations AsyncFTPClient exposes as coroutines
OPERATIONS = (
    "login",
    "noop",
    "query_server_features",
    "set_binary_transfer_type",
    "change_directory",
    "make_directory",
    "remove_directory",
    "delete_file",
    "send_command",
    "get_extended_status",
    "rename_file",
    "list_directory",
    "upload_file",
    "quit",
)


def _checked(value: str, validator: Callable = validate_ftp_path) -> str:
    is_valid, error = validator(value)
    if not is_valid:
        raise ValueError(f"{error}: {value!r}")
    return value


def _features(reply: Reply) -> List[str]:
    return [line.strip() for line in reply.lines if line.strip()]


def _status_entries(reply: Reply) -> list:
    return parse_listing(reply.lines)


class FTPClient(FTPSession):
    """FTP session with the caller-facing operations."""

    def __init__(
        self,
        config: FTPConnectionConfig,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        connector: Optional[Connector] = None
    ):
        """
        Initialize the client.

        Args:
            config: Connection configuration
            loop: Event loop (defaults to the running loop)
            connector: Coroutine function opening data connections
        """
        super().__init__(config, loop=loop)
        self._data_channels = DataChannelManager(self, connector)
        self._uploader = FileUploader(self, self._data_channels)

    @property
    def data_channels(self) -> DataChannelManager:
        """Passive data channel manager."""
        return self._data_channels

    def _run(
        self,
        text: str,
        callback: Optional[ResultCallback] = None,
        transform: Optional[Callable[[Reply], Any]] = None
    ) -> "FTPClient":
        def continuation(error: Optional[Exception], reply: Reply) -> Step:
            if reply.is_preliminary:
                return Step.HOLD
            if callback:
                if error is None and transform is not None:
                    callback(None, transform(reply))
                else:
                    callback(error, reply)
            return Step.ADVANCE

        self.enqueue(Command(text=text, continuation=continuation))
        return self

    def noop(self, callback: Optional[ResultCallback] = None) -> "FTPClient":
        """Send NOOP."""
        return self._run("NOOP", callback)

    def query_server_features(self, callback: Optional[ResultCallback] = None) -> "FTPClient":
        """Send FEAT; the callback receives the list of feature lines."""
        return self._run("FEAT", callback, transform=_features)

    def set_binary_transfer_type(self, callback: Optional[ResultCallback] = None) -> "FTPClient":
        """Switch to binary (image) transfer type."""
        return self._run("TYPE I", callback)

    def change_directory(
        self,
        path: str,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """Change the remote working directory."""
        return self._run(f"CWD {_checked(path)}", callback)

    def make_directory(
        self,
        path: str,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """Create a remote directory."""
        return self._run(f"MKD {_checked(path)}", callback)

    def remove_directory(
        self,
        path: str,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """Remove a remote directory."""
        return self._run(f"RMD {_checked(path)}", callback)

    def delete_file(
        self,
        path: str,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """Delete a remote file."""
        return self._run(f"DELE {_checked(path)}", callback)

    def send_command(
        self,
        text: str,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """Send a raw command line; the callback receives the final reply."""
        return self._run(_checked(text, validate_command_line), callback)

    def get_extended_status(
        self,
        path: Optional[str] = None,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """
        Send STAT.

        With a path the server describes that file or directory on the
        control connection; the callback receives the parsed entries
        (unrecognised lines are passed through as strings).
        """
        text = f"STAT {_checked(path)}" if path else "STAT"
        return self._run(text, callback, transform=_status_entries)

    def rename_file(
        self,
        old_path: str,
        new_path: str,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """Rename old_path to new_path (RNFR, then RNTO once accepted)."""
        _checked(old_path)
        _checked(new_path)

        def on_rnto(error: Optional[Exception], reply: Reply) -> Step:
            if callback:
                callback(error, reply)
            return Step.ADVANCE

        def on_rnfr(error: Optional[Exception], reply: Reply) -> Step:
            if reply.code != 350:
                if callback:
                    callback(error, reply)
                return Step.ADVANCE
            self.queue.append(Command(text=f"RNTO {new_path}", continuation=on_rnto), urgent=True)
            self.advance()
            return Step.HOLD

        self.enqueue(Command(text=f"RNFR {old_path}", continuation=on_rnfr))
        return self

    def list_directory(
        self,
        path: Optional[str] = None,
        callback: Optional[ResultCallback] = None
    ) -> "FTPClient":
        """
        List a directory over a passive data connection.

        The callback receives a list of FileEntry objects, with lines
        the parser does not recognise kept as strings.
        """
        if path:
            _checked(path)
        self._data_channels.list_directory(path, callback or _ignore)
        return self

    def upload_file(
        self,
        local_path: Union[str, Path],
        remote_path: str,
        callback: Optional[UploadCallback] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> UploadJob:
        """
        Upload local_path to remote_path.

        The callback receives an UploadResult as soon as the last local
        byte has been written and the data connection closed. The
        server's final transfer reply is not awaited before that.
        """
        return self._uploader.upload(local_path, _checked(remote_path), callback, on_progress)

    def quit(self, callback: Optional[ResultCallback] = None) -> "FTPClient":
        """Send QUIT and close the connection once the server answers."""
        logger.info(f"Closing session with {self.config.host}")

        def on_quit(error: Optional[Exception], reply: Reply) -> Step:
            if callback:
                callback(error, reply)
            self.close()
            return Step.HOLD

        self.enqueue(Command(text="QUIT", continuation=on_quit))
        return self


def _ignore(error: Optional[Exception], result: Any) -> None:
    pass


class AsyncFTPClient:
    """
    Awaitable wrapper around FTPClient.

    Login is awaited on entry, so a refused or incomplete login raises
    instead of leaving later operations queued.

    Usage:
        async with AsyncFTPClient(config) as ftp:
            await ftp.make_directory("incoming")
            await ftp.upload_file("report.csv", "incoming/report.csv")
    """

    def __init__(self, config: FTPConnectionConfig, connector: Optional[Connector] = None):
        self._config = config
        self._connector = connector
        self._client: Optional[FTPClient] = None

    @property
    def client(self) -> FTPClient:
        """Underlying callback-based client."""
        if self._client is None:
            raise RuntimeError("Client not connected")
        return self._client

    async def __aenter__(self) -> "AsyncFTPClient":
        self._client = await FTPClient.connect(self._config, connector=self._connector)
        try:
            await self.call("login")
        except Exception:
            self._client.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        client = self.client
        if not client.is_closed:
            if exc_type is None:
                await self.call("quit")
            else:
                client.close()
        await client.wait_closed()

    async def call(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        """
        Run a client operation and wait for its callback.

        Raises:
            FTPError: The error the operation reported, or the error
                that closed the session before it completed
        """
        client = self.client
        future = client.loop.create_future()

        def done(error: Optional[Exception], result: Any) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        def closed(error: Optional[Exception]) -> None:
            if not future.done():
                future.set_exception(error or FTPNotConnectedError(operation))

        client.on_close.subscribe(closed)
        try:
            getattr(client, operation)(*args, callback=done, **kwargs)
            return await future
        finally:
            client.on_close.unsubscribe(closed)

    def __getattr__(self, operation: str) -> Callable[..., Any]:
        if operation not in OPERATIONS:
            raise AttributeError(operation)
        return partial(self.call, operation)
