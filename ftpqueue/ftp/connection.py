"""FTP control connection management for ftpqueue.

Provides the SessionState enum, the FTPConnectionConfig dataclass and
FTPSession, the asyncio protocol that schedules commands on the control
connection one at a time.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ftpqueue.ftp.auth import AuthFlow, Credentials, LoginCallback
from ftpqueue.ftp.commands import Command, CommandQueue, Step
from ftpqueue.ftp.events import Signal
from ftpqueue.ftp.exceptions import (
    FTPConnectionError,
    FTPError,
    FTPNotConnectedError,
    FTPTimeoutError,
    ProtocolError,
)
from ftpqueue.ftp.reply import Reply, ReplyFramer
from ftpqueue.utils.validators import validate_host, validate_port, validate_timeout

logger = logging.getLogger("ftpqueue.connection")

CRLF = b"\r\n"


class SessionState(Enum):
    """FTP session state."""
    CONNECTING = "connecting"
    AWAITING_LOGIN = "awaiting_login"
    LOGGING_IN = "logging_in"
    READY = "ready"
    EXECUTING = "executing"
    CLOSED = "closed"


@dataclass
class FTPConnectionConfig:
    """FTP connection configuration."""
    host: str
    port: int = 21
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    connect_timeout: float = 30.0
    keepalive_interval: float = 10.0
    encoding: str = "latin-1"

    def __post_init__(self):
        """Validate configuration after initialization."""
        is_valid, error = validate_host(self.host)
        if not is_valid:
            raise ValueError(error)
        is_valid, error = validate_port(self.port)
        if not is_valid:
            raise ValueError(error)
        is_valid, error = validate_timeout(self.connect_timeout)
        if not is_valid:
            raise ValueError(error)
        is_valid, error = validate_timeout(self.keepalive_interval)
        if not is_valid:
            raise ValueError(f"Invalid keepalive interval: {error}")


class FTPSession(asyncio.Protocol):
    """
    Scheduler for one FTP control connection.

    Commands wait in a CommandQueue and are written one at a time; the
    next command is only dispatched once the reply to the previous one
    has been framed and its continuation has run. Login (USER/PASS) is
    inserted automatically before the first queued command.
    """

    def __init__(
        self,
        config: FTPConnectionConfig,
        loop: Optional[asyncio.AbstractEventLoop] = None
    ):
        """
        Initialize the session.

        Args:
            config: Connection configuration
            loop: Event loop for timers and data connections
                (defaults to the running loop)
        """
        self._config = config
        self._loop = loop
        self._transport: Optional[asyncio.Transport] = None
        self._framer = ReplyFramer(config.encoding)
        self._queue = CommandQueue()
        self._state = SessionState.CONNECTING
        self._in_flight = False
        self._credentials = Credentials(config.user, config.password)
        self._login_callback: Optional[LoginCallback] = None
        self._auth: Optional[AuthFlow] = None
        self._keepalive_handle: Optional[asyncio.TimerHandle] = None
        self._inactivity_handle: Optional[asyncio.TimerHandle] = None
        self._closed_waiter: Optional[asyncio.Future] = None
        self._connected_at: Optional[datetime] = None
        self._last_activity: Optional[datetime] = None
        self._close_error: Optional[Exception] = None

        self.on_error: Signal[FTPError] = Signal("error")
        self.on_close: Signal[Optional[Exception]] = Signal("close")
        self.on_end: Signal[None] = Signal("end")

    @classmethod
    async def connect(cls, config: FTPConnectionConfig, **kwargs: Any) -> "FTPSession":
        """
        Open the control connection.

        Args:
            config: Connection configuration
            **kwargs: Extra constructor arguments

        Returns:
            Session waiting for the server greeting

        Raises:
            FTPConnectionError: If the connection cannot be established
            FTPTimeoutError: If connecting takes longer than connect_timeout
        """
        loop = asyncio.get_running_loop()
        session = cls(config, loop=loop, **kwargs)
        logger.info(f"Connecting to {config.host}:{config.port}")
        try:
            await asyncio.wait_for(
                loop.create_connection(lambda: session, config.host, config.port),
                timeout=config.connect_timeout,
            )
        except asyncio.TimeoutError:
            raise FTPTimeoutError(config.host, config.port, config.connect_timeout)
        except OSError as e:
            raise FTPConnectionError(config.host, config.port, e)
        return session

    @property
    def config(self) -> FTPConnectionConfig:
        """Connection configuration."""
        return self._config

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def in_flight(self) -> bool:
        """True while a dispatched command waits for its reply."""
        return self._in_flight

    @property
    def is_closed(self) -> bool:
        """True once the control connection is gone."""
        return self._state == SessionState.CLOSED

    @property
    def queue(self) -> CommandQueue:
        """Pending and executed commands."""
        return self._queue

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """Event loop the session schedules on."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    @property
    def connected_at(self) -> Optional[datetime]:
        """Timestamp when the control connection was established."""
        return self._connected_at

    @property
    def last_activity(self) -> Optional[datetime]:
        """Timestamp of the last byte received."""
        return self._last_activity

    # asyncio.Protocol callbacks

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport
        self._connected_at = datetime.now()
        logger.info(f"Connected to {self._config.host}:{self._config.port}")
        # The greeting counts as the first reply we wait for
        self._arm_inactivity()

    def data_received(self, data: bytes) -> None:
        self._last_activity = datetime.now()
        if self._inactivity_handle is not None:
            self._arm_inactivity()

        reply = self._framer.consume(data)
        while reply:
            self._handle_reply(reply)
            if self._state == SessionState.CLOSED:
                return
            reply = self._framer.consume(b"")

    def eof_received(self) -> Optional[bool]:
        logger.info(f"Server {self._config.host} ended the connection")
        self.on_end.emit()
        return False

    def connection_lost(self, exc: Optional[Exception]) -> None:
        if self._state == SessionState.CLOSED:
            return
        error = None
        if exc is not None:
            error = FTPConnectionError(self._config.host, self._config.port, exc)
            logger.error(str(error))
            self.on_error.emit(error)
        self._teardown(error, abort=False)

    # Scheduling

    def advance(self) -> "FTPSession":
        """
        Dispatch the next command if nothing is in flight.

        Starts the login sequence first when the session is not logged
        in, and arms the keepalive timer when the queue is empty.
        """
        if self._in_flight:
            return self
        if self._state in (SessionState.CONNECTING, SessionState.CLOSED):
            return self
        if self._state == SessionState.AWAITING_LOGIN:
            self._begin_login()
            return self

        self._cancel_inactivity()
        text = self._queue.next()
        if text is None:
            self._arm_keepalive()
            return self

        self._cancel_keepalive()
        self._dispatch(text)
        return self

    def enqueue(
        self,
        command: Command,
        urgent: bool = False,
        operation: Optional[str] = None
    ) -> "FTPSession":
        """
        Queue a command and give the scheduler a chance to send it.

        Raises:
            FTPNotConnectedError: If the session is closed
        """
        if self._state == SessionState.CLOSED:
            raise FTPNotConnectedError(operation or command.text.split(" ", 1)[0])
        self._queue.append(command, urgent=urgent)
        return self.advance()

    def login(
        self,
        user: Optional[str] = None,
        password: Optional[str] = None,
        callback: Optional[LoginCallback] = None
    ) -> "FTPSession":
        """
        Log in, optionally overriding the configured credentials.

        Before the greeting the credentials are kept for the automatic
        login; afterwards USER is sent ahead of every queued command.
        Without overrides, a running attempt is joined and an existing
        login is reported as is.
        """
        if self._state == SessionState.CLOSED:
            raise FTPNotConnectedError("Login")

        if user is None and password is None:
            if self._state == SessionState.LOGGING_IN and self._auth is not None:
                if callback:
                    self._auth.add_callback(callback)
                return self
            if self._state in (SessionState.READY, SessionState.EXECUTING):
                logger.debug("Already logged in")
                if callback:
                    callback(None, None)
                return self

        self._credentials = Credentials(
            user or self._config.user,
            password or self._config.password,
        )
        self._login_callback = callback
        if self._state != SessionState.CONNECTING:
            self._begin_login()
        return self

    def extend_inactivity(self) -> None:
        """Restart a running inactivity window; data transfers call this as bytes move."""
        if self._inactivity_handle is not None:
            self._arm_inactivity()

    def abort_login(self) -> None:
        """Give up on the running login attempt without dispatching queued commands."""
        if self._state == SessionState.LOGGING_IN:
            self._set_state(SessionState.AWAITING_LOGIN)

    def close(self) -> None:
        """Close the control connection; queued commands are dropped."""
        self._teardown(None, abort=False)

    async def wait_closed(self) -> Optional[Exception]:
        """
        Wait until the session is closed.

        Returns:
            The error that closed the session, if any
        """
        if self._state != SessionState.CLOSED:
            if self._closed_waiter is None:
                self._closed_waiter = self.loop.create_future()
            await self._closed_waiter
        return self._close_error

    def _begin_login(self) -> None:
        self._set_state(SessionState.LOGGING_IN)
        callback, self._login_callback = self._login_callback, None
        self._auth = AuthFlow(self, self._credentials, callback)
        if not self._auth.start():
            self.abort_login()

    def _dispatch(self, text: str) -> None:
        logger.debug(f"-> {self._queue.current}")
        self._in_flight = True
        if self._state == SessionState.READY:
            self._set_state(SessionState.EXECUTING)
        self._transport.write(text.encode(self._config.encoding) + CRLF)
        self._arm_inactivity()

    def _handle_reply(self, reply: Reply) -> None:
        if self._state == SessionState.CONNECTING:
            self._handle_greeting(reply)
            return

        if not self._in_flight:
            self._handle_unsolicited(reply)
            return

        if reply.code == 230:
            self._set_state(SessionState.READY)

        error = None
        if reply.is_error:
            error = ProtocolError(reply.code, reply.message)
            logger.warning(str(error))
            self.on_error.emit(error)

        if not reply.is_preliminary:
            # A 1xx leaves the command in flight until its final reply
            self._in_flight = False
            if self._state == SessionState.EXECUTING:
                self._set_state(SessionState.READY)
            self._cancel_inactivity()
        else:
            # The final reply must still arrive within the window
            self._arm_inactivity()

        continuation = self._queue.current_continuation()
        if continuation is not None:
            step = continuation(error, reply)
        elif reply.is_preliminary:
            # The final reply to the same command is still to come
            step = Step.HOLD
        else:
            step = Step.ADVANCE

        if step != Step.HOLD and self._state != SessionState.CLOSED:
            self.advance()

    def _handle_unsolicited(self, reply: Reply) -> None:
        logger.warning(f"Unsolicited reply {reply.code}: {reply.message}")
        if reply.is_error:
            self.on_error.emit(ProtocolError(reply.code, reply.message))

    def _handle_greeting(self, reply: Reply) -> None:
        if reply.is_preliminary:
            logger.info(f"Server not ready yet: {reply.message}")
            return
        self._cancel_inactivity()
        if reply.is_error:
            error = FTPConnectionError(
                self._config.host,
                self._config.port,
                ProtocolError(reply.code, reply.message),
            )
            logger.error(str(error))
            self.on_error.emit(error)
            self._teardown(error)
            return
        logger.info(f"Server greeting: {reply.message}")
        self._set_state(SessionState.AWAITING_LOGIN)
        self.advance()

    def _set_state(self, state: SessionState) -> None:
        if state != self._state:
            logger.debug(f"Session state {self._state.value} -> {state.value}")
            self._state = state

    # Timers

    def _arm_keepalive(self) -> None:
        if self._keepalive_handle is not None:
            return
        self._keepalive_handle = self.loop.call_later(
            self._config.keepalive_interval, self._on_keepalive
        )

    def _cancel_keepalive(self) -> None:
        if self._keepalive_handle is not None:
            self._keepalive_handle.cancel()
            self._keepalive_handle = None

    def _on_keepalive(self) -> None:
        self._keepalive_handle = None
        if self._state == SessionState.CLOSED:
            return
        logger.debug("Sending keepalive NOOP")
        self._queue.append(Command(text="NOOP"))
        self.advance()

    def _arm_inactivity(self) -> None:
        self._cancel_inactivity()
        self._inactivity_handle = self.loop.call_later(
            self._config.connect_timeout, self._on_inactivity
        )

    def _cancel_inactivity(self) -> None:
        if self._inactivity_handle is not None:
            self._inactivity_handle.cancel()
            self._inactivity_handle = None

    def _on_inactivity(self) -> None:
        self._inactivity_handle = None
        error = FTPTimeoutError(
            self._config.host, self._config.port, self._config.connect_timeout
        )
        logger.error(str(error))
        self.on_error.emit(error)
        self._teardown(error)

    # Teardown

    def _teardown(self, error: Optional[Exception], abort: bool = True) -> None:
        if self._state == SessionState.CLOSED:
            return
        self._set_state(SessionState.CLOSED)
        self._in_flight = False
        self._close_error = error
        self._cancel_keepalive()
        self._cancel_inactivity()
        self._framer.reset()

        dropped = self._queue.clear()
        if dropped:
            logger.warning(f"Dropped {dropped} queued command(s) on close")

        transport, self._transport = self._transport, None
        if transport is not None:
            if abort:
                transport.abort()
            else:
                transport.close()

        logger.info(f"Connection to {self._config.host}:{self._config.port} closed")
        if self._closed_waiter is not None and not self._closed_waiter.done():
            self._closed_waiter.set_result(None)
        self.on_close.emit(error)

