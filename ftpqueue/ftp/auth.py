"""Automatic login sequence for an FTP session.

AuthFlow urgently enqueues USER and, when the server asks for it, PASS,
so that login completes before any queued caller command is dispatched.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, List, Optional

from ftpqueue.ftp.commands import Command, Step
from ftpqueue.ftp.exceptions import MissingCredentialError, ProtocolError
from ftpqueue.ftp.reply import Reply

if TYPE_CHECKING:
    from ftpqueue.ftp.connection import FTPSession

logger = logging.getLogger("ftpqueue.auth")

# Called with (error, reply) once the login sequence has its final reply
LoginCallback = Callable[[Optional[Exception], Optional[Reply]], None]


@dataclass
class Credentials:
    """User name and password for one login attempt."""
    user: Optional[str] = None
    password: Optional[str] = None

    def __repr__(self) -> str:
        password = "****" if self.password else None
        return f"Credentials(user={self.user!r}, password={password!r})"


class AuthFlow:
    """
    USER/PASS sub-protocol layered on the session's command queue.

    A 230 reply ends the flow (the session itself switches to READY on
    any 230). Any other final outcome aborts the attempt: the session
    goes back to AWAITING_LOGIN and the flow holds the queue so no
    caller command is sent unauthenticated.
    """

    def __init__(
        self,
        session: "FTPSession",
        credentials: Credentials,
        callback: Optional[LoginCallback] = None
    ):
        """
        Initialize the login flow.

        Args:
            session: Session whose queue receives USER/PASS
            credentials: Credentials to log in with
            callback: Optional callback for the final login reply
        """
        self._session = session
        self._credentials = credentials
        self._callbacks: List[LoginCallback] = [callback] if callback else []

    @property
    def user(self) -> Optional[str]:
        """User name this flow logs in as."""
        return self._credentials.user

    def start(self) -> bool:
        """
        Enqueue USER at the head of the queue and dispatch it.

        Returns:
            False if no user is configured (nothing was enqueued)
        """
        user = self._credentials.user
        if not user:
            self._fail(MissingCredentialError("user"), None)
            return False

        logger.info(f"Logging in as '{user}'")
        self._session.queue.append(
            Command(text=f"USER {user}", continuation=self._on_user_reply),
            urgent=True,
        )
        self._session.advance()
        return True

    def _on_user_reply(self, error: Optional[Exception], reply: Reply) -> Step:
        if reply.code == 230:
            logger.info(f"Logged in as '{self._credentials.user}' without password")
            self._finish(None, reply)
            return Step.ADVANCE

        if reply.code == 331:
            password = self._credentials.password
            if not password:
                self._fail(MissingCredentialError("password", reply.message), reply)
                self._session.abort_login()
                return Step.HOLD

            self._session.queue.append(
                Command(text=f"PASS {password}", continuation=self._on_pass_reply),
                urgent=True,
            )
            self._session.advance()
            return Step.HOLD

        return self._refused(error, reply)

    def _on_pass_reply(self, error: Optional[Exception], reply: Reply) -> Step:
        if reply.code == 230:
            logger.info(f"Logged in as '{self._credentials.user}'")
            self._finish(None, reply)
            return Step.ADVANCE
        return self._refused(error, reply)

    def _refused(self, error: Optional[Exception], reply: Reply) -> Step:
        logger.warning(f"Login as '{self._credentials.user}' refused: {reply.message}")
        self._finish(error or ProtocolError(reply.code, reply.message), reply)
        self._session.abort_login()
        return Step.HOLD

    def _fail(self, error: MissingCredentialError, reply: Optional[Reply]) -> None:
        logger.error(str(error))
        self._session.on_error.emit(error)
        self._finish(error, reply)

    def add_callback(self, callback: LoginCallback) -> None:
        """Also report the outcome of this attempt to callback."""
        self._callbacks.append(callback)

    def _finish(self, error: Optional[Exception], reply: Optional[Reply]) -> None:
        callbacks, self._callbacks = self._callbacks, []
        # Credentials do not outlive the login attempt
        self._credentials = Credentials(user=self._credentials.user)
        for callback in callbacks:
            callback(error, reply)
