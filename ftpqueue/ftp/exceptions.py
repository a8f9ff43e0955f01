"""FTP-specific exceptions for the ftpqueue control-channel engine.

Custom exception hierarchy for FTP operations. Protocol errors are
recoverable (the session keeps running); connection errors are fatal
for the session instance that raised them.
"""

from typing import Optional


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class ProtocolError(FTPError):
    """Server answered with a 4xx or 5xx reply."""

    def __init__(self, code: int, reply_message: str):
        self.code = code
        self.reply_message = reply_message
        message = f"Server replied {code}: {reply_message}"
        super().__init__(message)


class PassiveModeError(ProtocolError):
    """PASV reply did not carry a usable h1,h2,h3,h4,p1,p2 address."""

    def __init__(self, code: int, reply_message: str):
        super().__init__(code, reply_message)
        self.message = f"Cannot parse passive address from reply {code}: {reply_message}"


class MissingCredentialError(FTPError):
    """Login needs a credential that was not configured."""

    def __init__(self, field: str, reply_message: Optional[str] = None):
        self.field = field
        self.reply_message = reply_message
        message = f"The {field} is required to log in"
        super().__init__(message)


class TransferError(FTPError):
    """Local source read or data socket write failed during an upload."""

    def __init__(
        self,
        local_path: str,
        remote_path: str,
        original_error: Exception = None
    ):
        self.local_path = local_path
        self.remote_path = remote_path
        message = f"Failed to upload '{local_path}' to '{remote_path}'"
        super().__init__(message, original_error)


class FTPConnectionError(FTPError):
    """Control connection failed or was lost."""

    def __init__(self, host: str, port: int, original_error: Exception = None):
        self.host = host
        self.port = port
        message = f"Connection to {host}:{port} failed"
        super().__init__(message, original_error)


class FTPTimeoutError(FTPConnectionError):
    """No traffic on the control connection within the inactivity window."""

    def __init__(self, host: str, port: int, timeout: float):
        super().__init__(host, port)
        self.timeout = timeout
        self.message = f"Connection to {host}:{port} idle for more than {timeout} seconds"


class FTPNotConnectedError(FTPError):
    """Operation attempted on a closed session."""

    def __init__(self, operation: str = "Operation"):
        message = f"{operation} requires an active FTP connection"
        super().__init__(message)
