"""FTP protocol module for ftpqueue.

This module handles all FTP-related functionality:
- ReplyFramer: Reassembles single and multi-line replies
- CommandQueue: Ordered commands with urgent head insertion
- FTPSession: Control connection scheduler and session state
- AuthFlow: Automatic USER/PASS login
- DataChannelManager: PASV negotiation and data connections
- FileUploader: STOR transfers
- FTPClient: Caller-facing operations
- Exceptions: FTP-specific error types
"""

from ftpqueue.ftp.client import AsyncFTPClient, FTPClient
from ftpqueue.ftp.connection import FTPConnectionConfig, SessionState
from ftpqueue.ftp.exceptions import (
    FTPConnectionError,
    FTPError,
    FTPNotConnectedError,
    FTPTimeoutError,
    MissingCredentialError,
    PassiveModeError,
    ProtocolError,
    TransferError,
)

__all__ = [
    "AsyncFTPClient",
    "FTPClient",
    "FTPConnectionConfig",
    "SessionState",
    "FTPError",
    "FTPConnectionError",
    "FTPNotConnectedError",
    "FTPTimeoutError",
    "MissingCredentialError",
    "PassiveModeError",
    "ProtocolError",
    "TransferError",
]
