"""Password lookup for ftpqueue.

Reads FTP passwords from the system keyring (Windows Credential Manager,
macOS Keychain, Linux Secret Service). Entries are keyed "host:user"
under the "ftpqueue" service and are created with the keyring tool, e.g.
`keyring set ftpqueue ftp.example.com:alice`; ftpqueue itself never
stores a password.
"""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger("ftpqueue.credentials")


class CredentialManager:
    """Read-only credential lookup using the system keyring."""

    SERVICE_NAME = "ftpqueue"

    def _make_key(self, host: str, username: str) -> str:
        """
        Create the keyring entry name for a login.

        Args:
            host: FTP host
            username: FTP username

        Returns:
            Key string
        """
        return f"{host}:{username}"

    def get_password(self, host: str, username: str) -> Optional[str]:
        """
        Retrieve a saved password.

        Args:
            host: FTP host
            username: FTP username

        Returns:
            Password string or None if not found or the keyring is unavailable
        """
        try:
            key = self._make_key(host, username)
            return keyring.get_password(self.SERVICE_NAME, key)
        except KeyringError as e:
            logger.warning(f"Keyring lookup for {username}@{host} failed: {e}")
            return None

    def has_password(self, host: str, username: str) -> bool:
        """
        Check if a password is saved.

        Args:
            host: FTP host
            username: FTP username

        Returns:
            True if password exists
        """
        return self.get_password(host, username) is not None
