"""ftpqueue - queued asynchronous FTP client.

Commands are scheduled on one control connection at a time; uploads and
listings use passive-mode data connections.
"""

__version__ = "0.1.0"
