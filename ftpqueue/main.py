"""Command line entry point for ftpqueue.

Runs one FTP operation against a server:

    python -m ftpqueue.main --host ftp.example.com --user alice ls /pub
    python -m ftpqueue.main --host ftp.example.com put report.csv incoming/report.csv

Options that are not given fall back to the saved settings, and the
password to the system keyring.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ftpqueue.config.credentials import CredentialManager
from ftpqueue.config.paths import get_log_file_path
from ftpqueue.config.settings import AppSettings, SettingsManager
from ftpqueue.ftp.client import AsyncFTPClient
from ftpqueue.ftp.connection import FTPConnectionConfig
from ftpqueue.ftp.exceptions import FTPError
from ftpqueue.ftp.listing import FileEntry
from ftpqueue.ftp.uploader import UploadProgress
from ftpqueue.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser with one subcommand per operation."""
    parser = argparse.ArgumentParser(prog="ftpqueue", description="Queued FTP client")
    parser.add_argument("--host", "-H", help="FTP server host")
    parser.add_argument("--port", "-P", type=int, help="FTP server port")
    parser.add_argument("--user", "-u", help="User name")
    parser.add_argument("--password", "-p", help="Password (looked up in the keyring if omitted)")
    parser.add_argument("--timeout", type=float, help="Connect and reply timeout in seconds")
    parser.add_argument("--keepalive", type=float, help="Idle NOOP interval in seconds")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log protocol traffic")
    parser.add_argument("--log-file", action="store_true", help="Also write the log file")

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="List a directory")
    ls.add_argument("path", nargs="?")

    stat = commands.add_parser("stat", help="Show server or file status")
    stat.add_argument("path", nargs="?")

    commands.add_parser("feat", help="Show server features")

    mkdir = commands.add_parser("mkdir", help="Create a directory")
    mkdir.add_argument("path")

    rmdir = commands.add_parser("rmdir", help="Remove a directory")
    rmdir.add_argument("path")

    rm = commands.add_parser("rm", help="Delete a file")
    rm.add_argument("path")

    mv = commands.add_parser("mv", help="Rename a file")
    mv.add_argument("source")
    mv.add_argument("target")

    put = commands.add_parser("put", help="Upload a file")
    put.add_argument("local")
    put.add_argument("remote")

    return parser


def resolve_config(
    args: argparse.Namespace,
    settings: AppSettings,
    credentials: CredentialManager
) -> FTPConnectionConfig:
    """
    Merge command line options with saved settings.

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    host = args.host or settings.last_host
    user = args.user or settings.last_user
    password = args.password
    if password is None and host and user:
        password = credentials.get_password(host, user)

    return FTPConnectionConfig(
        host=host,
        port=args.port or settings.last_port,
        user=user,
        password=password,
        connect_timeout=args.timeout or settings.timeout,
        keepalive_interval=args.keepalive or settings.keepalive_interval,
    )


def format_entry(entry) -> str:
    """Render one listing entry as a line of output."""
    if not isinstance(entry, FileEntry):
        return str(entry)
    kind = "d" if entry.is_directory else "-"
    modified = entry.last_modified.strftime("%Y-%m-%d %H:%M") if entry.last_modified else ""
    return f"{kind} {entry.size:>12} {modified:16} {entry.name}"


def _print_progress(progress: UploadProgress) -> None:
    print(
        f"\r{progress.file_name}: {progress.bytes_sent}/{progress.bytes_total} "
        f"({progress.percent:.0f}%)",
        end="",
        file=sys.stderr,
    )


async def run_command(args: argparse.Namespace, config: FTPConnectionConfig) -> None:
    """
    Connect, run the requested operation and quit.

    Raises:
        FTPError: If connecting or the operation fails
    """
    async with AsyncFTPClient(config) as ftp:
        if args.command == "ls":
            for entry in await ftp.list_directory(args.path):
                print(format_entry(entry))
        elif args.command == "stat":
            for entry in await ftp.get_extended_status(args.path):
                print(format_entry(entry))
        elif args.command == "feat":
            for feature in await ftp.query_server_features():
                print(feature)
        elif args.command == "mkdir":
            print((await ftp.make_directory(args.path)).message)
        elif args.command == "rmdir":
            print((await ftp.remove_directory(args.path)).message)
        elif args.command == "rm":
            print((await ftp.delete_file(args.path)).message)
        elif args.command == "mv":
            print((await ftp.rename_file(args.source, args.target)).message)
        elif args.command == "put":
            await ftp.set_binary_transfer_type()
            result = await ftp.upload_file(
                args.local, args.remote, on_progress=_print_progress
            )
            print(file=sys.stderr)
            print(result.message)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Command line entry point.

    Returns:
        Exit code (0 for success, 1 for FTP errors, 2 for bad options)
    """
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(level=level, log_file=get_log_file_path() if args.log_file else None)

    settings_manager = SettingsManager()
    settings = settings_manager.load()

    try:
        config = resolve_config(args, settings, CredentialManager())
    except ValueError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 2

    try:
        asyncio.run(run_command(args, config))
    except FTPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    settings_manager.update(
        last_host=config.host,
        last_port=config.port,
        last_user=config.user or settings.last_user,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
