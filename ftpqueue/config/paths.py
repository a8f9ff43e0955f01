"""Where ftpqueue keeps its files.

Settings live in the per-user configuration directory and the log file
in the per-user state (or log) directory of the platform. Setting
FTPQUEUE_HOME puts both under one directory, which is handy for tests
and portable installs. Nothing here creates directories; the writers
(SettingsManager.save, setup_logging) create parents on demand.
"""

import os
import sys
from pathlib import Path
from typing import Optional


APP_NAME = "ftpqueue"

# Overrides every platform default when set
HOME_ENV = "FTPQUEUE_HOME"

SETTINGS_FILE = "settings.json"
LOG_FILE = "ftpqueue.log"


def _home_override() -> Optional[Path]:
    value = os.environ.get(HOME_ENV)
    return Path(value).expanduser() if value else None


def _env_dir(name: str, default: Path) -> Path:
    value = os.environ.get(name)
    return Path(value) if value else default


def get_config_dir() -> Path:
    """
    Directory holding the saved connection settings.

    Returns:
        FTPQUEUE_HOME if set, else %APPDATA%/ftpqueue on Windows,
        ~/Library/Application Support/ftpqueue on macOS and
        $XDG_CONFIG_HOME/ftpqueue (~/.config/ftpqueue) elsewhere
    """
    override = _home_override()
    if override is not None:
        return override
    if sys.platform == "win32":
        return _env_dir("APPDATA", Path.home() / "AppData" / "Roaming") / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return _env_dir("XDG_CONFIG_HOME", Path.home() / ".config") / APP_NAME


def get_state_dir() -> Path:
    """
    Directory for the log file.

    Returns:
        FTPQUEUE_HOME/logs if set, else %LOCALAPPDATA%/ftpqueue/logs on
        Windows, ~/Library/Logs/ftpqueue on macOS and
        $XDG_STATE_HOME/ftpqueue (~/.local/state/ftpqueue) elsewhere
    """
    override = _home_override()
    if override is not None:
        return override / "logs"
    if sys.platform == "win32":
        return _env_dir("LOCALAPPDATA", Path.home() / "AppData" / "Local") / APP_NAME / "logs"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Logs" / APP_NAME
    return _env_dir("XDG_STATE_HOME", Path.home() / ".local" / "state") / APP_NAME


def get_settings_path() -> Path:
    """Path of the settings JSON file."""
    return get_config_dir() / SETTINGS_FILE


def get_log_file_path() -> Path:
    """Path of the log file written with --log-file."""
    return get_state_dir() / LOG_FILE
