"""Path discovery for SimpleFTP.

Defines application data, log and staging directories.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Optional


# Application name for config directories
APP_NAME = "SimpleFTP"

# Name of the staging directory created under the temp directory
STAGING_DIR_NAME = "simpleftp-staging"


def get_app_data_dir() -> Path:
    """
    Get the application data directory.

    Returns:
        Path to app data directory (created if not exists)

    Platform-specific locations:
        - Windows: %APPDATA%/SimpleFTP
        - Linux: ~/.config/SimpleFTP
        - macOS: ~/Library/Application Support/SimpleFTP
    """
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))

    app_dir = base / APP_NAME
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_settings_path() -> Path:
    """
    Get the path to the settings JSON file.

    Returns:
        Path to settings.json
    """
    return get_app_data_dir() / "settings.json"


def get_log_dir() -> Path:
    """
    Get the directory for log files.

    Returns:
        Path to logs directory (created if not exists)
    """
    log_dir = get_app_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file_path() -> Path:
    """
    Get the path to the main log file.

    Returns:
        Path to application log file
    """
    return get_log_dir() / "simpleftp.log"


def get_temp_dir(temp_directory: Optional[str] = None) -> Path:
    """
    Get the temp directory.

    Args:
        temp_directory: Configured directory, or empty for the system default

    Returns:
        Path to the temp directory
    """
    if temp_directory:
        return Path(temp_directory)
    return Path(tempfile.gettempdir())


def get_staging_dir(temp_directory: Optional[str] = None) -> Path:
    """
    Get the staging directory used for transient transfer files.

    Args:
        temp_directory: Configured temp directory, or empty for the default

    Returns:
        Path to the staging directory (created if not exists)
    """
    staging_dir = get_temp_dir(temp_directory) / STAGING_DIR_NAME
    staging_dir.mkdir(parents=True, exist_ok=True)
    return staging_dir
