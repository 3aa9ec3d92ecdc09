"""Path, permission and staging helpers shared by the local and remote file types."""

import logging
import os
import posixpath
import shutil
import tempfile
from datetime import datetime
from typing import Optional

from simpleftp.config.settings import AppSettings
from simpleftp.filesystem.exceptions import FileSystemError
from simpleftp.utils.validators import validate_octal

logger = logging.getLogger("simpleftp.filesystem")

# Format local modification times are shown in (as in ls -l)
FILE_DATETIME_FORMAT = "%b %d %H:%M"

REMOTE_SEPARATOR = "/"

_PERMISSION_TRIPLETS = ("---", "--x", "-w-", "-wx", "r--", "r-x", "rw-", "rwx")


def format_timestamp(timestamp: float) -> str:
    """Format a POSIX timestamp for display."""
    return datetime.fromtimestamp(timestamp).strftime(FILE_DATETIME_FORMAT)


def get_root_path(local: bool) -> str:
    """
    Get the root path of a file system.

    Args:
        local: True for the local file system, False for the remote one
    """
    if not local:
        return REMOTE_SEPARATOR
    drive = os.path.splitdrive(os.getcwd())[0]
    return drive + os.sep


def get_parent_path(path: str, local: bool) -> str:
    """
    Get the parent path of a path. The root is its own parent.

    Args:
        path: Absolute path
        local: True for a local path, False for a remote path
    """
    module = os.path if local else posixpath
    if len(path) > 1:
        path = path.rstrip(module.sep) or module.sep
    return module.dirname(path) or module.sep


def add_pwd_to_path(working_dir: str, path: str, separator: str = REMOTE_SEPARATOR) -> str:
    """Prefix a relative path with the working directory."""
    if path.startswith(separator):
        return path
    if not working_dir.endswith(separator):
        working_dir += separator
    return working_dir + path


def _group_to_octal(group: str) -> int:
    read, write, execute = group
    if read not in "-r":
        raise ValueError(f"Invalid character at read position of permission group: {read}")
    if write not in "-w":
        raise ValueError(f"Invalid character at write position of permission group: {write}")
    if execute not in "-xsStT":
        raise ValueError(f"Invalid character at execute position of permission group: {execute}")

    return (
        (4 if read == "r" else 0)
        + (2 if write == "w" else 0)
        + (1 if execute in "xst" else 0)
    )


def permissions_to_octal(permissions: str) -> str:
    """
    Convert a 10 character permissions string to a 3 digit octal.

    Example: "drwxr-xr-x" -> "755"

    Raises:
        ValueError: If the string is malformed
    """
    if len(permissions) != 10:
        raise ValueError("A permissions string must be 10 characters long")
    if permissions[0] not in "-ldbcps":
        raise ValueError(f"Unknown character at start of permissions string: {permissions[0]}")

    return "".join(
        str(_group_to_octal(permissions[i:i + 3])) for i in (1, 4, 7)
    )


def octal_to_permissions(octal: str, file_type: Optional[str] = None) -> str:
    """
    Convert a 3 digit octal to permission triplets.

    Example: "755" -> "rwxr-xr-x", or "drwxr-xr-x" with file_type "d"

    Raises:
        ValueError: If the octal is invalid
    """
    is_valid, error = validate_octal(octal)
    if not is_valid:
        raise ValueError(error)

    triplets = "".join(_PERMISSION_TRIPLETS[int(ch)] for ch in octal)
    return (file_type or "") + triplets


def create_staging_dir(settings: AppSettings) -> str:
    """
    Create a per-operation directory under the staging directory.

    Raises:
        FileSystemError: If the directory cannot be created
    """
    try:
        return tempfile.mkdtemp(prefix="op-", dir=settings.staging_dir)
    except OSError as e:
        raise FileSystemError("Could not create a staging directory", e)


def remove_staging_dir(path: str) -> Optional[str]:
    """
    Remove a per-operation staging directory.

    Returns:
        None on success, otherwise the error message (also logged)
    """
    try:
        shutil.rmtree(path)
    except OSError as e:
        logger.warning(f"Could not remove staging directory {path}: {e}")
        return str(e)
    return None
