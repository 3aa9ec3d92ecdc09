"""Remote path lookups for SimpleFTP.

Wraps a raw ftplib handle with the queries the file abstraction needs:
directory listings parsed into entries, single entry lookup, existence
checks, sizes, modification times and status replies.

The lookup performs no locking and no error translation; the owning
FTPConnection does both.
"""

import logging
import posixpath
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from ftplib import FTP, error_perm
from typing import List, Optional

logger = logging.getLogger("simpleftp.lookup")


# Format MDTM timestamps are shown in
MODIFICATION_TIME_FORMAT = "%H:%M:%S %d/%m/%Y"

# drwxr-xr-x   2 owner group   4096 Jan 01 12:00 name
UNIX_LIST_PATTERN = re.compile(
    r"^(?P<permissions>[bcdlps-][rwxsStT-]{9})[+@.]?\s+"
    r"\d+\s+\S+\s+(?:\S+\s+)?(?P<size>\d+)\s+"
    r"(?P<time>[A-Za-z]{3}\s+\d{1,2}\s+(?:\d{1,2}:\d{2}|\d{4}))\s+"
    r"(?P<name>.+)$"
)

# 01-01-24  12:00PM       <DIR>          name
DOS_LIST_PATTERN = re.compile(
    r"^(?P<date>\d{2}-\d{2}-\d{2,4})\s+(?P<time>\d{1,2}:\d{2}[AaPp][Mm])\s+"
    r"(?P<size><DIR>|\d+)\s+(?P<name>.+)$"
)


class FTPFileType(Enum):
    """Type of a remote listing entry."""
    FILE = "file"
    DIRECTORY = "directory"
    SYMBOLIC_LINK = "symbolic_link"
    UNKNOWN = "unknown"


@dataclass
class FTPFileEntry:
    """A single entry parsed from a remote directory listing."""
    name: str
    path: str
    file_type: FTPFileType
    size: int = -1
    permissions: str = ""
    modification_time: str = ""
    link_target: Optional[str] = None
    raw: str = ""

    @property
    def is_directory(self) -> bool:
        """True if the entry itself is a directory (links are not followed)."""
        return self.file_type == FTPFileType.DIRECTORY

    @property
    def is_file(self) -> bool:
        """True if the entry is a regular file."""
        return self.file_type == FTPFileType.FILE

    @property
    def is_symbolic_link(self) -> bool:
        """True if the entry is a symbolic link."""
        return self.file_type == FTPFileType.SYMBOLIC_LINK


@dataclass
class FTPPathStats:
    """Combined stats for a remote path."""
    path: str
    modification_time: Optional[str]
    status: Optional[str]
    size: Optional[int]


def parse_list_line(line: str, directory: str) -> Optional[FTPFileEntry]:
    """
    Parse one line of LIST output.

    Args:
        line: Raw listing line (Unix or MS-DOS style)
        directory: Directory that was listed, used to build entry paths

    Returns:
        FTPFileEntry, or None if the line is not recognised
    """
    line = line.rstrip("\r\n")

    match = UNIX_LIST_PATTERN.match(line)
    if match:
        permissions = match.group("permissions")
        name = match.group("name")
        link_target = None
        type_char = permissions[0]

        if type_char == "d":
            file_type = FTPFileType.DIRECTORY
        elif type_char == "l":
            file_type = FTPFileType.SYMBOLIC_LINK
            if " -> " in name:
                name, link_target = name.split(" -> ", 1)
        elif type_char == "-":
            file_type = FTPFileType.FILE
        else:
            file_type = FTPFileType.UNKNOWN

        return FTPFileEntry(
            name=name,
            path=posixpath.join(directory, name),
            file_type=file_type,
            size=int(match.group("size")),
            permissions=permissions,
            modification_time=" ".join(match.group("time").split()),
            link_target=link_target,
            raw=line,
        )

    match = DOS_LIST_PATTERN.match(line)
    if match:
        name = match.group("name")
        size = match.group("size")
        is_dir = size == "<DIR>"
        return FTPFileEntry(
            name=name,
            path=posixpath.join(directory, name),
            file_type=FTPFileType.DIRECTORY if is_dir else FTPFileType.FILE,
            size=-1 if is_dir else int(size),
            modification_time=f"{match.group('date')} {match.group('time')}",
            raw=line,
        )

    return None


def normalize_remote_path(path: str) -> str:
    """Strip a trailing separator (except for the root)."""
    if len(path) > 1 and path.endswith("/"):
        return path.rstrip("/") or "/"
    return path


class FTPLookup:
    """Queries against a raw ftplib handle."""

    def __init__(self, ftp: FTP):
        """
        Initialize the lookup.

        Args:
            ftp: Connected ftplib handle
        """
        self._ftp = ftp

    def list_entries(self, path: str) -> List[FTPFileEntry]:
        """
        List a remote directory.

        Args:
            path: Remote directory path

        Returns:
            Parsed entries, excluding "." and ".."

        Raises:
            ftplib.error_perm: If the directory cannot be listed
        """
        path = normalize_remote_path(path)
        lines: List[str] = []
        self._ftp.retrlines(f"LIST {path}", lines.append)

        entries = []
        for line in lines:
            entry = parse_list_line(line, path)
            if entry is None:
                logger.debug(f"Skipping unrecognised listing line: {line!r}")
                continue
            if entry.name in (".", ".."):
                continue
            entries.append(entry)

        logger.debug(f"Listed {len(entries)} entries in {path}")
        return entries

    def get_entry(self, path: str) -> Optional[FTPFileEntry]:
        """
        Look up a single remote path through its parent's listing.

        Listing the parent keeps symbolic links unfollowed, so their
        targets stay visible.

        Args:
            path: Absolute remote path

        Returns:
            FTPFileEntry or None if the path does not exist
        """
        path = normalize_remote_path(path)
        if path == "/":
            return FTPFileEntry(name="/", path="/", file_type=FTPFileType.DIRECTORY)

        parent = posixpath.dirname(path) or "/"
        name = posixpath.basename(path)
        try:
            entries = self.list_entries(parent)
        except error_perm:
            logger.debug(f"Parent of {path} cannot be listed")
            return None

        for entry in entries:
            if entry.name == name:
                return entry
        return None

    def is_directory(self, path: str) -> bool:
        """
        Check whether a remote path is a directory by changing into it.

        The working directory is restored afterwards.
        """
        current = self._ftp.pwd()
        try:
            self._ftp.cwd(path)
        except error_perm:
            return False

        self._ftp.cwd(current)
        return True

    def path_exists(self, path: str, directory: Optional[bool] = None) -> bool:
        """
        Check whether a remote path exists.

        Args:
            path: Remote path
            directory: True to require a directory, False to require a
                non-directory, None to accept either

        Returns:
            True if the path exists with the requested type
        """
        if directory is True:
            return self.is_directory(path)

        entry = self.get_entry(path)
        if directory is None:
            return entry is not None or self.is_directory(path)

        if entry is None or entry.is_directory:
            return False
        if entry.is_symbolic_link:
            return not self.is_directory(path)
        return True

    def get_working_directory(self) -> str:
        """Current remote working directory."""
        return self._ftp.pwd()

    def get_size(self, path: str) -> Optional[int]:
        """Size in bytes reported by SIZE, or None if unavailable."""
        try:
            return self._ftp.size(path)
        except error_perm:
            return None

    def get_modification_time(self, path: str) -> Optional[str]:
        """
        Modification time reported by MDTM.

        Returns:
            Time formatted as "HH:MM:SS dd/mm/YYYY", or None if unavailable
        """
        try:
            reply = self._ftp.sendcmd(f"MDTM {path}")
        except error_perm:
            logger.debug(f"Could not retrieve modification time for {path}")
            return None

        timestamp = reply[4:].strip()[:14]
        try:
            parsed = datetime.strptime(timestamp, "%Y%m%d%H%M%S")
        except ValueError:
            logger.debug(f"Unrecognised MDTM reply: {reply!r}")
            return None
        return parsed.strftime(MODIFICATION_TIME_FORMAT)

    def get_status(self) -> str:
        """Server status reply to STAT."""
        return self._ftp.sendcmd("STAT")

    def get_file_status(self, path: str) -> Optional[str]:
        """Status reply to STAT for a path, or None if refused."""
        try:
            return self._ftp.sendcmd(f"STAT {path}")
        except error_perm:
            return None

    def get_path_stats(self, path: str) -> FTPPathStats:
        """Collect modification time, status and size for a path."""
        return FTPPathStats(
            path=path,
            modification_time=self.get_modification_time(path),
            status=self.get_file_status(path),
            size=self.get_size(path),
        )
