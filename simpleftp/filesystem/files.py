"""Common file abstraction for SimpleFTP.

CommonFile is the single contract the file system layer works against;
LocalFile implements it over the local disk and RemoteFile over an FTP
connection. Both report failures as FileSystemError.
"""

import os
import posixpath
import stat
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

from simpleftp.config.settings import AppSettings
from simpleftp.filesystem.exceptions import FileArgumentError, FileSystemError
from simpleftp.filesystem.paths import LocalPathResolver, SymbolicPathResolver
from simpleftp.filesystem.utils import format_timestamp, get_parent_path
from simpleftp.ftp.connection import FTPConnection
from simpleftp.ftp.exceptions import FTPError
from simpleftp.ftp.lookup import FTPFileEntry, normalize_remote_path
from simpleftp.ftp.server import FTPServer
from simpleftp.utils.validators import validate_remote_path


class CommonFile(ABC):
    """A file or directory on either the local disk or a remote server."""

    def __init__(self, path: str, settings: Optional[AppSettings] = None):
        self._path = path
        self._settings = settings or AppSettings()

    @property
    def path(self) -> str:
        """Absolute path."""
        return self._path

    @property
    def name(self) -> str:
        """Last path component (the path itself for the root)."""
        return self._basename(self._path) or self._path

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    @abstractmethod
    def is_local(self) -> bool:
        """True for files on the local disk."""

    @staticmethod
    @abstractmethod
    def _basename(path: str) -> str:
        """Last component of a path in this variant's syntax."""

    @abstractmethod
    def _sibling(self, path: str) -> "CommonFile":
        """Create a file of the same variant (and server) at another path."""

    @abstractmethod
    def exists(self) -> bool:
        """True if the path exists (a dangling link exists)."""

    @abstractmethod
    def is_directory(self) -> bool:
        """True for a directory or a link to one."""

    @abstractmethod
    def is_normal_file(self) -> bool:
        """True for a regular file or a link to one."""

    @abstractmethod
    def size(self) -> int:
        """Size in bytes, -1 if it cannot be determined."""

    @abstractmethod
    def permissions(self) -> str:
        """Permissions as a 10 character ls -l string."""

    @abstractmethod
    def modification_time(self) -> str:
        """Modification time for display."""

    @abstractmethod
    def is_symbolic_link(self) -> bool:
        """True if the path is a symbolic link."""

    @abstractmethod
    def symbolic_link_target(self) -> Optional[str]:
        """Absolute link target, resolved against the link's parent, or None."""

    def refresh(self) -> None:
        """Drop any cached metadata."""

    def parent_path(self) -> str:
        """Path of the parent directory (the root for the root)."""
        return get_parent_path(self._path, self.is_local)

    def existing_parent(self) -> "CommonFile":
        """
        Nearest ancestor that exists.

        The file itself is never examined. The walk ends at the root,
        which always exists.
        """
        path = self._path
        while True:
            parent_path = get_parent_path(path, self.is_local)
            parent = self._sibling(parent_path)
            if parent_path == path or parent.exists():
                return parent
            path = parent_path

    def _key(self) -> tuple:
        return (self.is_local, self._path)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CommonFile):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._path!r})"


@contextmanager
def _local_errors(action: str, path: str) -> Iterator[None]:
    try:
        yield
    except OSError as e:
        raise FileSystemError(f"Could not {action} '{path}'", e)


class LocalFile(CommonFile):
    """A file on the local disk."""

    def __init__(self, path: str, settings: Optional[AppSettings] = None):
        """
        Initialize the file.

        Args:
            path: Local path, made absolute (symbolic links are kept)
            settings: Application settings
        """
        super().__init__(os.path.abspath(os.fspath(path)), settings)

    @property
    def is_local(self) -> bool:
        return True

    @staticmethod
    def _basename(path: str) -> str:
        return os.path.basename(path)

    def _sibling(self, path: str) -> "LocalFile":
        return LocalFile(path, self._settings)

    def exists(self) -> bool:
        return os.path.lexists(self._path)

    def is_directory(self) -> bool:
        return os.path.isdir(self._path)

    def is_normal_file(self) -> bool:
        return os.path.isfile(self._path)

    def is_symbolic_link(self) -> bool:
        return os.path.islink(self._path)

    def size(self) -> int:
        try:
            if self._settings.file_size_follow_link:
                return os.stat(self._path).st_size
            return os.lstat(self._path).st_size
        except FileNotFoundError:
            return -1
        except OSError as e:
            raise FileSystemError(f"Could not determine the size of '{self._path}'", e)

    def permissions(self) -> str:
        with _local_errors("read the permissions of", self._path):
            link_stat = os.lstat(self._path)
            if not stat.S_ISLNK(link_stat.st_mode):
                return stat.filemode(link_stat.st_mode)

            if self._settings.file_perms_follow_link:
                try:
                    target_mode = os.stat(self._path).st_mode
                except FileNotFoundError:
                    return stat.filemode(link_stat.st_mode)
                return "l" + stat.filemode(target_mode)[1:]
            return stat.filemode(link_stat.st_mode)

    def modification_time(self) -> str:
        with _local_errors("read the modification time of", self._path):
            return format_timestamp(os.lstat(self._path).st_mtime)

    def symbolic_link_target(self) -> Optional[str]:
        if not self.is_symbolic_link():
            return None

        with _local_errors("read the link", self._path):
            target = os.readlink(self._path)
        parent = self.parent_path()
        if not os.path.isabs(target):
            target = os.path.join(parent, target)
        return LocalPathResolver(parent).resolve_path(target).path


class RemoteFile(CommonFile):
    """
    A file on an FTP server.

    Metadata comes from the file's listing entry, which is cached until
    refresh() unless remote listing caching is turned off.
    """

    def __init__(
        self,
        path: str,
        connection: FTPConnection,
        entry: Optional[FTPFileEntry] = None,
        settings: Optional[AppSettings] = None
    ):
        """
        Initialize the file.

        Args:
            path: Absolute remote path
            connection: Connection used for lookups
            entry: Listing entry already known for this path
            settings: Application settings

        Raises:
            FileArgumentError: If the path is not a valid absolute path
        """
        is_valid, error = validate_remote_path(path)
        if not is_valid:
            raise FileArgumentError(error)
        super().__init__(normalize_remote_path(path), settings)
        self._connection = connection
        self._entry = entry
        self._entry_loaded = entry is not None

    @property
    def is_local(self) -> bool:
        return False

    @property
    def connection(self) -> FTPConnection:
        """Connection used for lookups."""
        return self._connection

    @property
    def server(self) -> FTPServer:
        """Server the file lives on."""
        return self._connection.server

    @staticmethod
    def _basename(path: str) -> str:
        return posixpath.basename(path)

    def _sibling(self, path: str) -> "RemoteFile":
        return RemoteFile(path, self._connection, settings=self._settings)

    def _key(self) -> tuple:
        return (self.is_local, self._path, self.server)

    @contextmanager
    def _remote_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except FTPError as e:
            raise FileSystemError(f"Could not {action} '{self._path}'", e)

    def _get_entry(self) -> Optional[FTPFileEntry]:
        if self._entry_loaded and self._settings.cache_remote_directory_listing:
            return self._entry

        with self._remote_errors("look up"):
            entry = self._connection.get_file_entry(self._path)
        self._entry = entry
        self._entry_loaded = True
        return entry

    def _require_entry(self, action: str) -> FTPFileEntry:
        entry = self._get_entry()
        if entry is None:
            raise FileSystemError(f"Could not {action} '{self._path}': file does not exist")
        return entry

    def refresh(self) -> None:
        self._entry = None
        self._entry_loaded = False

    def exists(self) -> bool:
        if self._path == "/":
            return True
        if self._get_entry() is not None:
            return True
        with self._remote_errors("check the existence of"):
            return self._connection.remote_path_exists(self._path, directory=True)

    def is_directory(self) -> bool:
        entry = self._get_entry()
        if entry is not None and not entry.is_symbolic_link:
            return entry.is_directory
        with self._remote_errors("check the type of"):
            return self._connection.remote_path_exists(self._path, directory=True)

    def is_normal_file(self) -> bool:
        entry = self._get_entry()
        if entry is None:
            return False
        if entry.is_symbolic_link:
            with self._remote_errors("check the type of"):
                return not self._connection.remote_path_exists(self._path, directory=True)
        return entry.is_file

    def is_symbolic_link(self) -> bool:
        entry = self._get_entry()
        return entry is not None and entry.is_symbolic_link

    def size(self) -> int:
        entry = self._get_entry()
        if entry is None:
            return -1
        if entry.is_symbolic_link and self._settings.file_size_follow_link:
            with self._remote_errors("determine the size of"):
                size = self._connection.get_size(self._path)
            return -1 if size is None else size
        return entry.size

    def permissions(self) -> str:
        entry = self._require_entry("read the permissions of")
        if not (entry.is_symbolic_link and self._settings.file_perms_follow_link):
            return entry.permissions

        target = self.symbolic_link_target()
        if target is None:
            return entry.permissions
        with self._remote_errors("read the link target of"):
            target_entry = self._connection.get_file_entry(target)
        if target_entry is None or not target_entry.permissions:
            return entry.permissions
        return "l" + target_entry.permissions[1:]

    def modification_time(self) -> str:
        entry = self._require_entry("read the modification time of")
        if self._settings.server_remote_modification_time:
            with self._remote_errors("read the modification time of"):
                mdtm = self._connection.get_modification_time(self._path)
            if mdtm:
                return mdtm
        return entry.modification_time

    def symbolic_link_target(self) -> Optional[str]:
        entry = self._get_entry()
        if entry is None or not entry.is_symbolic_link or not entry.link_target:
            return None

        target = entry.link_target
        if not target.startswith("/"):
            target = posixpath.join(self.parent_path(), target)
        return SymbolicPathResolver().resolve_path(target).path
