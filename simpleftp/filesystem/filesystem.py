"""File system abstraction for SimpleFTP.

A FileSystem adds, removes, lists, copies and moves CommonFile values.
LocalFileSystem receives files on the local disk (from the disk or from
a server); RemoteFileSystem receives files on its connection's server
(from the disk, or from the same server through a local staging copy).
"""

import logging
import os
import posixpath
import shutil
from abc import ABC, abstractmethod
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Deque, FrozenSet, Iterator, List, Optional, Union

from simpleftp.config.settings import AppSettings
from simpleftp.filesystem.exceptions import (
    FileArgumentError,
    FileSystemError,
    PartialFailureError,
)
from simpleftp.filesystem.files import CommonFile, LocalFile, RemoteFile
from simpleftp.filesystem.utils import create_staging_dir, remove_staging_dir
from simpleftp.ftp.connection import FTPConnection
from simpleftp.ftp.exceptions import FTPError

logger = logging.getLogger("simpleftp.filesystem")

FileOrPath = Union[CommonFile, str]


class CopyMoveOperation(Enum):
    """Pairing of source and destination variants."""
    LOCAL_TO_LOCAL = "local_to_local"
    LOCAL_TO_REMOTE = "local_to_remote"
    REMOTE_TO_REMOTE = "remote_to_remote"
    REMOTE_TO_LOCAL = "remote_to_local"


_OPERATIONS = {
    (True, True): CopyMoveOperation.LOCAL_TO_LOCAL,
    (True, False): CopyMoveOperation.LOCAL_TO_REMOTE,
    (False, False): CopyMoveOperation.REMOTE_TO_REMOTE,
    (False, True): CopyMoveOperation.REMOTE_TO_LOCAL,
}


def get_copy_move_operation(source: CommonFile, destination: CommonFile) -> CopyMoveOperation:
    """Operation for copying source into destination."""
    return _OPERATIONS[(source.is_local, destination.is_local)]


@dataclass(frozen=True)
class FileOperationError:
    """A non-fatal failure on one entry of a directory copy."""
    message: str
    source_path: str
    destination_path: str


@contextmanager
def _wrap_errors(action: str) -> Iterator[None]:
    """Report transport and disk failures as FileSystemError."""
    try:
        yield
    except (FTPError, OSError) as e:
        raise FileSystemError(f"Could not {action}", e)


def _list_children(directory: CommonFile) -> List[CommonFile]:
    """Children of a directory on either substrate."""
    if isinstance(directory, LocalFile):
        with _wrap_errors(f"list '{directory.path}'"):
            names = sorted(os.listdir(directory.path))
        return [LocalFile(os.path.join(directory.path, name), directory.settings) for name in names]

    if isinstance(directory, RemoteFile):
        with _wrap_errors(f"list '{directory.path}'"):
            entries = directory.connection.list_files(directory.path)
        return [
            RemoteFile(entry.path, directory.connection, entry, directory.settings)
            for entry in entries
        ]

    raise FileArgumentError(f"Unsupported file type: {type(directory).__name__}")


class FileSystem(ABC):
    """Operations on the files of one substrate."""

    SUPPORTED_OPERATIONS: FrozenSet[CopyMoveOperation] = frozenset()

    def __init__(
        self,
        connection: Optional[FTPConnection] = None,
        settings: Optional[AppSettings] = None
    ):
        self._connection = connection
        self._settings = settings or AppSettings()
        self._errors: Deque[FileOperationError] = deque()

    @property
    def connection(self) -> Optional[FTPConnection]:
        """Connection bound to this file system."""
        return self._connection

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    @abstractmethod
    def is_local(self) -> bool:
        """True if this file system holds local files."""

    @abstractmethod
    def add_file(self, file: CommonFile, dest_dir_path: str) -> CommonFile:
        """
        Bring a file from the other substrate into a directory here.

        Returns:
            The file created in this file system
        """

    @abstractmethod
    def remove_file(self, file: FileOrPath) -> bool:
        """
        Remove a file, a link (not its target) or a directory tree.

        Returns:
            True if removed, False if it did not exist or the removal
            was refused
        """

    @abstractmethod
    def get_file(self, path: str) -> Optional[CommonFile]:
        """File at path, or None if it does not exist."""

    @abstractmethod
    def file_exists(self, path: str) -> bool:
        """True if something exists at path."""

    @abstractmethod
    def list_files(self, dir_path: str) -> Optional[List[CommonFile]]:
        """Files in a directory, or None if the path is not a directory."""

    @abstractmethod
    def _join(self, dir_path: str, name: str) -> str:
        """Join a directory and a name in this file system's syntax."""

    @abstractmethod
    def _file_at(self, path: str) -> CommonFile:
        """File object for a path in this file system."""

    @abstractmethod
    def _make_directory(self, path: str) -> None:
        """Create a directory if it does not exist."""

    @abstractmethod
    def _copy_file(
        self,
        source: CommonFile,
        dest_dir_path: str,
        operation: CopyMoveOperation
    ) -> CommonFile:
        """Copy a single non-directory file into a directory here."""

    def next_file_operation_error(self) -> Optional[FileOperationError]:
        """Pop the oldest queued directory copy error, or None."""
        return self._errors.popleft() if self._errors else None

    def has_file_operation_errors(self) -> bool:
        """True if directory copies queued errors."""
        return bool(self._errors)

    def _check_arguments(self, source: CommonFile, destination_dir: CommonFile) -> CopyMoveOperation:
        """Validate a copy or move before any transfer."""
        if not isinstance(source, CommonFile) or not isinstance(destination_dir, CommonFile):
            raise FileArgumentError("Source and destination must be CommonFile instances")

        operation = get_copy_move_operation(source, destination_dir)
        if operation not in self.SUPPORTED_OPERATIONS:
            raise FileArgumentError(
                f"{type(self).__name__} does not support {operation.name} operations"
            )
        self._check_servers(source, destination_dir)

        if not destination_dir.is_directory():
            raise FileArgumentError(f"Destination '{destination_dir.path}' is not a directory")
        if not source.exists():
            raise FileArgumentError(f"Source '{source.path}' does not exist")

        if source.is_local == destination_dir.is_local:
            target_path = self._join(destination_dir.path, source.name)
            if target_path == source.path:
                raise FileArgumentError(f"Source and destination of '{source.path}' are the same")
            separator = os.sep if source.is_local else "/"
            if destination_dir.path.startswith(source.path.rstrip(separator) + separator):
                raise FileArgumentError(f"Cannot copy '{source.path}' into itself")

        return operation

    def _check_servers(self, source: CommonFile, destination_dir: CommonFile) -> None:
        """Reject remote files that do not live on this file system's server."""
        if self._connection is None:
            return
        server = self._connection.server
        for file in (source, destination_dir):
            if isinstance(file, RemoteFile) and file.server != server:
                raise FileArgumentError(
                    f"'{file.path}' is on {file.server}, not on {server}"
                )

    def _copy(self, source: CommonFile, dest_dir_path: str, operation: CopyMoveOperation) -> CommonFile:
        if source.is_directory() and not source.is_symbolic_link():
            return self._copy_directory(source, dest_dir_path, operation)
        return self._copy_file(source, dest_dir_path, operation)

    def _copy_directory(
        self,
        source: CommonFile,
        dest_dir_path: str,
        operation: CopyMoveOperation
    ) -> CommonFile:
        """Copy a directory tree, queueing per-entry failures."""
        target_path = self._join(dest_dir_path, source.name)
        self._make_directory(target_path)

        for child in _list_children(source):
            try:
                self._copy(child, target_path, operation)
            except FileSystemError as e:
                error = FileOperationError(str(e), child.path, self._join(target_path, child.name))
                logger.warning(f"Could not copy {error.source_path} to {error.destination_path}: {e}")
                self._errors.append(error)

        return self._file_at(target_path)

    @contextmanager
    def _transfer_session(self, source: CommonFile) -> Iterator[None]:
        """Hold whatever connection a copy from source needs."""
        yield

    def copy_files(self, source: CommonFile, destination_dir: CommonFile) -> CommonFile:
        """
        Copy a file or directory tree into a destination directory.

        Returns:
            The copy at the destination

        Raises:
            FileArgumentError: If the arguments are invalid for this file system
            FileSystemError: If the copy fails
        """
        operation = self._check_arguments(source, destination_dir)
        logger.info(f"Copying {source.path} to {destination_dir.path} ({operation.name})")
        with self._transfer_session(source):
            return self._copy(source, destination_dir.path, operation)

    def move_files(self, source: CommonFile, destination_dir: CommonFile) -> CommonFile:
        """
        Move a file or directory tree into a destination directory.

        The source is copied, then deleted. If any entry of a directory
        failed to copy, or the deletion fails, the source is kept and
        PartialFailureError is raised.

        Returns:
            The file at the destination

        Raises:
            FileArgumentError: If the arguments are invalid for this file system
            FileSystemError: If the copy fails
            PartialFailureError: If the source could not be deleted
        """
        operation = self._check_arguments(source, destination_dir)
        logger.info(f"Moving {source.path} to {destination_dir.path} ({operation.name})")
        queued_before = len(self._errors)
        with self._transfer_session(source):
            copied = self._copy(source, destination_dir.path, operation)

        failed = len(self._errors) - queued_before
        if failed:
            logger.warning(f"Keeping {source.path}: {failed} entries were not copied")
            raise PartialFailureError(
                f"Copied '{source.path}' to '{copied.path}' but {failed} entries failed; "
                f"the source was kept",
                destination=copied
            )

        if source.is_local:
            source_fs: FileSystem = LocalFileSystem(settings=self._settings)
        else:
            source_fs = RemoteFileSystem(source.connection, self._settings)

        try:
            removed = source_fs.remove_file(source)
        except FileSystemError as e:
            raise PartialFailureError(
                f"Copied '{source.path}' to '{copied.path}' but could not delete the source",
                destination=copied,
                original_error=e
            )
        if not removed:
            raise PartialFailureError(
                f"Copied '{source.path}' to '{copied.path}' but could not delete the source",
                destination=copied
            )
        return copied


class LocalFileSystem(FileSystem):
    """
    Files on the local disk.

    The optional connection is used to download remote files. Without
    one, each copy or move from the server opens a temporary connection
    beside the remote file's own and closes it afterwards, so the
    browsing session is never held by a transfer.
    """

    SUPPORTED_OPERATIONS = frozenset({
        CopyMoveOperation.LOCAL_TO_LOCAL,
        CopyMoveOperation.REMOTE_TO_LOCAL,
    })

    @property
    def is_local(self) -> bool:
        return True

    @contextmanager
    def _transfer_session(self, source: CommonFile) -> Iterator[None]:
        if self._connection is not None or not isinstance(source, RemoteFile):
            yield
            return

        with _wrap_errors(f"open a transfer connection to {source.server}"):
            connection = source.connection.create_temporary_connection()
            try:
                connection.ensure_logged_in()
            except FTPError:
                connection.disconnect()
                raise

        self._connection = connection
        try:
            yield
        finally:
            self._connection = None
            connection.disconnect()

    def _join(self, dir_path: str, name: str) -> str:
        return os.path.join(dir_path, name)

    def _file_at(self, path: str) -> LocalFile:
        return LocalFile(path, self._settings)

    def _path_of(self, file: FileOrPath) -> str:
        if isinstance(file, CommonFile):
            if not isinstance(file, LocalFile):
                raise FileArgumentError("Cannot use a remote file with the local file system")
            return file.path
        return os.path.abspath(file)

    def add_file(self, file: CommonFile, dest_dir_path: str) -> CommonFile:
        if not isinstance(file, RemoteFile):
            raise FileArgumentError(
                "Only remote files can be added to the local file system"
            )
        return self.copy_files(file, self._file_at(dest_dir_path))

    def remove_file(self, file: FileOrPath) -> bool:
        path = self._path_of(file)
        with _wrap_errors(f"remove '{path}'"):
            if os.path.islink(path) or os.path.isfile(path):
                os.remove(path)
            elif os.path.isdir(path):
                shutil.rmtree(path)
            else:
                return False
        logger.debug(f"Removed {path}")
        return True

    def get_file(self, path: str) -> Optional[LocalFile]:
        file = self._file_at(path)
        return file if file.exists() else None

    def file_exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def list_files(self, dir_path: str) -> Optional[List[CommonFile]]:
        directory = self._file_at(dir_path)
        if not directory.is_directory():
            return None
        return _list_children(directory)

    def _make_directory(self, path: str) -> None:
        with _wrap_errors(f"create directory '{path}'"):
            os.makedirs(path, exist_ok=True)

    def _copy_file(
        self,
        source: CommonFile,
        dest_dir_path: str,
        operation: CopyMoveOperation
    ) -> CommonFile:
        target_path = self._join(dest_dir_path, source.name)

        if operation == CopyMoveOperation.LOCAL_TO_LOCAL:
            with _wrap_errors(f"copy '{source.path}' to '{target_path}'"):
                shutil.copy2(source.path, target_path, follow_symlinks=False)
        else:
            with _wrap_errors(f"download '{source.path}' to '{dest_dir_path}'"):
                target_path = self._connection.download_file(source.path, dest_dir_path)

        logger.debug(f"Copied {source.path} to {target_path}")
        return self._file_at(target_path)

    def move_files(self, source: CommonFile, destination_dir: CommonFile) -> CommonFile:
        if not (source.is_local and destination_dir.is_local):
            return super().move_files(source, destination_dir)

        self._check_arguments(source, destination_dir)
        logger.info(f"Moving {source.path} to {destination_dir.path} (LOCAL_TO_LOCAL)")
        with _wrap_errors(f"move '{source.path}' to '{destination_dir.path}'"):
            target_path = shutil.move(source.path, destination_dir.path)
        return self._file_at(target_path)


class RemoteFileSystem(FileSystem):
    """
    Files on the server of the bound connection.

    A remote file copied within the server is downloaded into a staging
    directory and uploaded again; the staging directory is removed
    afterwards.
    """

    SUPPORTED_OPERATIONS = frozenset({
        CopyMoveOperation.LOCAL_TO_REMOTE,
        CopyMoveOperation.REMOTE_TO_REMOTE,
    })

    def __init__(self, connection: FTPConnection, settings: Optional[AppSettings] = None):
        """
        Initialize the file system.

        Args:
            connection: Connection to the server holding the files
            settings: Application settings
        """
        if connection is None:
            raise FileArgumentError("A remote file system requires a connection")
        super().__init__(connection, settings)

    @property
    def is_local(self) -> bool:
        return False

    def _join(self, dir_path: str, name: str) -> str:
        return posixpath.join(dir_path, name)

    def _file_at(self, path: str) -> RemoteFile:
        return RemoteFile(path, self._connection, settings=self._settings)

    def _path_of(self, file: FileOrPath) -> str:
        if isinstance(file, CommonFile):
            if not isinstance(file, RemoteFile):
                raise FileArgumentError("Cannot use a local file with the remote file system")
            return file.path
        return file

    def add_file(self, file: CommonFile, dest_dir_path: str) -> CommonFile:
        if not isinstance(file, LocalFile):
            raise FileArgumentError(
                "Only local files can be added to the remote file system"
            )
        return self.copy_files(file, self._file_at(dest_dir_path))

    def remove_file(self, file: FileOrPath) -> bool:
        path = self._path_of(file)
        connection = self._connection
        with _wrap_errors(f"remove '{path}'"):
            entry = connection.get_file_entry(path)
            is_directory = (
                entry.is_directory if entry is not None
                else connection.remote_path_exists(path, directory=True)
            )
            if entry is None and not is_directory:
                return False

            if not is_directory:
                return connection.remove_file(path)

            removed_all = True
            for child in connection.list_files(path):
                if child.is_directory:
                    removed_all = self.remove_file(child.path) and removed_all
                else:
                    removed_all = connection.remove_file(child.path) and removed_all
            if not removed_all:
                return False
            return connection.remove_directory(path)

    def get_file(self, path: str) -> Optional[RemoteFile]:
        with _wrap_errors(f"look up '{path}'"):
            entry = self._connection.get_file_entry(path)
            if entry is None and not self._connection.remote_path_exists(path, directory=True):
                return None
        return RemoteFile(path, self._connection, entry, self._settings)

    def file_exists(self, path: str) -> bool:
        with _wrap_errors(f"check whether '{path}' exists"):
            return self._connection.remote_path_exists(path)

    def list_files(self, dir_path: str) -> Optional[List[CommonFile]]:
        with _wrap_errors(f"check whether '{dir_path}' is a directory"):
            if not self._connection.remote_path_exists(dir_path, directory=True):
                return None
        return _list_children(self._file_at(dir_path))

    def _make_directory(self, path: str) -> None:
        with _wrap_errors(f"create directory '{path}'"):
            if self._connection.remote_path_exists(path, directory=True):
                return
            created = self._connection.make_directory(path)
        if not created:
            raise FileSystemError(f"Server refused to create directory '{path}'")

    def _copy_file(
        self,
        source: CommonFile,
        dest_dir_path: str,
        operation: CopyMoveOperation
    ) -> CommonFile:
        connection = self._connection

        if operation == CopyMoveOperation.LOCAL_TO_REMOTE:
            with _wrap_errors(f"upload '{source.path}' to '{dest_dir_path}'"):
                target_path = connection.upload_file(source.path, dest_dir_path)
        else:
            staging_dir = create_staging_dir(self._settings)
            try:
                with _wrap_errors(f"copy '{source.path}' to '{dest_dir_path}'"):
                    staged_path = connection.download_file(source.path, staging_dir)
                    target_path = connection.upload_file(staged_path, dest_dir_path)
            finally:
                remove_staging_dir(staging_dir)

        logger.debug(f"Copied {source.path} to {target_path}")
        return self._file_at(target_path)
