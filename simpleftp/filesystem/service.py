"""Background file operations for SimpleFTP.

Copies, moves and removals that touch the server run on a temporary
connection in a worker thread so the shared browsing session stays free.
Operations are keyed by source path: at most one runs per source.
"""

import logging
from enum import Enum
from typing import Callable, Optional

from simpleftp.config.settings import AppSettings
from simpleftp.filesystem.exceptions import FileArgumentError
from simpleftp.filesystem.files import CommonFile, LocalFile, RemoteFile
from simpleftp.filesystem.filesystem import FileSystem, LocalFileSystem, RemoteFileSystem
from simpleftp.ftp.connection import FTPConnection
from simpleftp.utils.threading import BackgroundTask, TaskResult, TaskScheduler

logger = logging.getLogger("simpleftp.filesystem")


class FileOperation(Enum):
    """Kind of background file operation."""
    COPY = "copy"
    MOVE = "move"
    REMOVE = "remove"


class FileService(BackgroundTask[object]):
    """
    One copy, move or remove run in the background.

    Remote files are re-bound to a temporary connection created from the
    given one; the temporary connection is disconnected when the
    operation ends.
    """

    def __init__(
        self,
        operation: FileOperation,
        source: CommonFile,
        destination_dir: Optional[CommonFile] = None,
        connection: Optional[FTPConnection] = None,
        settings: Optional[AppSettings] = None,
        on_complete: Optional[Callable[[TaskResult[object]], None]] = None
    ):
        """
        Initialize the operation.

        Args:
            operation: COPY, MOVE or REMOVE
            source: File to operate on
            destination_dir: Destination directory (COPY and MOVE)
            connection: Connection to the server involved (defaults to the
                connection of the first remote file)
            settings: Application settings
            on_complete: Callback when the operation finishes

        Raises:
            FileArgumentError: If the arguments do not fit the operation
        """
        super().__init__(on_complete=on_complete)
        if operation != FileOperation.REMOVE and destination_dir is None:
            raise FileArgumentError(f"{operation.name} requires a destination directory")

        if connection is None:
            for file in (source, destination_dir):
                if isinstance(file, RemoteFile):
                    connection = file.connection
                    break

        self._operation = operation
        self._source = source
        self._destination_dir = destination_dir
        self._parent_connection = connection
        self._settings = settings or source.settings
        self._connection: Optional[FTPConnection] = None

    @property
    def operation(self) -> FileOperation:
        return self._operation

    @property
    def source(self) -> CommonFile:
        return self._source

    @property
    def destination_dir(self) -> Optional[CommonFile]:
        return self._destination_dir

    def _rebind(self, file: Optional[CommonFile]) -> Optional[CommonFile]:
        """Point a remote file at the temporary connection."""
        if isinstance(file, RemoteFile):
            return RemoteFile(file.path, self._connection, settings=self._settings)
        return file

    def _file_system_for(self, file: CommonFile) -> FileSystem:
        if isinstance(file, LocalFile):
            return LocalFileSystem(self._connection, self._settings)
        return RemoteFileSystem(self._connection, self._settings)

    def _execute(self) -> object:
        if self.is_cancelled:
            return None

        try:
            if self._parent_connection is not None:
                self._connection = self._parent_connection.create_temporary_connection()
                self._connection.ensure_logged_in()

            source = self._rebind(self._source)
            destination_dir = self._rebind(self._destination_dir)

            if self._operation == FileOperation.REMOVE:
                removed = self._file_system_for(source).remove_file(source)
                logger.info(f"Removed {source.path}: {removed}")
                return removed

            file_system = self._file_system_for(destination_dir)
            if self._operation == FileOperation.COPY:
                result = file_system.copy_files(source, destination_dir)
            else:
                result = file_system.move_files(source, destination_dir)

            while file_system.has_file_operation_errors():
                error = file_system.next_file_operation_error()
                logger.warning(f"{self._operation.name} of {error.source_path} failed: {error.message}")
            return result
        finally:
            if self._connection is not None:
                self._connection.disconnect()
                self._connection = None


class FileServiceScheduler(TaskScheduler):
    """Runs file operations, one at a time per source path."""

    def __init__(self, settings: Optional[AppSettings] = None):
        settings = settings or AppSettings()
        super().__init__(
            poll_interval=settings.upload_poll_interval,
            name="simpleftp-file-service"
        )

    def schedule_operation(self, service: FileService) -> None:
        """Queue an operation behind others on the same source."""
        self.schedule((service.source.is_local, service.source.path), service)
