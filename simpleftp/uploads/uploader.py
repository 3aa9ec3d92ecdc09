"""Save tasks for SimpleFTP.

A FileUploader replaces the contents of one target file: the current
file is renamed aside to a backup, the new content is written, and the
backup is deleted once the write succeeded. A failed write restores the
old content and keeps the backup.
"""

import logging
import os
import posixpath
import shutil
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Optional, Union

from simpleftp.config.settings import AppSettings
from simpleftp.filesystem.exceptions import BackupError, FileArgumentError, FileSystemError
from simpleftp.filesystem.files import CommonFile, LocalFile, RemoteFile
from simpleftp.filesystem.utils import create_staging_dir, get_parent_path, remove_staging_dir
from simpleftp.ftp.connection import FTPConnection
from simpleftp.ftp.exceptions import FTPError
from simpleftp.utils.threading import BackgroundTask, TaskResult, TaskStatus

logger = logging.getLogger("simpleftp.uploads")

UPLOAD_CANCELLED = "Upload cancelled"


class UploadState(Enum):
    """State of a save task."""
    READY = "ready"
    BACKING_UP = "backing_up"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class UploadResult:
    """Result of a save task."""
    target_path: str
    success: bool
    backup_path: Optional[str] = None
    error_message: Optional[str] = None
    cleanup_error: Optional[str] = None
    bytes_written: int = 0
    duration_seconds: float = 0.0


class FileUploader(BackgroundTask[UploadResult], ABC):
    """
    Backup-then-replace save of one target file.

    States run READY -> BACKING_UP -> UPLOADING -> SUCCEEDED or FAILED.
    Subclasses supply the file primitives for their substrate; each
    primitive raises FileSystemError on failure.
    """

    def __init__(
        self,
        target_path: str,
        content: Union[str, bytes],
        settings: Optional[AppSettings] = None,
        on_complete: Optional[Callable[[TaskResult[UploadResult]], None]] = None
    ):
        """
        Initialize the save task.

        Args:
            target_path: Path of the file to replace
            content: New content (text is encoded as UTF-8)
            settings: Application settings
            on_complete: Callback when the task finishes
        """
        super().__init__(on_complete=on_complete)
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._target_path = target_path
        self._content = content
        self._settings = settings or AppSettings()
        self._state = UploadState.READY
        self._backup_path: Optional[str] = None
        self._upload_result: Optional[UploadResult] = None
        self._state_lock = threading.Lock()

    @property
    def target_path(self) -> str:
        """Path of the file being replaced."""
        return self._target_path

    @property
    def content(self) -> bytes:
        """Content being written."""
        return self._content

    @property
    def backup_path(self) -> Optional[str]:
        """Backup path (equal to the target if no backup was needed)."""
        return self._backup_path

    @property
    def state(self) -> UploadState:
        """Current save state."""
        return self._state

    @property
    def upload_result(self) -> Optional[UploadResult]:
        """Result once the task reached SUCCEEDED or FAILED."""
        return self._upload_result

    @property
    def is_finished(self) -> bool:
        """True once the task reached SUCCEEDED or FAILED."""
        return self._state in (UploadState.SUCCEEDED, UploadState.FAILED)

    @property
    @abstractmethod
    def separator(self) -> str:
        """Path separator of the target's substrate."""

    @abstractmethod
    def _exists(self, path: str) -> bool:
        """True if something exists at path."""

    @abstractmethod
    def _rename(self, source: str, destination: str) -> None:
        """Rename source to destination."""

    @abstractmethod
    def _remove(self, path: str) -> None:
        """Delete the file at path."""

    @abstractmethod
    def _write(self) -> None:
        """Write the content to the target."""

    @abstractmethod
    def _restore(self, backup_path: str) -> None:
        """Copy the backup's content back to the target."""

    def _prepare(self) -> None:
        """Acquire resources needed by the primitives."""

    def _release(self) -> None:
        """Release resources acquired by _prepare. Must not raise."""

    def start(self) -> None:
        with self._state_lock:
            super().start()

    def cancel(self) -> None:
        """
        Request cancellation.

        A task that has not started is failed immediately and never runs.
        A running task stops at its next state check.
        """
        with self._state_lock:
            super().cancel()
            if self.status != TaskStatus.PENDING:
                return
            result = self._complete(False, time.time(), UPLOAD_CANCELLED)
            self._result = TaskResult(status=TaskStatus.CANCELLED, result=result)
            self._status = TaskStatus.CANCELLED
        self._finish()

    def next_backup_path(self) -> str:
        """First unused name among name~, name~.1, name~.2, ..."""
        path = self._target_path
        if len(path) > 1 and path.endswith(self.separator):
            path = path[:-1]

        candidate = f"{path}~"
        index = 1
        while self._exists(candidate):
            candidate = f"{path}~.{index}"
            index += 1
        return candidate

    def _set_state(self, state: UploadState) -> None:
        logger.debug(f"Save of {self._target_path}: {self._state.value} -> {state.value}")
        self._state = state

    def _complete(
        self,
        success: bool,
        started: float,
        error_message: Optional[str] = None,
        cleanup_error: Optional[str] = None
    ) -> UploadResult:
        self._set_state(UploadState.SUCCEEDED if success else UploadState.FAILED)
        self._upload_result = UploadResult(
            target_path=self._target_path,
            success=success,
            backup_path=self._backup_path,
            error_message=error_message,
            cleanup_error=cleanup_error,
            bytes_written=len(self._content) if success else 0,
            duration_seconds=time.time() - started
        )
        return self._upload_result

    def _execute(self) -> UploadResult:
        started = time.time()
        if self.is_cancelled:
            return self._complete(False, started, UPLOAD_CANCELLED)

        try:
            self._prepare()
            return self._save(started)
        except (FileSystemError, FTPError) as e:
            logger.error(f"Saving {self._target_path} failed: {e}")
            return self._complete(False, started, str(e))
        finally:
            self._release()

    def _backup(self) -> str:
        """Rename the target aside, returning the backup path (or the target if absent)."""
        target = self._target_path
        try:
            if not self._exists(target):
                return target
            backup_path = self.next_backup_path()
            self._rename(target, backup_path)
        except FileSystemError as e:
            raise BackupError(target, e)

        logger.debug(f"Backed up {target} to {backup_path}")
        return backup_path

    def _save(self, started: float) -> UploadResult:
        target = self._target_path

        self._set_state(UploadState.BACKING_UP)
        self._backup_path = self._backup()
        has_backup = self._backup_path != target

        if self.is_cancelled:
            if has_backup:
                self._rename(self._backup_path, target)
            return self._complete(False, started, UPLOAD_CANCELLED)

        self._set_state(UploadState.UPLOADING)
        try:
            self._write()
        except FileSystemError as e:
            logger.error(f"Writing {target} failed: {e}")
            self._recover(has_backup)
            return self._complete(False, started, str(e))

        cleanup_error = None
        if has_backup:
            try:
                self._remove(self._backup_path)
            except FileSystemError as e:
                cleanup_error = str(e)
                logger.warning(f"Saved {target} but could not remove backup {self._backup_path}: {e}")

        logger.info(f"Saved {target}")
        return self._complete(True, started, cleanup_error=cleanup_error)

    def _recover(self, has_backup: bool) -> None:
        """Drop a partially written target and put the old content back."""
        target = self._target_path
        try:
            if self._exists(target):
                self._remove(target)
            if has_backup:
                self._restore(self._backup_path)
        except FileSystemError as e:
            logger.error(f"Could not restore {target} from {self._backup_path}: {e}")


class LocalFileUploader(FileUploader):
    """Saves a file on the local disk."""

    @property
    def separator(self) -> str:
        return os.sep

    def _exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def _rename(self, source: str, destination: str) -> None:
        try:
            os.rename(source, destination)
        except OSError as e:
            raise FileSystemError(f"Could not rename '{source}' to '{destination}'", e)

    def _remove(self, path: str) -> None:
        try:
            os.remove(path)
        except OSError as e:
            raise FileSystemError(f"Could not remove '{path}'", e)

    def _write(self) -> None:
        try:
            with open(self._target_path, "wb") as f:
                f.write(self._content)
        except OSError as e:
            raise FileSystemError(f"Could not write '{self._target_path}'", e)

    def _restore(self, backup_path: str) -> None:
        try:
            shutil.copy2(backup_path, self._target_path)
        except OSError as e:
            raise FileSystemError(f"Could not copy '{backup_path}' to '{self._target_path}'", e)


class RemoteFileUploader(FileUploader):
    """
    Saves a file on an FTP server.

    The content is staged in a local file and uploaded to the target's
    parent over a temporary connection that lives for the task.
    """

    def __init__(
        self,
        target_path: str,
        content: Union[str, bytes],
        connection: FTPConnection,
        settings: Optional[AppSettings] = None,
        on_complete: Optional[Callable[[TaskResult[UploadResult]], None]] = None
    ):
        """
        Initialize the save task.

        Args:
            target_path: Absolute remote path of the file to replace
            content: New content (text is encoded as UTF-8)
            connection: Connection whose server holds the target
            settings: Application settings
            on_complete: Callback when the task finishes
        """
        super().__init__(target_path, content, settings, on_complete)
        self._parent_connection = connection
        self._connection: Optional[FTPConnection] = None

    @property
    def separator(self) -> str:
        return "/"

    @contextmanager
    def _remote_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except FTPError as e:
            raise FileSystemError(f"Could not {action}", e)

    def _prepare(self) -> None:
        self._connection = self._parent_connection.create_temporary_connection()
        self._connection.ensure_logged_in()

    def _release(self) -> None:
        if self._connection is not None:
            self._connection.disconnect()
            self._connection = None

    def _exists(self, path: str) -> bool:
        with self._remote_errors(f"check whether '{path}' exists"):
            return self._connection.remote_path_exists(path)

    def _rename(self, source: str, destination: str) -> None:
        with self._remote_errors(f"rename '{source}' to '{destination}'"):
            renamed = self._connection.rename_file(source, destination)
        if not renamed:
            raise FileSystemError(f"Server refused to rename '{source}' to '{destination}'")

    def _remove(self, path: str) -> None:
        with self._remote_errors(f"remove '{path}'"):
            removed = self._connection.remove_file(path)
        if not removed:
            raise FileSystemError(f"Server refused to remove '{path}'")

    def _upload_staged(self, write_staged: Callable[[str], None]) -> None:
        """Fill a staging file via write_staged and upload it as the target."""
        target = self._target_path
        staging_dir = create_staging_dir(self._settings)
        staged_path = os.path.join(staging_dir, posixpath.basename(target))
        try:
            try:
                write_staged(staged_path)
            except OSError as e:
                raise FileSystemError(f"Could not write staging file '{staged_path}'", e)
            with self._remote_errors(f"upload '{target}'"):
                self._connection.upload_file(staged_path, get_parent_path(target, local=False))
        finally:
            remove_staging_dir(staging_dir)

    def _write(self) -> None:
        def write_content(staged_path: str) -> None:
            with open(staged_path, "wb") as f:
                f.write(self._content)

        self._upload_staged(write_content)

    def _restore(self, backup_path: str) -> None:
        def download_backup(staged_path: str) -> None:
            with self._remote_errors(f"download '{backup_path}'"):
                with open(staged_path, "wb") as f:
                    self._connection.download_stream(backup_path, f)

        self._upload_staged(download_backup)


def create_uploader(
    file: CommonFile,
    content: Union[str, bytes],
    settings: Optional[AppSettings] = None,
    on_complete: Optional[Callable[[TaskResult[UploadResult]], None]] = None
) -> FileUploader:
    """
    Create the save task matching a file's variant.

    Raises:
        FileArgumentError: If the file variant is not supported
    """
    settings = settings or file.settings
    if isinstance(file, LocalFile):
        return LocalFileUploader(file.path, content, settings, on_complete)
    if isinstance(file, RemoteFile):
        return RemoteFileUploader(file.path, content, file.connection, settings, on_complete)
    raise FileArgumentError(f"Unsupported file type: {type(file).__name__}")
