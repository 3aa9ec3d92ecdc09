"""FTP connection lifecycle for SimpleFTP.

Provides the ConnectionState enum and the FTPConnection class, which
drives an ftplib handle through connect, login, logout and disconnect
and exposes the remote operations the file abstraction is built on.
"""

import logging
import os
import posixpath
import socket
import threading
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from ftplib import FTP, all_errors, error_perm, error_proto, error_reply, error_temp
from typing import BinaryIO, Callable, Iterator, List, Optional, Union

from simpleftp.ftp.exceptions import (
    FTPAuthenticationError,
    FTPCommandError,
    FTPConnectionError,
    FTPConnectionLostError,
    FTPDownloadError,
    FTPError,
    FTPNotConnectedError,
    FTPStateError,
    FTPTimeoutError,
    FTPUploadError,
)
from simpleftp.ftp.lookup import FTPFileEntry, FTPLookup, FTPPathStats
from simpleftp.ftp.server import FTPServer

logger = logging.getLogger("simpleftp.connection")

TransferCallback = Callable[[bytes], None]


class ConnectionState(Enum):
    """FTP connection state."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    LOGGED_IN = "logged in"


def _is_closing_reply(error: Exception) -> bool:
    """True for a 421 reply (server is closing the control connection)."""
    return str(error).startswith("421")


class FTPConnection:
    """
    A single FTP session against one server.

    The ftplib handle is guarded by a re-entrant lock; work that should
    not block this session runs on a temporary connection instead.
    """

    # Block size for FTP transfers (8KB)
    BLOCK_SIZE = 8192

    def __init__(self, server: FTPServer, idle_timeout: int = 0, temporary: bool = False):
        """
        Initialize the connection.

        Args:
            server: Server descriptor
            idle_timeout: Seconds of inactivity before the session is
                considered expired (0 disables)
            temporary: True for a short-lived sibling connection
        """
        self._server = server
        self._idle_timeout = idle_timeout
        self._temporary = temporary
        self._ftp: Optional[FTP] = None
        self._lookup: Optional[FTPLookup] = None
        self._state = ConnectionState.DISCONNECTED
        self._lock = threading.RLock()
        self._connected_at: Optional[datetime] = None
        self._last_activity: Optional[datetime] = None
        self._lost_reason: Optional[str] = None

    @property
    def server(self) -> FTPServer:
        """Server descriptor."""
        return self._server

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True if connected (logged in or not)."""
        return self._state != ConnectionState.DISCONNECTED

    @property
    def is_logged_in(self) -> bool:
        """True if logged in."""
        return self._state == ConnectionState.LOGGED_IN

    @property
    def is_temporary(self) -> bool:
        """True if this is a temporary sibling connection."""
        return self._temporary

    @property
    def idle_timeout(self) -> int:
        """Idle timeout in seconds (0 means never)."""
        return self._idle_timeout

    @property
    def connected_at(self) -> Optional[datetime]:
        """Timestamp when connection was established."""
        return self._connected_at

    @property
    def last_activity(self) -> Optional[datetime]:
        """Timestamp of last successful operation."""
        return self._last_activity

    @property
    def lost_reason(self) -> Optional[str]:
        """Why the session was flagged lost, if it was."""
        return self._lost_reason

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding the ftplib handle."""
        return self._lock

    @property
    def idle_seconds(self) -> float:
        """Seconds since the last successful operation."""
        if self._last_activity is None:
            return 0.0
        return (datetime.now() - self._last_activity).total_seconds()

    def is_idle_expired(self) -> bool:
        """True if the idle timeout is enabled and has been exceeded."""
        return (
            self._idle_timeout > 0
            and self.is_connected
            and self.idle_seconds > self._idle_timeout
        )

    @property
    def ftp(self) -> FTP:
        """
        Get the underlying FTP object.

        Raises:
            FTPNotConnectedError: If not connected
        """
        if not self.is_connected or self._ftp is None:
            raise FTPNotConnectedError("FTP access")
        return self._ftp

    def _update_activity(self) -> None:
        """Update last activity timestamp."""
        self._last_activity = datetime.now()

    def _release_handle(self) -> None:
        """Close the ftplib handle, falling back to a hard close."""
        ftp = self._ftp
        self._ftp = None
        self._lookup = None
        if ftp is None:
            return

        try:
            ftp.quit()
        except Exception as e:
            logger.debug(f"QUIT failed for {self._server}, closing socket: {e}")
            try:
                ftp.close()
            except Exception as close_error:
                logger.warning(f"Failed to close connection to {self._server}: {close_error}")

    def mark_lost(self, reason: str) -> None:
        """
        Flag the session as lost.

        The handle is released and every later operation raises
        FTPConnectionLostError until connect() is called again.

        Args:
            reason: Human readable reason
        """
        with self._lock:
            logger.warning(f"Connection to {self._server} lost: {reason}")
            self._lost_reason = reason
            self._state = ConnectionState.DISCONNECTED
            self._connected_at = None
            self._release_handle()

    def _require_logged_in(self, operation: str) -> None:
        """Raise unless the session is logged in."""
        if self._lost_reason is not None:
            raise FTPConnectionLostError(
                self._server.host, self._server.port, self._lost_reason
            )
        if self._state == ConnectionState.DISCONNECTED:
            raise FTPNotConnectedError(operation)
        if self._state != ConnectionState.LOGGED_IN:
            raise FTPStateError(operation, "logged in", self._state.value)

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Map transport failures to typed errors, flagging the session lost."""
        host, port = self._server.host, self._server.port
        try:
            yield
        except socket.timeout as e:
            self.mark_lost(f"{operation} timed out")
            raise FTPTimeoutError(host, port, operation, self._server.timeout) from e
        except error_temp as e:
            if _is_closing_reply(e):
                self.mark_lost(str(e))
                raise FTPConnectionLostError(host, port, str(e), e)
            raise FTPCommandError(operation, str(e), e)
        except (EOFError, OSError) as e:
            self.mark_lost(str(e) or "connection closed by server")
            raise FTPConnectionLostError(host, port, original_error=e)
        except (error_perm, error_reply, error_proto) as e:
            raise FTPCommandError(operation, str(e), e)
        else:
            self._update_activity()

    @contextmanager
    def _command(self, operation: str) -> Iterator[FTP]:
        """Hold the handle for a logged-in operation."""
        with self._lock:
            self._require_logged_in(operation)
            with self._translate_errors(operation):
                yield self._ftp

    def connect(self) -> None:
        """
        Establish the control connection.

        Does nothing if already connected.

        Raises:
            FTPConnectionError: If connection fails
            FTPTimeoutError: If connection times out
        """
        with self._lock:
            if self.is_connected:
                logger.info(f"Already connected to {self._server}")
                return

            server = self._server
            logger.info(f"Connecting to {server.host}:{server.port}")
            ftp = FTP()
            try:
                ftp.connect(host=server.host, port=server.port, timeout=server.timeout)
            except socket.timeout as e:
                raise FTPTimeoutError(server.host, server.port, "Connection", server.timeout) from e
            except (socket.error, OSError, EOFError) as e:
                raise FTPConnectionError(server.host, server.port, e)
            except (error_temp, error_perm, error_reply, error_proto) as e:
                raise FTPConnectionError(server.host, server.port, e)

            self._ftp = ftp
            self._lookup = FTPLookup(ftp)
            self._lost_reason = None
            self._state = ConnectionState.CONNECTED
            self._connected_at = datetime.now()
            self._update_activity()
            logger.info(f"Connected to {server.host}:{server.port}")

    def login(self) -> None:
        """
        Log in with the descriptor's credentials.

        Does nothing if already logged in.

        Raises:
            FTPNotConnectedError: If not connected
            FTPAuthenticationError: If the server rejects the credentials
        """
        with self._lock:
            if self._state == ConnectionState.LOGGED_IN:
                logger.info(f"Already logged in to {self._server}")
                return
            if self._lost_reason is not None or self._state == ConnectionState.DISCONNECTED:
                self._require_logged_in("Login")

            server = self._server
            with self._translate_errors("Login"):
                try:
                    self._ftp.login(user=server.user, passwd=server.password)
                except error_perm as e:
                    logger.error(f"Login rejected for user '{server.user}'")
                    raise FTPAuthenticationError(server.user, e)

                self._ftp.set_pasv(server.passive_mode)
                try:
                    self._ftp.voidcmd("TYPE I")
                except error_perm as e:
                    logger.debug(f"Server refused binary mode: {e}")

            self._state = ConnectionState.LOGGED_IN
            logger.info(f"Logged in to {server}")

    def logout(self) -> bool:
        """
        End the login session, keeping the control connection open.

        Returns:
            True if a user was logged out, False if nobody was logged in

        Raises:
            FTPConnectionLostError: If the control connection is gone
        """
        with self._lock:
            if self._state != ConnectionState.LOGGED_IN:
                logger.info(f"Logout requested but nobody is logged in to {self._server}")
                return False

            with self._command("Logout") as ftp:
                ftp.voidcmd("REIN")

            self._state = ConnectionState.CONNECTED
            logger.info(f"Logged out of {self._server}")
            return True

    def disconnect(self) -> None:
        """Close the FTP connection. Never raises."""
        with self._lock:
            if self._state == ConnectionState.LOGGED_IN:
                try:
                    self.logout()
                except FTPError as e:
                    logger.warning(f"Logout before disconnect failed: {e}")

            if self._ftp is not None:
                logger.info(f"Disconnecting from {self._server}")
            self._release_handle()
            self._state = ConnectionState.DISCONNECTED
            self._connected_at = None
            self._lost_reason = None

    def ensure_logged_in(self) -> None:
        """Connect and log in as needed."""
        with self._lock:
            if not self.is_connected:
                self.connect()
            if not self.is_logged_in:
                self.login()

    def create_temporary_connection(self) -> "FTPConnection":
        """
        Create an unconnected sibling on the same server.

        The sibling owns its own handle and state, so closing it never
        affects this connection. Also callable as
        ``FTPConnection.create_temporary_connection(parent)``.
        """
        return FTPConnection(self._server, self._idle_timeout, temporary=True)

    def check_connection(self) -> bool:
        """
        Check the server with NOOP without counting it as activity.

        A connection that is busy with another operation counts as alive.

        Returns:
            True if the session is alive, False if it was found lost
        """
        if not self.is_connected:
            return False
        if not self._lock.acquire(blocking=False):
            return True
        try:
            if self._ftp is None:
                return False
            try:
                self._ftp.voidcmd("NOOP")
            except all_errors as e:
                self.mark_lost(str(e) or "no reply to NOOP")
                return False
            return True
        finally:
            self._lock.release()

    def send_noop(self) -> None:
        """Send NOOP as user activity (keeps the session from idling out)."""
        with self._command("NOOP") as ftp:
            ftp.voidcmd("NOOP")

    def change_directory(self, path: str) -> bool:
        """
        Change current working directory.

        Returns:
            True on success, False if the server refused
        """
        with self._command("CWD") as ftp:
            try:
                ftp.cwd(path)
            except error_perm as e:
                logger.debug(f"CWD {path} refused: {e}")
                return False
            return True

    def change_to_parent_directory(self) -> bool:
        """Change to the parent of the working directory."""
        with self._command("CDUP") as ftp:
            try:
                ftp.cwd("..")
            except error_perm as e:
                logger.debug(f"CDUP refused: {e}")
                return False
            return True

    def get_working_directory(self) -> str:
        """Current remote working directory."""
        with self._command("PWD"):
            return self._lookup.get_working_directory()

    def list_files(self, path: Optional[str] = None) -> List[FTPFileEntry]:
        """
        List a remote directory.

        Args:
            path: Directory to list (defaults to the working directory)

        Raises:
            FTPCommandError: If the directory cannot be listed
        """
        with self._command("LIST"):
            if path is None:
                path = self._lookup.get_working_directory()
            return self._lookup.list_entries(path)

    def get_file_entry(self, path: str) -> Optional[FTPFileEntry]:
        """Listing entry for a single path, or None if it does not exist."""
        with self._command("LIST"):
            return self._lookup.get_entry(path)

    def remote_path_exists(self, path: str, directory: Optional[bool] = None) -> bool:
        """
        Check whether a remote path exists.

        Args:
            path: Remote path
            directory: True to require a directory, False to require a
                non-directory, None to accept either
        """
        with self._command("Existence check"):
            return self._lookup.path_exists(path, directory)

    def make_directory(self, path: str) -> bool:
        """Create a remote directory."""
        with self._command("MKD") as ftp:
            try:
                ftp.mkd(path)
            except error_perm as e:
                logger.debug(f"MKD {path} refused: {e}")
                return False
            logger.debug(f"Created directory {path}")
            return True

    def rename_file(self, source: str, destination: str) -> bool:
        """Rename a remote path."""
        with self._command("RNFR/RNTO") as ftp:
            try:
                ftp.rename(source, destination)
            except error_perm as e:
                logger.debug(f"Rename {source} -> {destination} refused: {e}")
                return False
            logger.debug(f"Renamed {source} to {destination}")
            return True

    def remove_file(self, path: str) -> bool:
        """Delete a remote file."""
        with self._command("DELE") as ftp:
            try:
                ftp.delete(path)
            except error_perm as e:
                logger.debug(f"DELE {path} refused: {e}")
                return False
            logger.debug(f"Deleted {path}")
            return True

    def remove_directory(self, path: str) -> bool:
        """Remove an empty remote directory."""
        with self._command("RMD") as ftp:
            try:
                ftp.rmd(path)
            except error_perm as e:
                logger.debug(f"RMD {path} refused: {e}")
                return False
            logger.debug(f"Removed directory {path}")
            return True

    def upload_stream(
        self,
        fp: BinaryIO,
        remote_path: str,
        callback: Optional[TransferCallback] = None
    ) -> None:
        """
        Store the contents of a binary stream at a remote path.

        Raises:
            FTPUploadError: If the server refuses the transfer
        """
        file_name = os.path.basename(getattr(fp, "name", "") or remote_path)
        with self._command("STOR") as ftp:
            try:
                ftp.storbinary(
                    f"STOR {remote_path}",
                    fp,
                    blocksize=self.BLOCK_SIZE,
                    callback=callback
                )
            except error_temp as e:
                if _is_closing_reply(e):
                    raise
                raise FTPUploadError(file_name, remote_path, e)
            except (error_perm, error_reply, error_proto) as e:
                raise FTPUploadError(file_name, remote_path, e)
        logger.debug(f"Uploaded {file_name} to {remote_path}")

    def upload_file(
        self,
        local_path: Union[str, os.PathLike],
        remote_dir: str,
        callback: Optional[TransferCallback] = None
    ) -> str:
        """
        Upload a local file into a remote directory.

        Args:
            local_path: Local file path
            remote_dir: Remote destination directory
            callback: Optional callback receiving each block sent

        Returns:
            Remote path of the uploaded file

        Raises:
            FTPUploadError: If the upload fails
        """
        file_name = os.path.basename(os.fspath(local_path))
        remote_path = posixpath.join(remote_dir, file_name)
        self._require_logged_in("Upload")

        try:
            fp = open(local_path, "rb")
        except OSError as e:
            raise FTPUploadError(file_name, remote_path, e)

        with fp:
            self.upload_stream(fp, remote_path, callback)
        return remote_path

    def download_stream(self, remote_path: str, fp: BinaryIO) -> None:
        """
        Retrieve a remote file into a binary stream.

        Raises:
            FTPDownloadError: If the server refuses the transfer
        """
        local_name = getattr(fp, "name", "<stream>")
        with self._command("RETR") as ftp:
            try:
                ftp.retrbinary(f"RETR {remote_path}", fp.write, blocksize=self.BLOCK_SIZE)
            except error_temp as e:
                if _is_closing_reply(e):
                    raise
                raise FTPDownloadError(remote_path, str(local_name), e)
            except (error_perm, error_reply, error_proto) as e:
                raise FTPDownloadError(remote_path, str(local_name), e)
        logger.debug(f"Downloaded {remote_path}")

    def download_file(self, remote_path: str, local_dir: Union[str, os.PathLike]) -> str:
        """
        Download a remote file into a local directory.

        A partially written local file is removed on failure.

        Returns:
            Local path of the downloaded file

        Raises:
            FTPDownloadError: If the download fails
        """
        local_path = os.path.join(os.fspath(local_dir), posixpath.basename(remote_path))
        self._require_logged_in("Download")

        try:
            fp = open(local_path, "wb")
        except OSError as e:
            raise FTPDownloadError(remote_path, local_path, e)

        try:
            with fp:
                self.download_stream(remote_path, fp)
        except FTPError:
            try:
                os.remove(local_path)
            except OSError as e:
                logger.warning(f"Could not remove partial download {local_path}: {e}")
            raise
        return local_path

    def get_size(self, path: str) -> Optional[int]:
        """Size of a remote file, or None if the server cannot tell."""
        with self._command("SIZE"):
            return self._lookup.get_size(path)

    def get_modification_time(self, path: str) -> Optional[str]:
        """Modification time of a remote path via MDTM, or None."""
        with self._command("MDTM"):
            return self._lookup.get_modification_time(path)

    def get_status(self) -> str:
        """Server status."""
        with self._command("STAT"):
            return self._lookup.get_status()

    def get_file_status(self, path: str) -> Optional[str]:
        """Server status for a path, or None if refused."""
        with self._command("STAT"):
            return self._lookup.get_file_status(path)

    def get_path_stats(self, path: str) -> FTPPathStats:
        """Modification time, status and size of a remote path."""
        with self._command("STAT"):
            return self._lookup.get_path_stats(path)

    def __repr__(self) -> str:
        kind = "temporary " if self._temporary else ""
        return f"<FTPConnection {kind}{self._server} {self._state.value}>"
