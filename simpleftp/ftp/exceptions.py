"""FTP-specific exceptions for SimpleFTP.

Custom exception hierarchy for connection lifecycle and remote
operations so callers can tell transport, credential, lifecycle and
command failures apart.
"""

from typing import Optional


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class FTPConnectionError(FTPError):
    """Failed to establish (or keep) the FTP control connection."""

    def __init__(self, host: str, port: int, original_error: Exception = None):
        self.host = host
        self.port = port
        message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error)


class FTPTimeoutError(FTPConnectionError):
    """FTP operation timed out."""

    def __init__(
        self,
        host: str,
        port: int,
        operation: str = "Operation",
        timeout: int = 30
    ):
        super().__init__(host, port)
        self.operation = operation
        self.timeout = timeout
        self.message = f"{operation} timed out after {timeout} seconds"


class FTPConnectionLostError(FTPConnectionError):
    """The session was flagged stale or the server closed the connection."""

    def __init__(
        self,
        host: str,
        port: int,
        reason: str = "connection closed by server",
        original_error: Exception = None
    ):
        super().__init__(host, port, original_error)
        self.reason = reason
        self.message = f"Connection to {host}:{port} lost ({reason})"


class FTPAuthenticationError(FTPError):
    """FTP authentication (login) failed."""

    def __init__(self, username: str, original_error: Exception = None):
        self.username = username
        message = f"Authentication failed for user '{username}'"
        super().__init__(message, original_error)


class FTPStateError(FTPError):
    """Operation attempted out of the required lifecycle order."""

    def __init__(self, operation: str, required_state: str, current_state: str):
        self.operation = operation
        self.required_state = required_state
        self.current_state = current_state
        message = (
            f"{operation} requires the connection to be {required_state} "
            f"(currently {current_state})"
        )
        super().__init__(message)


class FTPNotConnectedError(FTPStateError):
    """Operation attempted without an active FTP connection."""

    def __init__(self, operation: str = "Operation"):
        super().__init__(operation, "connected", "disconnected")
        self.message = f"{operation} requires an active FTP connection"


class FTPCommandError(FTPError):
    """The server answered a command with an unexpected reply."""

    def __init__(
        self,
        command: str,
        reply: Optional[str] = None,
        original_error: Exception = None
    ):
        self.command = command
        self.reply = reply
        message = f"Command '{command}' failed"
        if reply:
            message = f"{message} with reply '{reply}'"
        super().__init__(message, original_error)


class FTPUploadError(FTPError):
    """Failed to upload file via FTP."""

    def __init__(
        self,
        file_name: str,
        remote_path: str,
        original_error: Exception = None
    ):
        self.file_name = file_name
        self.remote_path = remote_path
        message = f"Failed to upload '{file_name}' to '{remote_path}'"
        super().__init__(message, original_error)


class FTPDownloadError(FTPError):
    """Failed to download file via FTP."""

    def __init__(
        self,
        remote_path: str,
        local_path: str,
        original_error: Exception = None
    ):
        self.remote_path = remote_path
        self.local_path = local_path
        message = f"Failed to download '{remote_path}' to '{local_path}'"
        super().__init__(message, original_error)
