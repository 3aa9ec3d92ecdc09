"""File system exceptions for SimpleFTP."""

from typing import Optional


class FileSystemError(Exception):
    """Base exception for file system errors on either substrate."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class FileArgumentError(FileSystemError, ValueError):
    """Invalid arguments (wrong variant, destination not a directory, ...)."""


class BackupError(FileSystemError):
    """A backup of a save target could not be created."""

    def __init__(self, path: str, original_error: Exception = None):
        self.path = path
        super().__init__(f"Failed to back up '{path}'", original_error)


class PartialFailureError(FileSystemError):
    """
    A move left the source in place after copying.

    Raised when entries of a directory failed to copy, or when the
    source could not be deleted. The copy is kept; ``destination`` is
    the file that now exists at the destination.
    """

    def __init__(self, message: str, destination=None, original_error: Exception = None):
        self.destination = destination
        super().__init__(message, original_error)


class PathResolverError(FileSystemError):
    """A path could not be resolved."""

    def __init__(self, path: str, reason: Optional[str] = None, original_error: Exception = None):
        self.path = path
        message = f"Failed to resolve path '{path}'"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, original_error)
