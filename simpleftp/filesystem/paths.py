"""Path resolution for SimpleFTP.

Turns possibly relative, possibly non-canonical paths into absolute
canonical ones, for the local disk, for the remote server (by asking
it), or purely symbolically.
"""

import os
import posixpath
from dataclasses import dataclass
from typing import List, Optional

from simpleftp.filesystem.exceptions import PathResolverError
from simpleftp.filesystem.utils import add_pwd_to_path, get_parent_path
from simpleftp.ftp.connection import FTPConnection
from simpleftp.ftp.exceptions import FTPError


@dataclass(frozen=True)
class ResolvedPath:
    """A resolved path and whether the input was already absolute."""
    path: str
    was_absolute: bool


def _has_dot_segments(path: str, separator: str) -> bool:
    """True if any segment of the path is "." or ".."."""
    segments = path.split(separator)
    if separator != "/":
        segments = [s for part in segments for s in part.split("/")]
    return "." in segments or ".." in segments


class LocalPathResolver:
    """Resolves local paths against a working directory."""

    def __init__(self, working_dir: Optional[str] = None):
        """
        Initialize the resolver.

        Args:
            working_dir: Directory relative paths are resolved against
                (defaults to the process working directory)
        """
        self._working_dir = os.path.abspath(working_dir or os.getcwd())

    @property
    def working_dir(self) -> str:
        """Directory relative paths are resolved against."""
        return self._working_dir

    def resolve_path(self, path: str) -> ResolvedPath:
        """
        Resolve a local path.

        Relative paths are prefixed with the working directory. Paths
        containing "." or ".." segments are canonicalized by the
        operating system, which also follows symbolic links.

        Raises:
            PathResolverError: If the path is empty or cannot be resolved
        """
        if not path:
            raise PathResolverError(path, "empty path")

        was_absolute = os.path.isabs(path)
        if not was_absolute:
            path = add_pwd_to_path(self._working_dir, path, os.sep)

        if _has_dot_segments(path, os.sep):
            try:
                path = os.path.realpath(path)
            except (OSError, ValueError) as e:
                raise PathResolverError(path, original_error=e)

        return ResolvedPath(path, was_absolute)


class SymbolicPathResolver:
    """
    Normalizes absolute paths purely as strings.

    Neither the disk nor the server is consulted, so ".." after a
    symbolic link goes to the link's parent.
    """

    def __init__(self, separator: str = "/", root: Optional[str] = None):
        """
        Initialize the resolver.

        Args:
            separator: Path separator
            root: Root prefix (defaults to the separator)
        """
        self._separator = separator
        self._root = root or separator

    def _split(self, path: str) -> List[str]:
        if path.startswith(self._root):
            path = path[len(self._root):]
        return [segment for segment in path.split(self._separator) if segment]

    def resolve_path(self, path: str) -> ResolvedPath:
        """
        Normalize an absolute path.

        Raises:
            ValueError: If the path is not absolute
        """
        if not path.startswith(self._root):
            raise ValueError(
                f"The path {path} is not absolute. SymbolicPathResolver expects an absolute path"
            )

        components: List[str] = []
        for segment in self._split(path):
            if segment == "..":
                if components:
                    components.pop()
            elif segment != ".":
                components.append(segment)

        root = self._root
        if not root.endswith(self._separator):
            root += self._separator
        resolved = root + self._separator.join(components)
        if len(resolved) > 1 and resolved.endswith(self._separator):
            resolved = resolved[:-1]
        return ResolvedPath(resolved, True)


class RemotePathResolver:
    """Resolves remote paths by letting the server follow them."""

    def __init__(self, connection: FTPConnection, working_dir: str, path_exists: bool = True):
        """
        Initialize the resolver.

        Args:
            connection: Logged-in connection
            working_dir: Remote directory relative paths are resolved against
            path_exists: True if the paths being resolved are expected to
                exist (their type is then checked on the server)

        Raises:
            ValueError: If the connection is not logged in
        """
        if not connection.is_logged_in:
            raise ValueError("The provided connection must be connected and logged in")
        self._connection = connection
        self._working_dir = working_dir
        self._path_exists = path_exists

    def _canonicalize(self, path: str) -> str:
        """Change into the path's directory and read back where the server put us."""
        connection = self._connection
        file_name = posixpath.basename(path)

        if file_name in (".", ".."):
            is_file = False
        elif self._path_exists:
            is_file = connection.remote_path_exists(path, directory=False)
        else:
            is_file = True
        target_dir = get_parent_path(path, local=False) if is_file else path

        if not connection.change_directory(target_dir):
            raise PathResolverError(path, f"the path {target_dir} does not exist")
        try:
            resolved = connection.get_working_directory()
        finally:
            connection.change_directory(self._working_dir)

        if is_file:
            resolved = posixpath.join(resolved, file_name)
        return resolved

    def resolve_path(self, path: str) -> ResolvedPath:
        """
        Resolve a remote path.

        Raises:
            PathResolverError: If the server cannot resolve the path
        """
        if not path:
            raise PathResolverError(path, "empty path")
        if path.startswith("./"):
            path = path[2:]

        was_absolute = path.startswith("/")
        if not was_absolute:
            path = add_pwd_to_path(self._working_dir, path)

        if _has_dot_segments(path, "/"):
            try:
                path = self._canonicalize(path)
            except FTPError as e:
                raise PathResolverError(path, original_error=e)

        return ResolvedPath(path, was_absolute)
