"""Integration tests for FTP workflows.

Tests connection lifecycle, remote file operations, cross-filesystem
copies and saves against a local pyftpdlib server.
"""

import os

import pytest

from simpleftp.config.settings import AppSettings
from simpleftp.filesystem.files import LocalFile, RemoteFile
from simpleftp.filesystem.filesystem import LocalFileSystem, RemoteFileSystem
from simpleftp.filesystem.paths import RemotePathResolver
from simpleftp.filesystem.service import FileOperation, FileService
from simpleftp.ftp.connection import ConnectionState, FTPConnection
from simpleftp.ftp.exceptions import FTPAuthenticationError, FTPConnectionLostError
from simpleftp.ftp.manager import FTPConnectionManager
from simpleftp.ftp.server import FTPServer
from simpleftp.uploads.uploader import RemoteFileUploader
from simpleftp.utils.threading import TaskStatus

from .mock_ftp_server import MockFTPServer


@pytest.fixture
def ftp_server():
    """Provide a running mock FTP server."""
    with MockFTPServer(port=21211) as server:
        yield server


@pytest.fixture
def descriptor(ftp_server):
    """Provide the descriptor of the mock server."""
    return FTPServer(
        host=ftp_server.host,
        user=ftp_server.username,
        password=ftp_server.password,
        port=ftp_server.port,
        timeout=10,
    )


@pytest.fixture
def connection(descriptor):
    """Provide a logged-in connection to the mock server."""
    conn = FTPConnection(descriptor)
    conn.ensure_logged_in()
    yield conn
    conn.disconnect()


@pytest.fixture
def settings(tmp_path):
    """Provide settings with a private staging directory."""
    return AppSettings(temp_directory=str(tmp_path / "temp"))


class TestConnectionWorkflow:
    """Integration tests for the connection lifecycle."""

    def test_connect_login_logout_disconnect(self, descriptor):
        """Test a full session cycle."""
        connection = FTPConnection(descriptor)

        connection.connect()
        assert connection.state == ConnectionState.CONNECTED

        connection.login()
        assert connection.state == ConnectionState.LOGGED_IN
        assert connection.get_working_directory() == "/"

        assert connection.logout() is True
        assert connection.state == ConnectionState.CONNECTED

        connection.disconnect()
        assert connection.state == ConnectionState.DISCONNECTED

    def test_wrong_password(self, ftp_server):
        """Test that bad credentials are reported."""
        connection = FTPConnection(FTPServer(
            host=ftp_server.host,
            user=ftp_server.username,
            password="wrong",
            port=ftp_server.port,
        ))
        connection.connect()

        with pytest.raises(FTPAuthenticationError):
            connection.login()
        connection.disconnect()

    def test_temporary_connection_is_independent(self, connection):
        """Test that closing a sibling leaves the parent usable."""
        temporary = connection.create_temporary_connection()
        temporary.ensure_logged_in()
        assert temporary.list_files("/docs")
        temporary.disconnect()

        assert temporary.is_connected is False
        assert connection.is_logged_in is True
        assert connection.remote_path_exists("/docs", directory=True) is True

    def test_server_shutdown_detected(self, ftp_server, connection):
        """Test that a vanished server marks the session lost."""
        ftp_server.stop()

        assert connection.check_connection() is False
        assert connection.lost_reason is not None
        with pytest.raises(FTPConnectionLostError):
            connection.list_files("/")


class TestRemoteOperations:
    """Integration tests for remote commands."""

    def test_list_files(self, connection):
        """Test listing a directory."""
        entries = {entry.name: entry for entry in connection.list_files("/docs")}

        assert set(entries) == {"drafts", "readme.txt"}
        assert entries["drafts"].is_directory is True
        assert entries["readme.txt"].is_file is True
        assert entries["readme.txt"].size == len("read me")
        assert entries["readme.txt"].path == "/docs/readme.txt"

    def test_listing_sees_new_files(self, ftp_server, connection):
        """Test that files created on the server show up in listings."""
        ftp_server.add_file("/archive/2024/report.csv", b"a,b\n")

        entry = connection.get_file_entry("/archive/2024/report.csv")
        assert entry is not None
        assert entry.size == 4
        assert connection.remote_path_exists("/archive/2024", directory=True) is True

    def test_path_queries(self, connection):
        """Test entry and existence lookups."""
        assert connection.get_file_entry("/docs/readme.txt").name == "readme.txt"
        assert connection.get_file_entry("/docs/missing.txt") is None
        assert connection.remote_path_exists("/docs", directory=True) is True
        assert connection.remote_path_exists("/docs/readme.txt", directory=True) is False
        assert connection.remote_path_exists("/docs/readme.txt", directory=False) is True
        assert connection.get_modification_time("/docs/readme.txt") is not None

    def test_directory_commands(self, ftp_server, connection):
        """Test creating, renaming and removing."""
        assert connection.make_directory("/uploads/new") is True
        assert connection.rename_file("/uploads/new", "/uploads/renamed") is True
        assert (ftp_server.root_dir / "uploads" / "renamed").is_dir()
        assert connection.remove_directory("/uploads/renamed") is True
        assert connection.remove_directory("/uploads/renamed") is False

    def test_upload_and_download(self, connection, tmp_path):
        """Test transferring a file both ways."""
        local_file = tmp_path / "data.bin"
        local_file.write_bytes(b"\x00\x01binary\xff" * 100)

        remote_path = connection.upload_file(local_file, "/uploads")
        assert remote_path == "/uploads/data.bin"
        # SIZE is only answered in binary mode, which the transfer switched to
        assert connection.get_size(remote_path) == local_file.stat().st_size

        download_dir = tmp_path / "downloaded"
        download_dir.mkdir()
        local_path = connection.download_file(remote_path, download_dir)

        with open(local_path, "rb") as f:
            assert f.read() == local_file.read_bytes()

    def test_resolve_remote_path(self, connection):
        """Test that the server canonicalizes parent segments."""
        resolver = RemotePathResolver(connection, "/docs/drafts")

        assert resolver.resolve_path("../readme.txt").path == "/docs/readme.txt"
        assert resolver.resolve_path("/docs/drafts/..").path == "/docs"
        assert connection.get_working_directory() == "/docs/drafts"


class TestFileSystemWorkflow:
    """Integration tests for copies, moves and removals."""

    def test_remote_copy_within_server(self, ftp_server, connection, settings):
        """Test that a same-server copy goes through staging and cleans up."""
        fs = RemoteFileSystem(connection, settings)
        copied = fs.copy_files(
            RemoteFile("/docs/readme.txt", connection),
            RemoteFile("/archive", connection),
        )

        assert copied.path == "/archive/readme.txt"
        assert (ftp_server.root_dir / "archive" / "readme.txt").read_text() == "read me"
        assert os.listdir(str(settings.staging_dir)) == []

    def test_remote_directory_copy(self, ftp_server, connection, settings):
        """Test that a directory tree is copied on the server."""
        fs = RemoteFileSystem(connection, settings)
        fs.copy_files(RemoteFile("/docs", connection), RemoteFile("/archive", connection))

        copied = ftp_server.root_dir / "archive" / "docs"
        assert (copied / "readme.txt").read_text() == "read me"
        assert (copied / "drafts" / "plan.txt").read_text() == "the plan"
        assert fs.has_file_operation_errors() is False

    def test_remote_move(self, ftp_server, connection, settings):
        """Test moving a file on the server."""
        fs = RemoteFileSystem(connection, settings)
        fs.move_files(RemoteFile("/docs/readme.txt", connection), RemoteFile("/archive", connection))

        assert (ftp_server.root_dir / "archive" / "readme.txt").exists()
        assert not (ftp_server.root_dir / "docs" / "readme.txt").exists()

    def test_download_to_local(self, connection, settings, tmp_path):
        """Test copying a remote tree to the local disk without staging."""
        local_dir = tmp_path / "local"
        local_dir.mkdir()

        fs = LocalFileSystem(connection, settings)
        fs.copy_files(RemoteFile("/docs", connection), LocalFile(str(local_dir)))

        assert (local_dir / "docs" / "drafts" / "plan.txt").read_text() == "the plan"
        assert os.listdir(str(settings.staging_dir)) == []

    def test_upload_from_local(self, ftp_server, connection, settings, tmp_path):
        """Test adding a local file to the server."""
        local_file = tmp_path / "local.txt"
        local_file.write_text("from disk")

        fs = RemoteFileSystem(connection, settings)
        added = fs.add_file(LocalFile(str(local_file)), "/uploads")

        assert added.path == "/uploads/local.txt"
        assert added.exists() is True
        assert (ftp_server.root_dir / "uploads" / "local.txt").read_text() == "from disk"

    def test_remove_remote_tree(self, ftp_server, connection, settings):
        """Test removing a non-empty remote directory."""
        fs = RemoteFileSystem(connection, settings)

        assert fs.remove_file("/docs") is True
        assert not (ftp_server.root_dir / "docs").exists()
        assert fs.file_exists("/docs") is False

    def test_file_service_copy(self, ftp_server, descriptor, settings):
        """Test a background copy through the connection manager."""
        manager = FTPConnectionManager(settings)
        shared = manager.create_shared_connection(descriptor)
        shared.ensure_logged_in()

        service = FileService(
            FileOperation.COPY,
            RemoteFile("/docs/readme.txt", shared),
            RemoteFile("/uploads", shared),
            settings=settings,
        )
        service.start()
        result = service.get_result(timeout=30)

        assert result.status == TaskStatus.COMPLETED
        assert (ftp_server.root_dir / "uploads" / "readme.txt").exists()
        assert shared.is_logged_in is True
        manager.shutdown()


class TestSaveWorkflow:
    """Integration tests for remote saves."""

    def test_save_replaces_remote_file(self, ftp_server, connection, settings):
        """Test that a save replaces content and removes the backup."""
        uploader = RemoteFileUploader("/docs/readme.txt", "new content", connection, settings)
        uploader.start()
        result = uploader.get_result(timeout=30).result

        assert result.success is True
        assert result.backup_path == "/docs/readme.txt~"
        assert (ftp_server.root_dir / "docs" / "readme.txt").read_text() == "new content"
        assert not (ftp_server.root_dir / "docs" / "readme.txt~").exists()

    def test_save_new_remote_file(self, ftp_server, connection, settings):
        """Test saving a file that does not exist yet."""
        uploader = RemoteFileUploader("/uploads/fresh.txt", b"fresh", connection, settings)
        uploader.start()
        result = uploader.get_result(timeout=30).result

        assert result.success is True
        assert result.backup_path == "/uploads/fresh.txt"
        assert (ftp_server.root_dir / "uploads" / "fresh.txt").read_bytes() == b"fresh"
