"""Pytest configuration and shared fixtures for SimpleFTP tests."""

import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch

from simpleftp.config.settings import AppSettings
from simpleftp.ftp.server import FTPServer


# Test constants
TEST_FTP_HOST = "127.0.0.1"
TEST_FTP_PORT = 2121
TEST_FTP_USER = "testuser"
TEST_FTP_PASS = "testpass"


@pytest.fixture
def server() -> FTPServer:
    """Provide a server descriptor for tests."""
    return FTPServer(
        host=TEST_FTP_HOST,
        user=TEST_FTP_USER,
        password=TEST_FTP_PASS,
        port=TEST_FTP_PORT,
    )


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    """Provide settings whose staging directory lives under tmp_path."""
    return AppSettings(temp_directory=str(tmp_path / "temp"))


@pytest.fixture
def mock_ftp():
    """Patch ftplib.FTP in the connection module, yielding the handle mock."""
    with patch("simpleftp.ftp.connection.FTP") as mock_ftp_class:
        handle = MagicMock()
        mock_ftp_class.return_value = handle
        yield handle


@pytest.fixture
def temp_settings_file(tmp_path: Path) -> Path:
    """Provide a temporary settings file path for testing."""
    return tmp_path / "settings.json"
