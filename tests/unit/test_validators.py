"""Unit tests for input validators."""

import pytest

from simpleftp.ftp.server import FTPServer
from simpleftp.utils.validators import (
    validate_host,
    validate_octal,
    validate_port,
    validate_remote_path,
    validate_timeout,
    validate_user,
)


class TestHostValidation:
    """Tests for host validation."""

    @pytest.mark.parametrize("host", ["192.168.1.1", "::1", "ftp.example.com", "localhost"])
    def test_valid_hosts(self, host):
        """Test accepted hosts."""
        assert validate_host(host) == (True, None)

    def test_empty_host(self):
        """Test that an empty host is rejected."""
        assert validate_host("  ") == (False, "Host is required")

    @pytest.mark.parametrize("host", ["not a host!", "256.1.1.1", "-bad.example.com", "bad-.example.com"])
    def test_invalid_hosts(self, host):
        """Test that malformed hosts are rejected."""
        is_valid, error = validate_host(host)
        assert is_valid is False
        assert "Invalid host" in error


class TestUserValidation:
    """Tests for login name validation."""

    def test_valid_user(self):
        assert validate_user("anonymous") == (True, None)

    def test_empty_user(self):
        assert validate_user("") == (False, "User is required")

    def test_user_with_line_break(self):
        """Test that a user cannot smuggle a second command."""
        assert validate_user("bob\r\nDELE x")[0] is False

    def test_server_rejects_bad_user(self):
        """Test that the descriptor raises for an invalid user."""
        with pytest.raises(ValueError, match="line breaks"):
            FTPServer(host="localhost", user="bob\nPASS x")


class TestNumberValidation:
    """Tests for port and timeout validation."""

    def test_port_bounds(self):
        """Test port range checks."""
        assert validate_port(21) == (True, None)
        assert validate_port("2121") == (True, None)
        assert validate_port(0)[0] is False
        assert validate_port(65536)[0] is False

    @pytest.mark.parametrize("port", ["abc", None, True])
    def test_port_not_a_number(self, port):
        """Test that a non-numeric port is rejected."""
        assert validate_port(port) == (False, "Port must be a number")

    def test_timeout_bounds(self):
        """Test timeout range checks."""
        assert validate_timeout(30) == (True, None)
        assert validate_timeout(0.5)[0] is False
        assert validate_timeout(601)[0] is False


class TestPathValidation:
    """Tests for remote path and octal validation."""

    def test_remote_path(self):
        """Test that remote paths must be absolute."""
        assert validate_remote_path("/data") == (True, None)
        assert validate_remote_path("data")[0] is False
        assert validate_remote_path("")[0] is False

    def test_remote_path_control_characters(self):
        """Test that paths cannot contain line breaks."""
        assert validate_remote_path("/data\r\nDELE /x")[0] is False

    @pytest.mark.parametrize("octal", ["755", "000", "777"])
    def test_valid_octal(self, octal):
        """Test accepted octals."""
        assert validate_octal(octal) == (True, None)

    @pytest.mark.parametrize("octal", ["75", "7555", "78a", "800", ""])
    def test_invalid_octal(self, octal):
        """Test rejected octals."""
        assert validate_octal(octal)[0] is False
