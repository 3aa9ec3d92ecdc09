"""Unit tests for path, permission and staging helpers."""

import os

import pytest

from simpleftp.filesystem.exceptions import FileSystemError
from simpleftp.filesystem.utils import (
    add_pwd_to_path,
    create_staging_dir,
    get_parent_path,
    get_root_path,
    octal_to_permissions,
    permissions_to_octal,
    remove_staging_dir,
)


class TestPaths:
    """Tests for path helpers."""

    @pytest.mark.parametrize("path, expected", [
        ("/a/b", "/a"),
        ("/a/b/", "/a"),
        ("/a", "/"),
        ("/", "/"),
    ])
    def test_remote_parent(self, path, expected):
        """Test remote parent paths (the root is its own parent)."""
        assert get_parent_path(path, local=False) == expected

    def test_local_parent(self, tmp_path):
        """Test local parent paths."""
        assert get_parent_path(str(tmp_path / "child"), local=True) == str(tmp_path)

    def test_remote_root(self):
        """Test the remote root."""
        assert get_root_path(local=False) == "/"

    def test_local_root(self):
        """Test that the local root ends with the separator."""
        assert get_root_path(local=True).endswith(os.sep)

    def test_add_pwd_to_path(self):
        """Test prefixing relative paths with the working dir."""
        assert add_pwd_to_path("/home", "a.txt") == "/home/a.txt"
        assert add_pwd_to_path("/", "a.txt") == "/a.txt"
        assert add_pwd_to_path("/home", "/etc/a") == "/etc/a"


class TestPermissions:
    """Tests for permission string conversions."""

    @pytest.mark.parametrize("permissions, octal", [
        ("drwxr-xr-x", "755"),
        ("-rw-r--r--", "644"),
        ("lrwxrwxrwx", "777"),
        ("-rwsr-x--T", "750"),
        ("----------", "000"),
    ])
    def test_permissions_to_octal(self, permissions, octal):
        """Test string to octal conversion."""
        assert permissions_to_octal(permissions) == octal

    @pytest.mark.parametrize("permissions", ["rwxr-xr-x", "qrwxr-xr-x", "-rwxr-xr-q"])
    def test_permissions_to_octal_invalid(self, permissions):
        """Test that malformed strings raise ValueError."""
        with pytest.raises(ValueError):
            permissions_to_octal(permissions)

    def test_octal_to_permissions(self):
        """Test octal to string conversion."""
        assert octal_to_permissions("755") == "rwxr-xr-x"
        assert octal_to_permissions("640", "-") == "-rw-r-----"

    def test_octal_to_permissions_invalid(self):
        """Test that a bad octal raises ValueError."""
        with pytest.raises(ValueError):
            octal_to_permissions("89")


class TestStaging:
    """Tests for staging directory helpers."""

    def test_create_and_remove(self, settings):
        """Test that operation directories live under the staging dir."""
        path = create_staging_dir(settings)

        assert os.path.isdir(path)
        assert os.path.dirname(path) == str(settings.staging_dir)

        assert remove_staging_dir(path) is None
        assert not os.path.exists(path)

    def test_remove_missing_directory(self, tmp_path):
        """Test that removal failures are reported, not raised."""
        assert remove_staging_dir(str(tmp_path / "missing")) is not None

    def test_create_failure(self, settings, monkeypatch):
        """Test that creation failures raise FileSystemError."""
        def fail(**kwargs):
            raise OSError("disk full")
        monkeypatch.setattr("simpleftp.filesystem.utils.tempfile.mkdtemp", fail)

        with pytest.raises(FileSystemError):
            create_staging_dir(settings)
