"""Unit tests for LIST parsing and FTPLookup queries."""

from ftplib import error_perm
from unittest.mock import MagicMock

import pytest

from simpleftp.ftp.lookup import (
    FTPFileType,
    FTPLookup,
    normalize_remote_path,
    parse_list_line,
)


LISTINGS = {
    "/": [
        "drwxr-xr-x   3 owner group     4096 Jan  1 12:00 home",
    ],
    "/home": [
        "drwxr-xr-x   2 owner group     4096 Jan 01 12:00 .",
        "drwxr-xr-x   2 owner group     4096 Jan 01 12:00 ..",
        "drwxr-xr-x   2 owner group     4096 Jan 01 12:00 docs",
        "-rw-r--r--   1 owner group      120 Feb 03  2023 notes.txt",
        "lrwxrwxrwx   1 owner group        4 Mar 10 08:15 latest -> docs",
    ],
}


@pytest.fixture
def ftp():
    """Provide a mock ftplib handle serving LISTINGS."""
    handle = MagicMock()

    def retrlines(command, callback):
        path = command[len("LIST "):]
        if path not in LISTINGS:
            raise error_perm("550 No such file or directory")
        for line in LISTINGS[path]:
            callback(line)

    handle.retrlines.side_effect = retrlines
    handle.pwd.return_value = "/home"
    return handle


class TestParseListLine:
    """Tests for parse_list_line."""

    def test_unix_directory(self):
        """Test a Unix directory line."""
        entry = parse_list_line("drwxr-xr-x   2 owner group 4096 Jan 01 12:00 docs", "/home")
        assert entry.name == "docs"
        assert entry.path == "/home/docs"
        assert entry.file_type == FTPFileType.DIRECTORY
        assert entry.is_directory is True
        assert entry.permissions == "drwxr-xr-x"

    def test_unix_file_with_year(self):
        """Test a Unix file line with a year instead of a time."""
        entry = parse_list_line("-rw-r--r--   1 owner group 120 Feb 03  2023 notes.txt", "/")
        assert entry.path == "/notes.txt"
        assert entry.size == 120
        assert entry.is_file is True
        assert entry.modification_time == "Feb 03 2023"

    def test_unix_symbolic_link(self):
        """Test that link names and targets are split."""
        entry = parse_list_line("lrwxrwxrwx 1 owner group 4 Mar 10 08:15 latest -> docs", "/home")
        assert entry.name == "latest"
        assert entry.link_target == "docs"
        assert entry.is_symbolic_link is True

    def test_name_with_spaces(self):
        """Test that names keep their inner spaces."""
        entry = parse_list_line("-rw-r--r-- 1 owner group 5 Jan 01 12:00 my file.txt", "/")
        assert entry.name == "my file.txt"

    def test_listing_without_group(self):
        """Test a line that omits the group column."""
        entry = parse_list_line("-rw-r--r-- 1 owner 5 Jan 01 12:00 a.txt", "/")
        assert entry.size == 5
        assert entry.name == "a.txt"

    def test_dos_directory(self):
        """Test an MS-DOS directory line."""
        entry = parse_list_line("01-01-24  12:00PM       <DIR>          Windows", "/")
        assert entry.file_type == FTPFileType.DIRECTORY
        assert entry.size == -1
        assert entry.modification_time == "01-01-24 12:00PM"

    def test_dos_file(self):
        """Test an MS-DOS file line."""
        entry = parse_list_line("02-14-2024  09:30AM              2048 report.doc", "/docs")
        assert entry.file_type == FTPFileType.FILE
        assert entry.size == 2048
        assert entry.path == "/docs/report.doc"

    def test_unrecognised_line(self):
        """Test that unknown formats are skipped."""
        assert parse_list_line("total 12", "/") is None


class TestNormalizeRemotePath:
    """Tests for normalize_remote_path."""

    def test_trailing_separator(self):
        """Test trailing separators are stripped except for the root."""
        assert normalize_remote_path("/home/") == "/home"
        assert normalize_remote_path("/") == "/"
        assert normalize_remote_path("//") == "/"


class TestFTPLookup:
    """Tests for FTPLookup."""

    def test_list_entries_skips_dot_entries(self, ftp):
        """Test that . and .. are not returned."""
        names = [entry.name for entry in FTPLookup(ftp).list_entries("/home/")]
        assert names == ["docs", "notes.txt", "latest"]

    def test_get_entry(self, ftp):
        """Test single entry lookup through the parent listing."""
        entry = FTPLookup(ftp).get_entry("/home/notes.txt")
        assert entry.path == "/home/notes.txt"

    def test_get_entry_root(self, ftp):
        """Test that the root is synthesized without listing."""
        entry = FTPLookup(ftp).get_entry("/")
        assert entry.is_directory is True
        ftp.retrlines.assert_not_called()

    def test_get_entry_missing(self, ftp):
        """Test lookups of missing names and unlistable parents."""
        lookup = FTPLookup(ftp)
        assert lookup.get_entry("/home/missing") is None
        assert lookup.get_entry("/nowhere/file") is None

    def test_is_directory_restores_working_directory(self, ftp):
        """Test that probing a directory changes back afterwards."""
        assert FTPLookup(ftp).is_directory("/home/docs") is True
        assert ftp.cwd.call_args_list[-1][0][0] == "/home"

    def test_is_directory_refused(self, ftp):
        """Test that a refused CWD means not a directory."""
        ftp.cwd.side_effect = error_perm("550 Not a directory")
        assert FTPLookup(ftp).is_directory("/home/notes.txt") is False

    def test_path_exists_any(self, ftp):
        """Test existence without a type requirement."""
        lookup = FTPLookup(ftp)
        assert lookup.path_exists("/home/notes.txt") is True

        ftp.cwd.side_effect = error_perm("550 No such directory")
        assert lookup.path_exists("/home/missing") is False

    def test_path_exists_file_only(self, ftp):
        """Test that directory=False rejects directories."""
        lookup = FTPLookup(ftp)
        assert lookup.path_exists("/home/notes.txt", directory=False) is True
        assert lookup.path_exists("/home/docs", directory=False) is False

    def test_path_exists_link_to_directory(self, ftp):
        """Test that a link resolving to a directory is not a file."""
        assert FTPLookup(ftp).path_exists("/home/latest", directory=False) is False

    def test_get_modification_time_unparseable(self, ftp):
        """Test that an odd MDTM reply gives None."""
        ftp.sendcmd.return_value = "213 yesterday"
        assert FTPLookup(ftp).get_modification_time("/home/notes.txt") is None

    def test_get_path_stats(self, ftp):
        """Test combined stats collection."""
        ftp.sendcmd.side_effect = ["213 20230203101112", "213-status\n213 End"]
        ftp.size.return_value = 120

        stats = FTPLookup(ftp).get_path_stats("/home/notes.txt")

        assert stats.modification_time == "10:11:12 03/02/2023"
        assert stats.status.startswith("213")
        assert stats.size == 120
