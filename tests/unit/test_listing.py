"""Unit tests for the directory listing parser."""

from datetime import datetime

import pytest

from ftpqueue.ftp.listing import EntryType, FileEntry, parse_list_line, parse_listing


class TestUnixListing:
    """Tests for Unix long listing lines."""

    def test_file_with_year(self):
        """Test a file entry with a year timestamp."""
        entry = parse_list_line("-rw-r--r--   1 alice    staff        1234 Mar 05  2023 report.csv")

        assert isinstance(entry, FileEntry)
        assert entry.name == "report.csv"
        assert entry.type == EntryType.FILE
        assert entry.size == 1234
        assert entry.owner == "alice"
        assert entry.group == "staff"
        assert entry.last_modified == datetime(2023, 3, 5)
        assert entry.permissions.user == "rw"
        assert entry.permissions.group == "r"
        assert entry.permissions.other == "r"

    def test_directory_with_time(self):
        """Test a directory entry with an hour:minute timestamp."""
        entry = parse_list_line("drwxr-x---   3 ftp      ftp          4096 Oct 12 09:15 incoming")

        assert entry.type == EntryType.DIRECTORY
        assert entry.is_directory is True
        assert entry.last_modified == datetime(datetime.now().year, 10, 12, 9, 15)
        assert entry.permissions.other == ""

    def test_symlink_target(self):
        """Test that symlink targets are split from the name."""
        entry = parse_list_line("lrwxrwxrwx   1 root     root            7 Jan 01  2024 latest -> v1.2.0")

        assert entry.type == EntryType.SYMLINK
        assert entry.name == "latest"
        assert entry.target == "v1.2.0"

    def test_name_with_spaces(self):
        """Test that names keep their inner spaces."""
        entry = parse_list_line("-rw-r--r--   1 ftp      ftp            10 Jan 01  2024 my notes.txt")

        assert entry.name == "my notes.txt"

    def test_to_dict(self):
        """Test the summary record."""
        entry = parse_list_line("-rw-r--r--   1 ftp      ftp            10 Jan 01  2024 a.txt")

        assert entry.to_dict() == {
            "name": "a.txt",
            "type": "file",
            "size": 10,
            "lastModified": datetime(2024, 1, 1),
        }


class TestMsdosListing:
    """Tests for MS-DOS style listing lines."""

    def test_file(self):
        """Test a file entry with a PM time."""
        entry = parse_list_line("03-05-23  02:30PM                 1234 report.csv")

        assert entry.type == EntryType.FILE
        assert entry.size == 1234
        assert entry.name == "report.csv"
        assert entry.last_modified == datetime(2023, 3, 5, 14, 30)

    def test_directory(self):
        """Test a directory entry."""
        entry = parse_list_line("12-31-99  12:05AM       <DIR>          archive")

        assert entry.type == EntryType.DIRECTORY
        assert entry.size == 0
        assert entry.last_modified == datetime(1999, 12, 31, 0, 5)


class TestUnrecognisedLines:
    """Tests for best-effort parsing."""

    @pytest.mark.parametrize("line", [
        "total 42",
        "this is not a listing",
        "-rw-r--r--   1 ftp ftp 10 Foo 01  2024 bad-month.txt",
        "02-30-23  10:00AM                 1 bad-date.txt",
    ])
    def test_returned_unchanged(self, line):
        """Test that unknown formats come back as the original line."""
        assert parse_list_line(line) == line

    def test_mixed_listing(self):
        """Test a listing mixing entries, noise and blank lines."""
        listing = (
            "total 8\r\n"
            "drwxr-xr-x   2 ftp      ftp          4096 Jan 01  2024 docs\r\n"
            "\r\n"
            "03-05-23  02:30PM                 1234 report.csv\r\n"
        )
        entries = parse_listing(listing)

        assert entries[0] == "total 8"
        assert entries[1].name == "docs"
        assert entries[2].name == "report.csv"
        assert len(entries) == 3

    def test_iterable_input(self):
        """Test parsing an already split listing."""
        entries = parse_listing(["", " -rw-r--r--   1 ftp ftp 10 Jan 01  2024 a.txt"])

        assert len(entries) == 1
        assert entries[0].name == "a.txt"
