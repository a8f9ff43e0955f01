"""Directory listing parser for ftpqueue.

Turns LIST / STAT output into FileEntry records. Unix long listings and
MS-DOS style listings are recognised; any other line is returned as-is
so callers can still inspect it.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional, Union

UNIX_LINE = re.compile(
    r"^(?P<type>[\-ld])(?P<permission>(?:[\-r][\-w][\-xsStT]){3})\s+"
    r"(?P<inodes>\d+)\s+(?P<owner>\S+)\s+(?P<group>\S+)\s+(?P<size>\d+)\s+"
    r"(?P<timestamp>"
    r"(?P<month1>\w{3})\s+(?P<date1>\d{1,2})\s+(?P<hour>\d{1,2}):(?P<minute>\d{2})"
    r"|(?P<month2>\w{3})\s+(?P<date2>\d{1,2})\s+(?P<year>\d{4})"
    r")\s+(?P<name>.+)$"
)

MSDOS_LINE = re.compile(
    r"^(?P<month>\d{2})[\-/](?P<date>\d{2})[\-/](?P<year>\d{2,4})\s+"
    r"(?P<hour>\d{2}):(?P<minute>\d{2})\s?(?P<ampm>[AaPp][Mm]?)\s+"
    r"(?:(?P<size>\d+)|(?P<isdir><DIR>))\s+(?P<name>.+)$"
)

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


class EntryType(Enum):
    """Kind of directory entry."""
    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


UNIX_TYPES = {
    "-": EntryType.FILE,
    "d": EntryType.DIRECTORY,
    "l": EntryType.SYMLINK,
}


@dataclass
class Permissions:
    """Unix permission triad, e.g. user="rwx", group="rx", other="r"."""
    user: str
    group: str
    other: str


@dataclass
class FileEntry:
    """One parsed line of a directory listing."""
    name: str
    type: EntryType
    size: int = 0
    last_modified: Optional[datetime] = None
    owner: Optional[str] = None
    group: Optional[str] = None
    permissions: Optional[Permissions] = None
    target: Optional[str] = None

    @property
    def is_directory(self) -> bool:
        """True for directories."""
        return self.type == EntryType.DIRECTORY

    def to_dict(self) -> dict:
        """Summary used by listing and status operations."""
        return {
            "name": self.name,
            "type": self.type.value,
            "size": self.size,
            "lastModified": self.last_modified,
        }


def _parse_unix(match: "re.Match") -> FileEntry:
    permission = match.group("permission")
    month1 = match.group("month1")
    if month1 is not None:
        modified = datetime(
            datetime.now().year,
            MONTHS[month1.lower()],
            int(match.group("date1")),
            int(match.group("hour")),
            int(match.group("minute")),
        )
    else:
        modified = datetime(
            int(match.group("year")),
            MONTHS[match.group("month2").lower()],
            int(match.group("date2")),
        )

    entry_type = UNIX_TYPES[match.group("type")]
    name = match.group("name")
    target = None
    if entry_type == EntryType.SYMLINK and " -> " in name:
        name, target = name.split(" -> ", 1)

    return FileEntry(
        name=name,
        type=entry_type,
        size=int(match.group("size")),
        last_modified=modified,
        owner=match.group("owner"),
        group=match.group("group"),
        permissions=Permissions(
            user=permission[0:3].replace("-", ""),
            group=permission[3:6].replace("-", ""),
            other=permission[6:9].replace("-", ""),
        ),
        target=target,
    )


def _parse_msdos(match: "re.Match") -> FileEntry:
    year = int(match.group("year"))
    if year < 100:
        year += 2000 if year < 70 else 1900

    hour = int(match.group("hour"))
    meridiem = match.group("ampm")[0].lower()
    if meridiem == "p" and hour < 12:
        hour += 12
    elif meridiem == "a" and hour == 12:
        hour = 0

    is_dir = match.group("isdir") is not None
    return FileEntry(
        name=match.group("name"),
        type=EntryType.DIRECTORY if is_dir else EntryType.FILE,
        size=0 if is_dir else int(match.group("size")),
        last_modified=datetime(
            year,
            int(match.group("month")),
            int(match.group("date")),
            hour,
            int(match.group("minute")),
        ),
    )


def parse_list_line(line: str) -> Union[FileEntry, str]:
    """
    Parse a single listing line.

    Args:
        line: One line of LIST or STAT output

    Returns:
        FileEntry, or the line unchanged if its format is not recognised
    """
    text = line.strip()
    try:
        match = UNIX_LINE.match(text)
        if match:
            return _parse_unix(match)
        match = MSDOS_LINE.match(text)
        if match:
            return _parse_msdos(match)
    except (KeyError, ValueError):
        # Unknown month name or impossible date
        pass
    return line


def parse_listing(listing: Union[str, Iterable[str]]) -> List[Union[FileEntry, str]]:
    """
    Parse a whole listing, one entry per non-empty line.

    Args:
        listing: Raw listing text or an iterable of lines

    Returns:
        FileEntry objects, with unrecognised lines kept as strings
    """
    lines = listing.splitlines() if isinstance(listing, str) else listing
    return [parse_list_line(line) for line in lines if line.strip()]
