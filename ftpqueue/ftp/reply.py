"""Reply framing for the FTP control connection.

The control connection is a byte stream without message boundaries.
ReplyFramer scans it line by line and yields a Reply once the closing
line of a (possibly multi-line) reply has arrived.
"""

import codecs
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Union

logger = logging.getLogger("ftpqueue.reply")

# "ddd-" opens a multi-line reply, "ddd " or a bare "ddd" closes one
_CODE_LINE = re.compile(r"^(?P<code>\d{3})(?P<sep>[ -]|$)")


@dataclass(frozen=True)
class Reply:
    """
    A complete server reply.

    message holds every line of the reply with the code markers removed;
    body holds only the lines between the opening and the closing line
    (empty for single-line replies).
    """
    code: int
    message: str
    body: str

    @property
    def is_preliminary(self) -> bool:
        """True for 1xx replies (more replies will follow)."""
        return 100 <= self.code < 200

    @property
    def is_error(self) -> bool:
        """True for 4xx and 5xx replies."""
        return self.code >= 400

    @property
    def lines(self) -> List[str]:
        """Body split into lines."""
        return self.body.splitlines()


class _Incomplete:
    """Marker returned while a reply is still being received."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "INCOMPLETE"


INCOMPLETE = _Incomplete()


class ReplyFramer:
    """Incremental scanner that turns control-channel bytes into replies."""

    def __init__(self, encoding: str = "latin-1"):
        """
        Initialize the framer.

        Args:
            encoding: Text encoding of the control connection; bytes it
                cannot decode become U+FFFD instead of failing the read
        """
        # Multi-byte characters may be split across reads
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""
        self._open_code: Optional[str] = None
        self._lines: List[str] = []

    @property
    def open_code(self) -> Optional[str]:
        """Code of the multi-line reply currently open, if any."""
        return self._open_code

    @property
    def buffered(self) -> str:
        """Text received but not yet terminated by a newline."""
        return self._buffer

    def reset(self) -> None:
        """Discard everything received so far."""
        self._buffer = ""
        self._decoder.reset()
        self._open_code = None
        self._lines = []

    def consume(self, data: bytes) -> Union[Reply, _Incomplete]:
        """
        Feed bytes from the control socket.

        Args:
            data: Raw bytes (may be empty to drain buffered lines)

        Returns:
            The first complete Reply, or INCOMPLETE if more bytes are needed.
            Text after the closing line stays buffered for the next call.
        """
        if data:
            self._buffer += self._decoder.decode(data)

        while True:
            newline = self._buffer.find("\n")
            if newline == -1:
                return INCOMPLETE

            line = self._buffer[:newline].rstrip("\r")
            self._buffer = self._buffer[newline + 1:]

            reply = self._scan_line(line)
            if reply is not None:
                return reply

    def _scan_line(self, line: str) -> Optional[Reply]:
        self._lines.append(line)
        match = _CODE_LINE.match(line)
        if match is None:
            return None

        code = match.group("code")
        if self._open_code is None:
            if match.group("sep") == "-":
                self._open_code = code
                return None
            return self._complete(code, line)

        if code == self._open_code and match.group("sep") != "-":
            return self._complete(code, line)
        return None

    def _complete(self, code: str, closing_line: str) -> Reply:
        stripped = [self._strip_marker(code, line) for line in self._lines]
        reply = Reply(
            code=int(code),
            message="\n".join(stripped).strip(),
            body="\n".join(stripped[1:-1]),
        )
        logger.debug(f"<- {closing_line}")
        self._open_code = None
        self._lines = []
        return reply

    @staticmethod
    def _strip_marker(code: str, line: str) -> str:
        if line.startswith(code + "-") or line.startswith(code + " "):
            return line[4:]
        if line == code:
            return ""
        return line
