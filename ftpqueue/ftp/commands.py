"""Command queue for the FTP control connection.

Provides the Step result type returned by continuations, the Command
record and the CommandQueue that orders pending commands.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Tuple, Union

from ftpqueue.ftp.reply import Reply


class Step(Enum):
    """What the scheduler does after a continuation has run."""
    ADVANCE = "advance"
    HOLD = "hold"


# Continuations receive (error, reply); error is a ProtocolError for 4xx/5xx
Continuation = Callable[[Optional[Exception], Reply], Optional[Step]]


@dataclass
class Command:
    """A command line waiting for dispatch, with its completion continuation."""
    text: str
    continuation: Optional[Continuation] = None
    urgent: bool = False

    def __str__(self) -> str:
        if self.text.upper().startswith("PASS "):
            return "PASS ****"
        return self.text


CommandLike = Union[Command, str]


class CommandQueue:
    """
    Ordered list of pending commands.

    Appends go to the tail; urgent appends go to the head as one
    contiguous block that keeps its internal order. Popped commands are
    recorded as current and kept in an append-only history.
    """

    def __init__(self):
        """Initialize an empty queue."""
        self._pending: List[Command] = []
        self._history: List[Command] = []
        self._current: Optional[Command] = None

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def current(self) -> Optional[Command]:
        """Most recently popped command."""
        return self._current

    @property
    def pending(self) -> Tuple[Command, ...]:
        """Commands waiting for dispatch, head first."""
        return tuple(self._pending)

    @property
    def history(self) -> Tuple[Command, ...]:
        """Every command popped so far, oldest first."""
        return tuple(self._history)

    def append(
        self,
        command: Union[CommandLike, Iterable[CommandLike]],
        urgent: bool = False
    ) -> None:
        """
        Add one command or a batch.

        Args:
            command: Command, command text, or an iterable of either
            urgent: Insert at the head instead of the tail
        """
        if isinstance(command, (Command, str)):
            batch = [self._wrap(command, urgent)]
        else:
            batch = [self._wrap(c, urgent) for c in command]

        if urgent:
            self._pending[0:0] = batch
        else:
            self._pending.extend(batch)

    def next(self) -> Optional[str]:
        """
        Pop the head command.

        Returns:
            Command text, or None if the queue is empty
        """
        if not self._pending:
            return None
        command = self._pending.pop(0)
        self._current = command
        self._history.append(command)
        return command.text

    def current_continuation(self) -> Optional[Continuation]:
        """Continuation of the most recently popped command."""
        if self._current is None:
            return None
        return self._current.continuation

    def clear(self) -> int:
        """
        Drop all pending commands.

        Returns:
            Number of commands dropped
        """
        dropped = len(self._pending)
        self._pending.clear()
        return dropped

    @staticmethod
    def _wrap(command: CommandLike, urgent: bool) -> Command:
        if isinstance(command, Command):
            command.urgent = urgent
            return command
        return Command(text=command, urgent=urgent)
