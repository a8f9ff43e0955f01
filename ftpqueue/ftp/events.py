"""Notification channels surfaced by an FTP session."""

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger("ftpqueue.events")

T = TypeVar("T")


class Signal(Generic[T]):
    """
    A typed notification channel.

    Usage:
        session.on_error.subscribe(lambda error: print(error))
    """

    def __init__(self, name: str):
        """
        Initialize the channel.

        Args:
            name: Channel name used in log messages
        """
        self._name = name
        self._subscribers: List[Callable[..., None]] = []

    @property
    def name(self) -> str:
        """Channel name."""
        return self._name

    def __len__(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable[..., None]) -> Callable[..., None]:
        """
        Register a subscriber.

        Returns:
            The callback, so this can be used as a decorator
        """
        self._subscribers.append(callback)
        return callback

    def unsubscribe(self, callback: Callable[..., None]) -> None:
        """Remove a subscriber if registered."""
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def emit(self, *args: T) -> None:
        """Deliver a notification to every subscriber, in subscription order."""
        if not self._subscribers:
            logger.debug(f"No subscribers for {self._name} notification")
        for callback in list(self._subscribers):
            callback(*args)
