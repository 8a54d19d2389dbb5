"""
In-Memory Signal.

A simple observable value holder that notifies subscribers synchronously.
"""

from __future__ import annotations

from typing import Callable, Generic, List, TypeVar

from query_cache.interfaces.observable import Unsubscribe

T = TypeVar("T")


class Signal(Generic[T]):
    """Observable value holder."""

    def __init__(self, value: T) -> None:
        """
        Initialize the signal.

        Args:
            value: Initial value
        """
        self._value = value
        self._subscribers: List[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        """Current value."""
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        if new_value is self._value:
            return
        self._value = new_value
        for callback in list(self._subscribers):
            callback(new_value)

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Register a callback invoked with every new value."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        """Number of active subscribers."""
        return len(self._subscribers)
