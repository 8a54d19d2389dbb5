"""
Observable Protocol.

Defines the abstract interface for the reactive holder that wraps the
query store. Observers subscribe to be told whenever the held value is
replaced.

The holder is responsible for:
    - Exposing the current value
    - Notifying subscribers when a new value is assigned
    - Returning an unsubscribe callable from subscribe()

Design Notes:
    - Replacement, not mutation: owners assign a new object to notify
    - Assigning the identical object is a no-op
"""

from __future__ import annotations

from typing import Callable, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")

Unsubscribe = Callable[[], None]


@runtime_checkable
class ObservableProtocol(Protocol[T]):
    """Abstract interface for a value holder with change notification."""

    @property
    def value(self) -> T:
        """Current value."""
        ...

    @value.setter
    def value(self, new_value: T) -> None:
        """Replace the value and notify subscribers."""
        ...

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """
        Register a change callback.

        Args:
            callback: Called with the new value after every replacement

        Returns:
            Callable that removes the subscription
        """
        ...
