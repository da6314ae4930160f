"""Minimal reactive cells: writable values and pull-based derived values."""

import asyncio
import logging
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[Any], None]
Unsubscribe = Callable[[], None]


class Writable(Generic[T]):
    """A mutable cell that notifies subscribers when its value is replaced.

    Values are treated as immutable: callers replace the whole value
    (copy-on-write) instead of mutating it. Setting the identical object
    again is not a change and notifies nobody.
    """

    def __init__(self, value: T):
        self._value = value
        self._subscribers: list[Subscriber] = []

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        if value is self._value:
            return
        self._value = value
        for subscriber in list(self._subscribers):
            subscriber(value)

    def update(self, fn: Callable[[T], T]) -> None:
        self.set(fn(self._value))

    def subscribe(self, subscriber: Subscriber) -> Unsubscribe:
        """Register a change callback. It is not called with the current value."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe


class Derived(Generic[T]):
    """A value computed from other cells.

    ``get()`` always recomputes from the current inputs, so a derived value
    never holds hidden state. Subscribers are told whenever an input changes.
    """

    def __init__(self, inputs: list, compute: Callable[..., T]):
        self._inputs = inputs
        self._compute = compute

    def get(self) -> T:
        return self._compute(*(cell.get() for cell in self._inputs))

    def subscribe(self, subscriber: Subscriber) -> Unsubscribe:
        unsubscribers = [
            cell.subscribe(lambda _value: subscriber(self.get())) for cell in self._inputs
        ]

        def unsubscribe() -> None:
            for unsub in unsubscribers:
                unsub()

        return unsubscribe


def defer(fn: Callable[[], None]) -> None:
    """Run ``fn`` after the current reactive pass.

    Inside a running event loop this is scheduled with ``call_soon``; in
    synchronous code the caller's update has already notified everyone, so
    ``fn`` runs immediately.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        fn()
        return
    loop.call_soon(fn)
