# src/tasktrack/core/reactive.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

Listener = Callable[[T], None]
Unsubscribe = Callable[[], None]

logger = logging.getLogger(__name__)


class ListenerSet(Generic[T]):
    """
    Ordered set of synchronous listeners.

    Listeners run in subscription order. A failing listener is logged and
    does not stop delivery to the others.
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._listeners: list[Listener[T]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: Listener[T]) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, value: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Listener failed name=%s", self._name or "?")

    def clear(self) -> None:
        self._listeners.clear()


class Observable(Generic[T]):
    """A current value plus change notifications (emitted only when it changes)."""

    def __init__(self, initial: T, name: str = "") -> None:
        self._value = initial
        self._listeners: ListenerSet[T] = ListenerSet(name)

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, listener: Listener[T], *, emit_current: bool = False) -> Unsubscribe:
        unsubscribe = self._listeners.add(listener)
        if emit_current:
            listener(self._value)
        return unsubscribe

    def set(self, value: T) -> bool:
        """Store a new value without notifying. Returns True if it changed."""
        if value == self._value:
            return False
        self._value = value
        return True

    def notify(self) -> None:
        self._listeners.emit(self._value)
