"""Signals — state that tracks its readers.

When a Signal is read inside a Computed or Reaction evaluation, the dependency
is automatically registered. When the Signal changes, all dependents are
scheduled for re-evaluation.

Form nodes never hand out writable signals: every public read signal is a
ReadonlySignal view or a Computed, and mutation goes through node methods.

Thread safety: call set_scheduler() once from the main thread. After that,
any .set() from a background thread is auto-marshaled. Main-thread .set()
remains synchronous.
"""

from __future__ import annotations

import threading
from typing import Generic, Iterator, TypeVar

from reformx._tracking import schedule, track

T = TypeVar("T")

# ─── Auto-marshal ────────────────────────────────────────────────────────────
_scheduler = None
_scheduler_thread = None


def set_scheduler(scheduler) -> None:
    """Set the global thread scheduler for cross-thread Signal writes.

    Call once from the main/UI thread:
        reformx.set_scheduler(app.call_from_thread)

    After this, any Signal.set() from a background thread is automatically
    marshaled. Main-thread writes remain synchronous.
    """
    global _scheduler, _scheduler_thread
    _scheduler = scheduler
    _scheduler_thread = threading.current_thread()


class Signal(Generic[T]):
    """A single reactive value with automatic dependency tracking."""

    __slots__ = ("_value", "_observers", "__weakref__")

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: dict = {}

    def get(self) -> T:
        """Read the value. If inside a derivation, registers the dependency."""
        track(self)
        return self._value

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        return self._value

    @property
    def value(self) -> T:
        return self.get()

    def set(self, value: T) -> None:
        """Write a new value. Auto-marshals from background threads."""
        if _scheduler is not None and threading.current_thread() != _scheduler_thread:
            _scheduler(lambda v=value: self._set_direct(v))
        else:
            self._set_direct(value)

    def _set_direct(self, value: T) -> None:
        old = self._value
        if old is not value and old != value:
            self._value = value
            self._notify()

    def _notify(self) -> None:
        for observer in list(self._observers):
            schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.pop(observer, None)

    def __repr__(self) -> str:
        return f"Signal({self._value!r})"


class ReadonlySignal(Generic[T]):
    """Read-only view over a Signal."""

    __slots__ = ("_source",)

    def __init__(self, source: Signal[T]) -> None:
        self._source = source

    def get(self) -> T:
        return self._source.get()

    def peek(self) -> T:
        return self._source.peek()

    @property
    def value(self) -> T:
        return self._source.get()

    def __repr__(self) -> str:
        return f"ReadonlySignal({self._source.peek()!r})"


class ObservableList(Generic[T]):
    """A reactive list that tracks reads and notifies on mutation.

    Any read operation (iteration, indexing, len) registers a dependency.
    Any mutation (append, insert, pop, clear) notifies observers.
    """

    __slots__ = ("_items", "_observers")

    def __init__(self, items: list[T] | None = None) -> None:
        self._items: list[T] = list(items) if items else []
        self._observers: dict = {}

    def _notify(self) -> None:
        for observer in list(self._observers):
            schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.pop(observer, None)

    def peek(self) -> list[T]:
        """Snapshot of the items without registering a dependency."""
        return list(self._items)

    # --- Read operations (track) ---

    def __getitem__(self, index: int) -> T:
        track(self)
        return self._items[index]

    def __len__(self) -> int:
        track(self)
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        track(self)
        return iter(list(self._items))

    def __bool__(self) -> bool:
        track(self)
        return bool(self._items)

    # --- Write operations (notify) ---

    def append(self, item: T) -> None:
        self._items.append(item)
        self._notify()

    def insert(self, index: int, item: T) -> None:
        self._items.insert(index, item)
        self._notify()

    def pop(self, index: int = -1) -> T:
        result = self._items.pop(index)
        self._notify()
        return result

    def clear(self) -> None:
        self._items.clear()
        self._notify()

    def __repr__(self) -> str:
        return f"ObservableList({self._items!r})"
