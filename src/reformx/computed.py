"""Computed values — derived state with automatic dependency tracking.

A Computed wraps a function. When evaluated, it tracks which signals the
function reads and caches the result. When any dependency changes, the cached
value is invalidated. On next read, it re-evaluates.

Computed values are lazy: they only recompute when read. Node aggregates
(group value, status, errors) are Computeds over their children's signals.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from reformx._tracking import current_derivation, schedule, track

T = TypeVar("T")

_UNSET = object()


class Computed(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_fn", "_cached", "_dirty", "_dependencies", "_observers", "__weakref__")

    _lazy = True

    def __init__(self, fn: Callable[[], T]) -> None:
        self._fn = fn
        self._cached: object = _UNSET
        self._dirty = True
        self._dependencies: set = set()
        self._observers: dict = {}

    def get(self) -> T:
        """Read the computed value. Recomputes if dirty."""
        track(self)
        if self._dirty:
            self._recompute()
        return self._cached

    def peek(self) -> T:
        """Read the computed value without registering a dependency."""
        if self._dirty:
            self._recompute()
        return self._cached

    @property
    def value(self) -> T:
        return self.get()

    def _recompute(self) -> None:
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

        token = current_derivation.set(self)
        try:
            self._cached = self._fn()
        finally:
            current_derivation.reset(token)

        self._dirty = False

    def _run(self) -> None:
        """Called by the scheduler when a dependency changed.

        Marks dirty and propagates to observers. Recomputation happens on
        the next read.
        """
        if not self._dirty:
            self._dirty = True
            for observer in list(self._observers):
                schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.pop(observer, None)

    def dispose(self) -> None:
        """Disconnect from all dependencies. The computed becomes inert."""
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()
        self._observers.clear()
        self._dirty = True
        self._cached = _UNSET

    def __repr__(self) -> str:
        state = "dirty" if self._dirty else f"cached={self._cached!r}"
        name = getattr(self._fn, "__name__", "fn")
        return f"Computed({name}, {state})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Decorator/factory to create a Computed from a function.

    Usage:
        price = Signal(10)

        @computed
        def with_tax():
            return price.get() * 1.2
    """
    return Computed(fn)
