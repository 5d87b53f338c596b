"""Reactions — side effects triggered by signal changes.

Unlike Computed (which is lazy and only evaluates on read), a Reaction
eagerly re-runs its side effect whenever its tracked dependencies change.

Two flavors:
- autorun(fn): runs fn immediately, re-runs when any signal it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes. effect_fn runs untracked, so the
  writes it performs (setting a computed field, toggling enablement) never
  feed back into the reaction's own dependencies.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from reformx._tracking import current_derivation, untracked

T = TypeVar("T")


class Reaction:
    """A reactive side effect that re-runs when its dependencies change."""

    __slots__ = ("_fn", "_dependencies", "_disposed", "__weakref__")

    _lazy = False

    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._dependencies: set = set()
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _run(self) -> None:
        if self._disposed:
            return

        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

        token = current_derivation.set(self)
        try:
            self._fn()
        finally:
            current_derivation.reset(token)

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        self._disposed = True
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def __call__(self) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Reaction({getattr(self._fn, '__name__', 'fn')}, {state})"


class _DataReaction:
    """Internal: reaction(data_fn, effect_fn) implementation.

    Tracks data_fn's dependencies. When they change, re-runs data_fn.
    If the result differs from last time, calls effect_fn with the new value.
    """

    __slots__ = (
        "_data_fn",
        "_effect_fn",
        "_dependencies",
        "_disposed",
        "_last_value",
        "_initialized",
        "__weakref__",
    )

    _lazy = False

    def __init__(self, data_fn: Callable, effect_fn: Callable) -> None:
        self._data_fn = data_fn
        self._effect_fn = effect_fn
        self._dependencies: set = set()
        self._disposed = False
        self._last_value = None
        self._initialized = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _collect(self):
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

        token = current_derivation.set(self)
        try:
            return self._data_fn()
        finally:
            current_derivation.reset(token)

    def _run(self) -> None:
        if self._disposed:
            return

        new_value = self._collect()
        if not self._initialized or new_value != self._last_value:
            self._last_value = new_value
            self._initialized = True
            with untracked():
                self._effect_fn(new_value)

    def dispose(self) -> None:
        self._disposed = True
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def __call__(self) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"_DataReaction({getattr(self._data_fn, '__name__', 'fn')}, {state})"


def autorun(fn: Callable[[], None]) -> Reaction:
    """Run fn immediately, then re-run whenever any signal it reads changes.

    Returns the Reaction (call .dispose(), or the reaction itself, to stop).
    """
    r = Reaction(fn)
    r._run()
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> _DataReaction:
    """Track data_fn's signals; call effect_fn when the result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value* changes,
    not on every dependency notification.

    Usage:
        price = Signal(100)
        quantity = Signal(1)

        totals = []
        r = reaction(
            lambda: price.get() * quantity.get(),
            totals.append,
        )
        # totals == [], data_fn ran to establish deps, effect did not fire

        quantity.set(3)
        # totals == [300]

        r.dispose()
    """
    r = _DataReaction(data_fn, effect_fn)
    if fire_immediately:
        r._run()
    else:
        r._last_value = r._collect()
        r._initialized = True
    return r
