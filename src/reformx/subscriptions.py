"""Subscription registry — keyed store of teardown callbacks.

Every node owns one. Reactions created by watch(), compute_from(),
link_fields() and schema application are registered here, so a node's
dispose() tears down everything it wired.
"""

from __future__ import annotations

import itertools
import logging
from typing import Callable

logger = logging.getLogger("reformx.subscriptions")

Disposer = Callable[[], None]

_key_counter = itertools.count(1)


def unique_key(prefix: str) -> str:
    """Registry key that never collides with another from this process."""
    return f"{prefix}-{next(_key_counter)}"


def combine(disposers: list[Disposer]) -> Disposer:
    """Fold several disposers into one. Safe to call more than once."""
    remaining = list(disposers)

    def _dispose() -> None:
        while remaining:
            remaining.pop()()

    return _dispose


def noop() -> None:
    pass


class SubscriptionRegistry:
    """At most one live disposer per key; bulk teardown on dispose()."""

    def __init__(self) -> None:
        self._entries: dict[str, Disposer] = {}

    def add(self, key: str, dispose: Disposer) -> Disposer:
        """Register dispose under key, replacing (and running) any previous one.

        Returns a function that disposes and unregisters this entry only.
        """
        previous = self._entries.pop(key, None)
        if previous is not None:
            logger.debug("Replacing subscription %r", key)
            previous()
        self._entries[key] = dispose

        def _unsubscribe() -> None:
            if self._entries.get(key) is dispose:
                del self._entries[key]
                dispose()

        return _unsubscribe

    def remove(self, key: str) -> bool:
        """Dispose and unregister key. Returns False if it was not registered."""
        dispose = self._entries.pop(key, None)
        if dispose is None:
            return False
        dispose()
        return True

    def has(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def dispose(self) -> None:
        """Run every registered disposer and empty the registry."""
        entries = list(self._entries.values())
        self._entries.clear()
        for dispose in entries:
            dispose()
