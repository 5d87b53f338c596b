"""Actions and transactions — batched state mutations.

Wrapping mutations in an @action or `with transaction()` defers all
reaction/computed invalidation until the outermost scope exits. Group-wide
writes (set_value, patch_value, reset) run as actions so computed fields and
enable/disable rules see the whole update at once, not one field at a time.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, ParamSpec, TypeVar

from reformx._tracking import begin_batch, end_batch

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all signal writes inside fn.

    Reactions only fire after fn returns, not during.
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        begin_batch()
        try:
            return fn(*args, **kwargs)
        finally:
            end_batch()

    return wrapper


@contextmanager
def transaction():
    """Context manager for batching writes.

    Usage:
        with transaction():
            price.set(100)
            quantity.set(3)
            # reactions fire here, after both are set
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()
