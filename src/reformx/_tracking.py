"""Dependency tracking engine.

Uses contextvars to track which signals are read during a computed/reaction
evaluation, building the dependency graph automatically.

Batching: mutations inside an @action or `with transaction()` accumulate
invalidations and flush them once at the end. Pending derivations flush in
the order they were first scheduled.
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reformx.computed import Computed
    from reformx.reaction import Reaction

    Derivation = Computed | Reaction

# The currently-evaluating derivation (computed or reaction).
# When set, any Signal.get() call registers itself as a dependency.
current_derivation: contextvars.ContextVar[Derivation | None] = contextvars.ContextVar(
    "current_derivation", default=None
)

# Batch depth counter. When > 0, invalidations are deferred.
_batch_depth: int = 0

# Derivations invalidated during a batch, awaiting flush. dict keeps order.
_pending: dict[Derivation, None] = {}


def begin_batch() -> None:
    """Enter a batching scope. Nested batches are supported."""
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    """Exit a batching scope. When the outermost scope exits, flush pending derivations."""
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0:
        _flush_pending()


def schedule(derivation: Derivation) -> None:
    """Schedule a derivation for re-evaluation.

    Lazy derivations (Computed) are invalidated immediately so reads inside a
    batch never see a stale cache. Eager ones defer while a batch is open.
    """
    if _batch_depth > 0 and not derivation._lazy:
        _pending[derivation] = None
    else:
        derivation._run()


def _flush_pending() -> None:
    while _pending:
        batch = list(_pending)
        _pending.clear()
        for derivation in batch:
            derivation._run()


@contextmanager
def untracked():
    """Read signals without registering them as dependencies."""
    token = current_derivation.set(None)
    try:
        yield
    finally:
        current_derivation.reset(token)


def track(source) -> None:
    """Register `source` as a dependency of the current derivation, if any."""
    derivation = current_derivation.get()
    if derivation is not None:
        source._observers[derivation] = None
        derivation._dependencies.add(source)


def get_pending_count() -> int:
    """Number of derivations waiting to run. Useful for testing."""
    return len(_pending)
