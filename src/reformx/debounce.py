"""Debounced invoker — coalesce rapid calls into one delayed execution.

A Debouncer holds at most one pending unit of work. Scheduling a new one
cancels the previous; flush() runs immediately; cancel() drops the pending
work without running it. Awaiting callers of a cancelled or superseded
debounce() see asyncio.CancelledError, never a result.

Timers come from the running asyncio loop (loop.call_later) when there is
one, otherwise from a daemon threading.Timer. Work fired from a timer thread
writes signals through the usual set_scheduler() marshaling.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


def _start_timer(delay: float, callback: Callable[[], None]):
    """Start a one-shot timer. Returns a handle with .cancel()."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is not None:
        return loop.call_later(delay, callback)
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class Debouncer:
    """Timer handle with schedule/cancel/flush semantics."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self._lock = threading.Lock()
        self._timer = None
        self._work: Callable[[], Any] | None = None
        self._future: asyncio.Future | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def call(self, fn: Callable[[], Any], delay: float | None = None) -> None:
        """Run fn after the delay unless superseded. Fire-and-forget."""
        delay = self.delay if delay is None else delay
        self.cancel()
        if delay <= 0:
            fn()
            return
        with self._lock:
            self._work = fn
            self._timer = _start_timer(delay, self._fire)

    async def debounce(self, fn: Callable[[], T | Awaitable[T]], delay: float | None = None) -> T:
        """Run fn after the delay and return its result.

        A later debounce()/cancel()/flush(other) on this instance cancels the
        awaiting caller.
        """
        delay = self.delay if delay is None else delay
        self.cancel()
        if delay <= 0:
            return await _resolve(fn())

        loop = asyncio.get_running_loop()
        future = loop.create_future()
        with self._lock:
            self._work = fn
            self._future = future
            self._timer = loop.call_later(delay, self._fire)
        return await future

    def cancel(self) -> None:
        """Drop the pending call, if any, without running it."""
        with self._lock:
            timer, future = self._timer, self._future
            self._timer = None
            self._work = None
            self._future = None
        if timer is not None:
            timer.cancel()
        if future is not None and not future.done():
            future.cancel()

    def flush(self, fn: Callable[[], T] | None = None) -> T | None:
        """Run now, cancelling any pending delayed call.

        Without fn, the pending work itself runs (and resolves its awaiting
        caller). Returns whatever the work returns; awaitable results are
        left for the caller to await.
        """
        if fn is not None:
            self.cancel()
            return fn()

        with self._lock:
            timer, work, future = self._timer, self._work, self._future
            self._timer = None
            self._work = None
            self._future = None
        if timer is not None:
            timer.cancel()
        if work is None:
            return None
        if future is not None:
            task = asyncio.ensure_future(_resolve(work()))
            _chain(task, future)
            return task
        return work()

    def _fire(self) -> None:
        with self._lock:
            work, future = self._work, self._future
            self._timer = None
            self._work = None
            self._future = None
        if work is None:
            return
        if future is None:
            work()
            return
        if future.done():
            return
        task = asyncio.ensure_future(_resolve(work()))
        _chain(task, future)


async def _resolve(result):
    if inspect.isawaitable(result):
        return await result
    return result


def _chain(task: asyncio.Future, future: asyncio.Future) -> None:
    def _done(t: asyncio.Future) -> None:
        if future.done():
            return
        if t.cancelled():
            future.cancel()
        elif t.exception() is not None:
            future.set_exception(t.exception())
        else:
            future.set_result(t.result())

    task.add_done_callback(_done)
