"""FormNode — the capability surface shared by every node kind.

Three node kinds exist: FieldNode (a single value), GroupNode (named
children forming a dict) and ArrayNode (a list of GroupNode items). Each
carries the same explicit flags (touched, dirty, disabled) as signals and
exposes the same public mutators; the `_on_*` hooks are where each kind adds
its own subtree propagation.

Public read signals (set up by each kind): value, status, valid, invalid,
pending, errors, touched, dirty, disabled, enabled.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Iterator

from reformx.computed import Computed
from reformx.errors import ErrorFilter, ErrorStrategy, FormErrorHandler, ValidationError, filter_errors
from reformx.observable import ReadonlySignal, Signal
from reformx.subscriptions import Disposer, SubscriptionRegistry, unique_key

logger = logging.getLogger("reformx.node")


class NodeKind(str, Enum):
    FIELD = "field"
    GROUP = "group"
    ARRAY = "array"


class FieldStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    PENDING = "pending"
    DISABLED = "disabled"


class UpdateOn(str, Enum):
    """When a field validates itself."""

    CHANGE = "change"
    BLUR = "blur"
    SUBMIT = "submit"


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


# Marks "argument not given" where None is a legitimate value.
UNSET: Any = _Unset()


class FormNode(ABC):
    """Shared flags, public mutators and lifecycle for all node kinds."""

    kind: NodeKind

    def __init__(self) -> None:
        self._touched = Signal(False)
        self._dirty = Signal(False)
        self._disabled = Signal(False)
        self._subscriptions = SubscriptionRegistry()
        self._tasks: set[asyncio.Task] = set()
        self._validation_gates: dict[str, Callable[[], bool]] = {}
        self._disposed = False

        self.disabled = ReadonlySignal(self._disabled)
        self.enabled = Computed(lambda: not self._disabled.get())
        self.valid = Computed(lambda: self.status.get() is FieldStatus.VALID)
        self.invalid = Computed(lambda: self.status.get() is FieldStatus.INVALID)

    # ─── Values ──────────────────────────────────────────────────────────────

    @abstractmethod
    def get_value(self) -> Any:
        """Current value, read without creating a reactive dependency."""

    @abstractmethod
    def set_value(self, value: Any, *, emit_event: bool = True) -> None: ...

    @abstractmethod
    def patch_value(self, value: Any) -> None: ...

    @abstractmethod
    def reset(self, value: Any = UNSET) -> None:
        """Clear touched/dirty/errors; set value to `value`, or to the initial value."""

    @abstractmethod
    def reset_to_initial(self) -> None: ...

    # ─── Validation ──────────────────────────────────────────────────────────

    @abstractmethod
    async def validate(self, *, debounce: float | None = None) -> bool: ...

    @abstractmethod
    def validate_sync(self) -> bool:
        """Run synchronous validation only and report validity."""

    def trigger_validation(self) -> None:
        """Start validation without waiting for it.

        Inside a running event loop the full (async) validation runs as a
        task; otherwise only the synchronous part runs.
        """
        if self._disabled.peek():
            return
        if _running_loop() is None:
            self.validate_sync()
        else:
            self._spawn(self.validate())

    def add_validation_gate(self, gate: Callable[[], bool]) -> Disposer:
        """Skip this node's validation while gate() returns False.

        Returns a function removing the gate.
        """
        key = unique_key("validation_gate")
        self._validation_gates[key] = gate

        def _remove() -> None:
            self._validation_gates.pop(key, None)

        return _remove

    @property
    def validation_active(self) -> bool:
        """False while any validation gate is closed."""
        return all(gate() for gate in list(self._validation_gates.values()))

    # ─── Errors ──────────────────────────────────────────────────────────────

    @abstractmethod
    def set_errors(self, errors) -> None: ...

    @abstractmethod
    def clear_errors(self) -> None: ...

    def get_errors(
        self,
        filter: ErrorFilter | Callable[[ValidationError], bool] | None = None,
        **criteria: Any,
    ) -> list[ValidationError]:
        """Current errors, optionally filtered by code, message, params or predicate."""
        return filter_errors(self.errors.peek(), filter, **criteria)

    # ─── Flags ───────────────────────────────────────────────────────────────

    def mark_as_touched(self) -> None:
        self._touched.set(True)
        self._on_mark_as_touched()

    def mark_as_untouched(self) -> None:
        self._touched.set(False)
        self._on_mark_as_untouched()

    def mark_as_dirty(self) -> None:
        self._dirty.set(True)
        self._on_mark_as_dirty()

    def mark_as_pristine(self) -> None:
        self._dirty.set(False)
        self._on_mark_as_pristine()

    def touch_all(self) -> None:
        """Mark this node and its whole enabled subtree as touched."""
        self.mark_as_touched()

    def enable(self) -> None:
        was_disabled = self._disabled.peek()
        self._disabled.set(False)
        self._on_enable(was_disabled)

    def disable(self) -> None:
        was_disabled = self._disabled.peek()
        self._disabled.set(True)
        self._on_disable(was_disabled)

    # ─── Lifecycle ───────────────────────────────────────────────────────────

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Tear down every subscription this node owns. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        self._subscriptions.dispose()
        for task in list(self._tasks):
            task.cancel()
        self._on_dispose()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            FormErrorHandler.handle(error, f"{type(self).__name__}: background validation", ErrorStrategy.LOG)

    # ─── Hooks ───────────────────────────────────────────────────────────────

    def _on_mark_as_touched(self) -> None:
        pass

    def _on_mark_as_untouched(self) -> None:
        pass

    def _on_mark_as_dirty(self) -> None:
        pass

    def _on_mark_as_pristine(self) -> None:
        pass

    def _on_enable(self, was_disabled: bool) -> None:
        pass

    def _on_disable(self, was_disabled: bool) -> None:
        pass

    def _on_dispose(self) -> None:
        pass


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def as_signal(source):
    """Reactive read handle for a node (its value signal) or a signal."""
    if isinstance(source, FormNode):
        return source.value
    if hasattr(source, "get"):
        return source
    raise TypeError(f"Expected a FormNode or a signal, got {type(source).__name__}")


def iter_field_nodes(node: FormNode) -> Iterator[FormNode]:
    """Every FieldNode in the subtree rooted at node, depth first."""
    if node.kind is NodeKind.FIELD:
        yield node
    elif node.kind is NodeKind.GROUP:
        for child in node.fields.values():
            yield from iter_field_nodes(child)
    else:
        for item in node.items:
            yield from iter_field_nodes(item)
