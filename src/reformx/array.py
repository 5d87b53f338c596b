"""ArrayNode — an ordered, reactive list of GroupNode items.

Every item is built from the same item schema. Behavior and validation
schemas applied to the array are applied to each existing item and kept, so
items pushed later get the same wiring.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Callable, Iterator, TypeVar

from reformx.action import action
from reformx.behavior import BehaviorSchema
from reformx.computed import Computed
from reformx.errors import ValidationError, coerce_errors
from reformx.group import GroupNode
from reformx.node import UNSET, FieldStatus, FormNode, NodeKind
from reformx.observable import ObservableList, ReadonlySignal, Signal
from reformx.reaction import reaction
from reformx.subscriptions import Disposer, unique_key
from reformx.validation import ValidationSchema

logger = logging.getLogger("reformx.array")

R = TypeVar("R")


class ArrayNode(FormNode):
    kind = NodeKind.ARRAY

    def __init__(
        self,
        item_schema: Mapping[str, Any],
        initial_items: Iterable[Mapping[str, Any]] | None = None,
    ) -> None:
        super().__init__()
        if not isinstance(item_schema, Mapping):
            raise TypeError(f"Array item schema must be a mapping, got {type(item_schema).__name__}")
        self._item_schema = item_schema
        self._initial_items = copy.deepcopy(list(initial_items or []))
        self._items: ObservableList[GroupNode] = ObservableList()
        self._array_errors: Signal[list[ValidationError]] = Signal([])
        self._behavior_schema: BehaviorSchema | None = None
        self._validation_schema: ValidationSchema | None = None
        self._behavior_disposers: dict[GroupNode, Disposer] = {}

        self.value = Computed(lambda: [item.value.get() for item in self._enabled_items()])
        self.length = Computed(lambda: len(self._items))
        self.errors = Computed(self._compute_errors)
        self.array_errors = ReadonlySignal(self._array_errors)
        self.pending = Computed(lambda: any(item.pending.get() for item in self._enabled_items()))
        self.touched = Computed(
            lambda: self._touched.get() or any(item.touched.get() for item in self._enabled_items())
        )
        self.dirty = Computed(
            lambda: self._dirty.get() or any(item.dirty.get() for item in self._enabled_items())
        )
        self.status = Computed(self._compute_status)

        for value in self._initial_items:
            self._insert(len(self._items.peek()), value, validate=False)

    def _enabled_items(self) -> list[GroupNode]:
        return [item for item in self._items if not item.disabled.get()]

    def _compute_errors(self) -> list[ValidationError]:
        errors = list(self._array_errors.get())
        for item in self._enabled_items():
            errors.extend(item.errors.get())
        return errors

    def _compute_status(self) -> FieldStatus:
        if self._disabled.get():
            return FieldStatus.DISABLED
        items = self._enabled_items()
        if any(item.pending.get() for item in items):
            return FieldStatus.PENDING
        if self._array_errors.get() or any(item.status.get() is FieldStatus.INVALID for item in items):
            return FieldStatus.INVALID
        return FieldStatus.VALID

    # ─── Items ───────────────────────────────────────────────────────────────

    @property
    def items(self) -> list[GroupNode]:
        """Snapshot of the items (tracked)."""
        return list(self._items)

    def _create_item(self, value: Mapping[str, Any] | None) -> GroupNode:
        item = GroupNode(self._item_schema)
        if value is not None:
            item.set_value(value, emit_event=False)
        if self._disabled.peek():
            item.disable()
        if self._behavior_schema is not None:
            self._behavior_disposers[item] = item.apply_behavior_schema(self._behavior_schema)
        if self._validation_schema is not None:
            item.apply_validation_schema(self._validation_schema)
        return item

    def _insert(self, index: int, value: Mapping[str, Any] | None, *, validate: bool) -> GroupNode:
        item = self._create_item(value)
        self._items.insert(index, item)
        if validate and self._validation_schema is not None:
            item.validate_sync()
        return item

    def push(self, value: Mapping[str, Any] | None = None) -> GroupNode:
        """Append a new item (schema defaults, patched with value). Returns it."""
        return self._insert(len(self._items.peek()), value, validate=True)

    def insert(self, index: int, value: Mapping[str, Any] | None = None) -> GroupNode:
        """Insert a new item before index. Out-of-range indices clamp like list.insert."""
        return self._insert(index, value, validate=True)

    def remove_at(self, index: int) -> None:
        """Remove and dispose the item at index. Out-of-range is a no-op."""
        if not 0 <= index < len(self._items.peek()):
            logger.debug("remove_at(%d) out of range", index)
            return
        self._discard(self._items.pop(index))

    def clear(self) -> None:
        items = self._items.peek()
        self._items.clear()
        for item in items:
            self._discard(item)

    def _discard(self, item: GroupNode) -> None:
        self._behavior_disposers.pop(item, None)
        item.dispose()

    def at(self, index: int) -> GroupNode | None:
        """Item at index, or None when out of range (negative indices included)."""
        items = self.items
        if 0 <= index < len(items):
            return items[index]
        return None

    def for_each(self, fn: Callable[[GroupNode, int], None]) -> None:
        for index, item in enumerate(self._items.peek()):
            fn(item, index)

    def map(self, fn: Callable[[GroupNode, int], R]) -> list[R]:
        return [fn(item, index) for index, item in enumerate(self._items.peek())]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[GroupNode]:
        return iter(self._items)

    def __getitem__(self, index: int) -> GroupNode:
        return self._items[index]

    # ─── Values ──────────────────────────────────────────────────────────────

    def get_value(self) -> list[dict[str, Any]]:
        return [item.get_value() for item in self._items.peek() if not item.disabled.peek()]

    @action
    def set_value(self, value: Sequence[Mapping[str, Any]], *, emit_event: bool = True) -> None:
        """Resize to len(value) and write each entry into its item."""
        value = list(value)
        while len(self._items.peek()) > len(value):
            self._discard(self._items.pop())
        while len(self._items.peek()) < len(value):
            self._insert(len(self._items.peek()), None, validate=False)
        for item, item_value in zip(self._items.peek(), value):
            item.set_value(item_value, emit_event=emit_event)
        if emit_event:
            self._dirty.set(True)

    @action
    def patch_value(self, value: Sequence[Mapping[str, Any]]) -> None:
        """Patch existing items by position. Extra entries are ignored."""
        for item, item_value in zip(self._items.peek(), value):
            item.patch_value(item_value)

    @action
    def reset(self, value: Any = UNSET) -> None:
        """Rebuild the items from value, or from the initial items."""
        values = self._initial_items if value is UNSET else list(value)
        self.clear()
        for item_value in copy.deepcopy(values):
            self._insert(len(self._items.peek()), item_value, validate=False)
        self._array_errors.set([])
        self._touched.set(False)
        self._dirty.set(False)

    def reset_to_initial(self) -> None:
        self.reset()

    # ─── Validation ──────────────────────────────────────────────────────────

    async def validate(self, *, debounce: float | None = None) -> bool:
        if not self.validation_active:
            return self.valid.peek()
        self._array_errors.set([])
        items = [item for item in self._items.peek() if not item.disabled.peek()]
        await asyncio.gather(*(item.validate(debounce=debounce) for item in items))
        return self.valid.peek()

    def validate_sync(self) -> bool:
        if not self.validation_active:
            return self.valid.peek()
        self._array_errors.set([])
        for item in self._items.peek():
            if not item.disabled.peek():
                item.validate_sync()
        return self.valid.peek()

    def apply_validation_schema(self, schema: ValidationSchema) -> None:
        """Apply schema to every item, now and for items added later."""
        self._validation_schema = schema
        for item in self._items.peek():
            item.apply_validation_schema(schema)

    # ─── Errors ──────────────────────────────────────────────────────────────

    def set_errors(self, errors) -> None:
        """Set array-level errors."""
        self._array_errors.set(coerce_errors(errors))

    @action
    def clear_errors(self) -> None:
        self._array_errors.set([])
        for item in self._items.peek():
            item.clear_errors()

    # ─── Behaviors ───────────────────────────────────────────────────────────

    def apply_behavior_schema(self, schema: BehaviorSchema) -> Disposer:
        """Apply schema to every item, now and for items added later.

        Replaces a previously applied item schema. The returned disposer
        removes the wiring from all items and stops applying it to new ones.
        """
        for dispose in self._behavior_disposers.values():
            dispose()
        self._behavior_disposers.clear()
        self._behavior_schema = schema
        for item in self._items.peek():
            self._behavior_disposers[item] = item.apply_behavior_schema(schema)

        def _dispose() -> None:
            if self._behavior_schema is not schema:
                return
            self._behavior_schema = None
            for item_dispose in self._behavior_disposers.values():
                item_dispose()
            self._behavior_disposers.clear()

        return self._subscriptions.add(unique_key("item_behavior"), _dispose)

    def watch_items(self, field_path: str, callback: Callable[[list[Any]], None]) -> Disposer:
        """Call callback with field_path's value from every item, now and on change.

        Fires when any item's value at field_path changes and when items are
        added or removed. Items lacking the field contribute None.
        """

        def _collect() -> list[Any]:
            values = []
            for item in self._items:
                node = item.get_field_by_path(field_path)
                values.append(None if node is None else node.value.get())
            return values

        r = reaction(_collect, callback, fire_immediately=True)
        return self._subscriptions.add(unique_key("watch_items"), r.dispose)

    def watch_length(self, callback: Callable[[int], None]) -> Disposer:
        """Call callback with the item count now and whenever it changes."""
        r = reaction(lambda: len(self._items), callback, fire_immediately=True)
        return self._subscriptions.add(unique_key("watch_length"), r.dispose)

    # ─── Flag propagation ────────────────────────────────────────────────────

    def _enabled_children(self) -> list[GroupNode]:
        return [item for item in self._items.peek() if not item.disabled.peek()]

    @action
    def _on_mark_as_touched(self) -> None:
        for item in self._enabled_children():
            item.mark_as_touched()

    @action
    def _on_mark_as_untouched(self) -> None:
        for item in self._enabled_children():
            item.mark_as_untouched()

    @action
    def _on_mark_as_dirty(self) -> None:
        for item in self._enabled_children():
            item.mark_as_dirty()

    @action
    def _on_mark_as_pristine(self) -> None:
        for item in self._enabled_children():
            item.mark_as_pristine()

    @action
    def _on_enable(self, was_disabled: bool) -> None:
        for item in self._items.peek():
            item.enable()

    @action
    def _on_disable(self, was_disabled: bool) -> None:
        for item in self._items.peek():
            item.disable()

    def _on_dispose(self) -> None:
        for item in self._items.peek():
            item.dispose()
        self._behavior_disposers.clear()

    def __repr__(self) -> str:
        return f"ArrayNode(length={len(self._items.peek())}, status={self.status.peek().value})"
