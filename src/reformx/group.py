"""GroupNode — named children aggregated into one dict-valued node.

A group is built from a schema mapping (field configs, nested schemas and
array schemas), or from a config mapping with a "form" schema plus optional
"behavior" and "validation" schema functions:

    form = GroupNode({
        "form": {
            "email": {"value": "", "validators": [required()]},
            "address": {"city": {"value": ""}},
        },
        "validation": lambda path: validate(path.email, not_example),
    })

Children are reached with form.get_field("email"), form["email"], or
form.get_field_by_path("address.city").

value, errors, status, pending, touched and dirty are Computeds over the
enabled children; disabled children are left out of every aggregate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterator, TypeVar

from reformx.action import action
from reformx.behavior import BehaviorApplicator, BehaviorSchema
from reformx.computed import Computed
from reformx.errors import ValidationError, coerce_errors
from reformx.factory import create_node
from reformx.node import UNSET, FieldStatus, FormNode, NodeKind
from reformx.observable import ReadonlySignal, Signal
from reformx.paths import PathLike, extract_path, get_node_by_path
from reformx.reaction import reaction
from reformx.subscriptions import Disposer, noop, unique_key
from reformx.validation import (
    ValidationApplicator,
    ValidationRegistry,
    ValidationSchema,
    ValidatorRegistration,
)

logger = logging.getLogger("reformx.group")

R = TypeVar("R")

_CONFIG_KEYS = frozenset({"form", "behavior", "validation"})


def is_group_config(schema: Mapping[str, Any]) -> bool:
    """True for {"form": {...}, "behavior": fn, "validation": fn} style configs."""
    if "form" not in schema or not set(schema) <= _CONFIG_KEYS:
        return False
    form = schema["form"]
    return isinstance(form, Mapping) and "value" not in form


class GroupNode(FormNode):
    kind = NodeKind.GROUP

    def __init__(
        self,
        schema: Mapping[str, Any],
        *,
        behavior: BehaviorSchema | None = None,
        validation: ValidationSchema | None = None,
    ) -> None:
        super().__init__()
        if is_group_config(schema):
            behavior = behavior or schema.get("behavior")
            validation = validation or schema.get("validation")
            schema = schema["form"]

        self._fields: dict[str, FormNode] = {key: create_node(config) for key, config in schema.items()}
        self._form_errors: Signal[list[ValidationError]] = Signal([])
        self._submitting = Signal(False)
        self._validation_generation = 0
        self._validation_registry = ValidationRegistry()
        self._behavior_applicator = BehaviorApplicator(self)
        self._validation_applicator = ValidationApplicator(self)

        self.value = Computed(lambda: {key: child.value.get() for key, child in self._enabled_items()})
        self.errors = Computed(self._compute_errors)
        self.form_errors = ReadonlySignal(self._form_errors)
        self.pending = Computed(lambda: any(child.pending.get() for _, child in self._enabled_items()))
        self.touched = Computed(
            lambda: self._touched.get() or any(child.touched.get() for _, child in self._enabled_items())
        )
        self.dirty = Computed(
            lambda: self._dirty.get() or any(child.dirty.get() for _, child in self._enabled_items())
        )
        self.status = Computed(self._compute_status)
        self.submitting = ReadonlySignal(self._submitting)

        if behavior is not None:
            self.apply_behavior_schema(behavior)
        if validation is not None:
            self.apply_validation_schema(validation)

    def _enabled_items(self) -> list[tuple[str, FormNode]]:
        return [(key, child) for key, child in self._fields.items() if not child.disabled.get()]

    def _compute_errors(self) -> list[ValidationError]:
        errors = list(self._form_errors.get())
        for _, child in self._enabled_items():
            errors.extend(child.errors.get())
        return errors

    def _compute_status(self) -> FieldStatus:
        if self._disabled.get():
            return FieldStatus.DISABLED
        children = [child for _, child in self._enabled_items()]
        if any(child.pending.get() for child in children):
            return FieldStatus.PENDING
        if self._form_errors.get() or any(child.status.get() is FieldStatus.INVALID for child in children):
            return FieldStatus.INVALID
        return FieldStatus.VALID

    # ─── Children ────────────────────────────────────────────────────────────

    @property
    def fields(self) -> Mapping[str, FormNode]:
        """Read-only view of the direct children."""
        return MappingProxyType(self._fields)

    def get_field(self, key: str) -> FormNode | None:
        return self._fields.get(key)

    def __getitem__(self, key: str) -> FormNode:
        return self._fields[key]

    def __contains__(self, key: object) -> bool:
        return key in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def keys(self):
        return self._fields.keys()

    def get_field_by_path(self, path: PathLike) -> FormNode | None:
        """Node at a dot/bracket path such as "items[0].price", or None."""
        return get_node_by_path(self, extract_path(path))

    # ─── Values ──────────────────────────────────────────────────────────────

    def get_value(self) -> dict[str, Any]:
        return {key: child.get_value() for key, child in self._fields.items() if not child.disabled.peek()}

    @action
    def set_value(self, value: Mapping[str, Any], *, emit_event: bool = True) -> None:
        """Write each given key to its child. Unknown keys are ignored."""
        for key, child_value in value.items():
            child = self._fields.get(key)
            if child is None:
                logger.debug("set_value: no field %r", key)
                continue
            child.set_value(child_value, emit_event=emit_event)

    @action
    def patch_value(self, value: Mapping[str, Any]) -> None:
        for key, child_value in value.items():
            child = self._fields.get(key)
            if child is not None:
                child.patch_value(child_value)

    @action
    def reset(self, value: Any = UNSET) -> None:
        """Reset every child; children named in value reset to that value."""
        values = value if isinstance(value, Mapping) else {}
        self._form_errors.set([])
        self._touched.set(False)
        self._dirty.set(False)
        for key, child in self._fields.items():
            child.reset(values.get(key, UNSET))

    @action
    def reset_to_initial(self) -> None:
        self._form_errors.set([])
        self._touched.set(False)
        self._dirty.set(False)
        for child in self._fields.values():
            child.reset_to_initial()

    # ─── Validation ──────────────────────────────────────────────────────────

    async def validate(self, *, debounce: float | None = None) -> bool:
        """Validate every enabled child, then apply the schema validators.

        Composite-level errors from an earlier run are cleared first.
        Returns True when the group ends up valid. A run overtaken by a
        later validate()/validate_sync() attaches nothing and returns False.
        """
        if not self.validation_active:
            return self.valid.peek()
        is_current = self._next_validation_run()
        self._form_errors.set([])
        children = [child for child in self._fields.values() if not child.disabled.peek()]
        await asyncio.gather(*(child.validate(debounce=debounce) for child in children))
        registrations = self._validation_registry.get_validators()
        if registrations and not await self._validation_applicator.apply(registrations, is_current):
            return False
        return is_current() and self.valid.peek()

    def validate_sync(self) -> bool:
        if not self.validation_active:
            return self.valid.peek()
        self._next_validation_run()
        self._form_errors.set([])
        for child in self._fields.values():
            if not child.disabled.peek():
                child.validate_sync()
        registrations = self._validation_registry.get_validators()
        if registrations:
            self._validation_applicator.apply_sync(registrations)
        return self.valid.peek()

    def _next_validation_run(self) -> Callable[[], bool]:
        """Start a validation run; the returned check is False once a newer run starts."""
        self._validation_generation += 1
        generation = self._validation_generation
        return lambda: generation == self._validation_generation

    async def apply_contextual_validators(self, registrations: list[ValidatorRegistration]) -> bool:
        """Run externally collected schema validators against this group.

        Returns False when a newer validation run superseded this one.
        """
        return await self._validation_applicator.apply(registrations, self._next_validation_run())

    def apply_validation_schema(self, schema: ValidationSchema) -> None:
        """Register schema's validators for this group, replacing earlier ones."""
        self._validation_registry.collect(schema, self)

    @property
    def validators(self) -> list[ValidatorRegistration]:
        return self._validation_registry.get_validators()

    # ─── Errors ──────────────────────────────────────────────────────────────

    def set_errors(self, errors) -> None:
        """Set errors from outside (for example a server response).

        A list sets composite-level errors. A mapping of path -> errors sets
        them on the addressed descendants.
        """
        if isinstance(errors, Mapping):
            for path, node_errors in errors.items():
                node = self.get_field_by_path(path)
                if node is None:
                    logger.warning("set_errors: no node at %r", path)
                    continue
                node.set_errors(node_errors)
            return
        self._form_errors.set(coerce_errors(errors))

    @action
    def clear_errors(self) -> None:
        self._form_errors.set([])
        for child in self._fields.values():
            child.clear_errors()

    # ─── Submit ──────────────────────────────────────────────────────────────

    async def submit(self, on_submit: Callable[[dict[str, Any]], R | Awaitable[R]]) -> R | None:
        """Touch everything, validate, and call on_submit(value) when valid.

        Returns on_submit's result, or None when the group is invalid.
        `submitting` is True for the duration.
        """
        self._submitting.set(True)
        try:
            self.touch_all()
            if not await self.validate():
                logger.debug("submit: form invalid, %d error(s)", len(self.errors.peek()))
                return None
            result = on_submit(self.get_value())
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                result = await result
            return result
        finally:
            self._submitting.set(False)

    # ─── Behaviors ───────────────────────────────────────────────────────────

    def apply_behavior_schema(self, schema: BehaviorSchema) -> Disposer:
        """Wire schema's behaviors into this group. Returns their disposer."""
        return self._behavior_applicator.apply(schema)

    def link_fields(
        self,
        source: PathLike,
        target: PathLike,
        transform: Callable[[Any], Any] | None = None,
    ) -> Disposer:
        """Copy source's value into target now and whenever source changes."""
        source_node = self.get_field_by_path(source)
        target_node = self.get_field_by_path(target)
        if source_node is None or target_node is None:
            logger.warning("link_fields: %r or %r not found", extract_path(source), extract_path(target))
            return noop

        def _copy(value: Any) -> None:
            target_node.set_value(transform(value) if transform else value, emit_event=False)

        r = reaction(lambda: source_node.value.get(), _copy, fire_immediately=True)
        return self._subscriptions.add(unique_key("link_fields"), r.dispose)

    def watch_field(self, path: PathLike, callback: Callable[[Any], None]) -> Disposer:
        """Call callback with the node's value now and on every change."""
        node = self.get_field_by_path(path)
        if node is None:
            logger.warning("watch_field: %r not found", extract_path(path))
            return noop
        r = reaction(lambda: node.value.get(), callback, fire_immediately=True)
        return self._subscriptions.add(unique_key("watch_field"), r.dispose)

    # ─── Flag propagation ────────────────────────────────────────────────────

    def _enabled_children(self) -> list[FormNode]:
        return [child for child in self._fields.values() if not child.disabled.peek()]

    @action
    def _on_mark_as_touched(self) -> None:
        for child in self._enabled_children():
            child.mark_as_touched()

    @action
    def _on_mark_as_untouched(self) -> None:
        for child in self._enabled_children():
            child.mark_as_untouched()

    @action
    def _on_mark_as_dirty(self) -> None:
        for child in self._enabled_children():
            child.mark_as_dirty()

    @action
    def _on_mark_as_pristine(self) -> None:
        for child in self._enabled_children():
            child.mark_as_pristine()

    @action
    def _on_enable(self, was_disabled: bool) -> None:
        for child in self._fields.values():
            child.enable()

    @action
    def _on_disable(self, was_disabled: bool) -> None:
        for child in self._fields.values():
            child.disable()

    def _on_dispose(self) -> None:
        for child in self._fields.values():
            child.dispose()
        self._validation_registry.clear()

    def __repr__(self) -> str:
        return f"GroupNode({list(self._fields)}, status={self.status.peek().value})"
