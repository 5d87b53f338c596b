"""Behavior rules for use inside a behavior schema function.

Every rule takes paths (FieldPath handles or strings), registers itself with
the active BehaviorRegistry, and is wired when the schema is applied. Rules
with a reactive effect accept `debounce` (seconds): the effect then runs
through the rule's own Debouncer.

Conditions receive the form's current value (a dict); callbacks receive the
value(s) and a BehaviorContext.

The composition rules here are named apply and apply_when, like their
validation counterparts; the package exports them as apply_behavior and
apply_behavior_when.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from types import SimpleNamespace
from typing import Any, Callable

from reformx.behavior import BehaviorContext, BehaviorSchema, WithDebounce, register_behavior
from reformx.node import UNSET, FormNode, NodeKind
from reformx.paths import PathLike, extract_path
from reformx.reaction import reaction

logger = logging.getLogger("reformx.behaviors")

Condition = Callable[[dict[str, Any]], bool]


def _resolve(form, path: str, rule: str) -> FormNode | None:
    node = form.get_field_by_path(path)
    if node is None:
        logger.debug("%s: %r did not resolve, rule skipped", rule, path)
    return node


def _resolve_all(form, paths: Sequence[str], rule: str) -> list[FormNode] | None:
    nodes = [_resolve(form, path, rule) for path in paths]
    if any(node is None for node in nodes):
        return None
    return nodes


# ─── Derived values ──────────────────────────────────────────────────────────


def compute_from(
    sources: Iterable[PathLike],
    target: PathLike,
    fn: Callable[..., Any],
    *,
    condition: Condition | None = None,
    debounce: float | None = None,
) -> None:
    """Keep target equal to fn(*source_values).

    The write does not mark target dirty. With a condition, recomputation is
    skipped while condition(form_value) is false.
    """
    source_paths = [extract_path(source) for source in sources]
    target_path = extract_path(target)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        target_node = _resolve(form, target_path, "compute_from")
        source_nodes = _resolve_all(form, source_paths, "compute_from")
        if target_node is None or source_nodes is None:
            return None

        def _apply(values: tuple) -> None:
            if condition is not None and not condition(form.get_value()):
                return
            target_node.set_value(fn(*values), emit_event=False)

        r = reaction(
            lambda: tuple(node.value.get() for node in source_nodes),
            lambda values: with_debounce(lambda: _apply(values)),
            fire_immediately=True,
        )
        return r.dispose

    register_behavior(handler, name="compute_from", debounce=debounce)


def transform_value(
    field: PathLike,
    transformer: Callable[[Any], Any],
    *,
    on_user_change_only: bool = False,
    emit_event: bool = True,
    debounce: float | None = None,
) -> None:
    """Rewrite field's value through transformer whenever it changes.

    transformer must be idempotent (transformer(transformer(v)) == transformer(v)).
    With on_user_change_only, untouched fields are left alone.
    """
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "transform_value")
        if node is None:
            return None

        def _apply(value: Any) -> None:
            if on_user_change_only and not node.touched.peek():
                return
            transformed = transformer(value)
            if transformed != value:
                node.set_value(transformed, emit_event=emit_event)

        r = reaction(lambda: node.value.get(), lambda value: with_debounce(lambda: _apply(value)))
        return r.dispose

    register_behavior(handler, name="transform_value", debounce=debounce)


def create_transformer(transformer: Callable[[Any], Any], **defaults: Any) -> Callable[..., None]:
    """Turn a value function into a reusable rule: rule(field, **options)."""

    def rule(field: PathLike, **options: Any) -> None:
        transform_value(field, transformer, **{**defaults, **options})

    rule.__name__ = getattr(transformer, "__name__", "transformer")
    return rule


def _strings_only(fn: Callable[[str], Any]) -> Callable[[Any], Any]:
    def transform(value: Any) -> Any:
        return fn(value) if isinstance(value, str) else value

    return transform


def _numbers_only(fn: Callable[[float], Any]) -> Callable[[Any], Any]:
    def transform(value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return value
        return fn(value)

    return transform


transformers = SimpleNamespace(
    to_upper=create_transformer(_strings_only(str.upper)),
    to_lower=create_transformer(_strings_only(str.lower)),
    trim=create_transformer(_strings_only(str.strip)),
    remove_spaces=create_transformer(_strings_only(lambda s: s.replace(" ", ""))),
    digits_only=create_transformer(_strings_only(lambda s: "".join(c for c in s if c.isdigit()))),
    round=create_transformer(_numbers_only(round)),
    round_to_2=create_transformer(_numbers_only(lambda n: round(n, 2))),
)


# ─── Enablement and visibility ───────────────────────────────────────────────


def enable_when(
    field: PathLike,
    condition: Condition,
    *,
    reset_on_disable: bool = False,
    debounce: float | None = None,
) -> None:
    """Enable field while condition(form_value) holds, disable it otherwise.

    With reset_on_disable, the field is reset to its initial value when it
    gets disabled. Re-enabling re-runs its validation.
    """
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "enable_when")
        if node is None:
            return None

        def _toggle(enabled: bool) -> None:
            if enabled:
                if node.disabled.peek():
                    node.enable()
                return
            if not node.disabled.peek():
                node.disable()
            if reset_on_disable:
                node.reset()

        r = reaction(
            lambda: bool(condition(form.value.get())),
            lambda enabled: with_debounce(lambda: _toggle(enabled)),
            fire_immediately=True,
        )
        return r.dispose

    register_behavior(handler, name="enable_when", debounce=debounce)


def disable_when(
    field: PathLike,
    condition: Condition,
    *,
    reset_on_disable: bool = False,
    debounce: float | None = None,
) -> None:
    enable_when(field, lambda value: not condition(value), reset_on_disable=reset_on_disable, debounce=debounce)


def show_when(field: PathLike, condition: Condition, *, debounce: float | None = None) -> None:
    """Set the field's `hidden` component prop to `not condition(form_value)`."""
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "show_when")
        if node is None:
            return None
        if node.kind is not NodeKind.FIELD:
            logger.warning("show_when: %r has no component props", path)
            return None

        r = reaction(
            lambda: bool(condition(form.value.get())),
            lambda shown: with_debounce(lambda: node.update_component_props({"hidden": not shown})),
            fire_immediately=True,
        )
        return r.dispose

    register_behavior(handler, name="show_when", debounce=debounce)


def hide_when(field: PathLike, condition: Condition, *, debounce: float | None = None) -> None:
    show_when(field, lambda value: not condition(value), debounce=debounce)


def reset_when(
    field: PathLike,
    condition: Condition,
    *,
    reset_value: Any = UNSET,
    only_if_dirty: bool = False,
    debounce: float | None = None,
) -> None:
    """Reset field each time condition(form_value) becomes true."""
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "reset_when")
        if node is None:
            return None

        def _reset() -> None:
            if only_if_dirty and not node.dirty.peek():
                return
            node.reset(reset_value)

        def _effect(active: bool) -> None:
            if active:
                with_debounce(_reset)

        r = reaction(lambda: bool(condition(form.value.get())), _effect)
        return r.dispose

    register_behavior(handler, name="reset_when", debounce=debounce)


# ─── Copying and linking ─────────────────────────────────────────────────────


def copy_from(
    source: PathLike,
    target: PathLike,
    *,
    when: Condition | None = None,
    fields: str | Sequence[str] = "all",
    transform: Callable[[Any], Any] | None = None,
    debounce: float | None = None,
) -> None:
    """Copy source's value into target now and whenever source changes.

    when: copy only while when(form_value) holds.
    fields: for group sources, the keys to copy ("all" by default).
    """
    source_path = extract_path(source)
    target_path = extract_path(target)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        source_node = _resolve(form, source_path, "copy_from")
        target_node = _resolve(form, target_path, "copy_from")
        if source_node is None or target_node is None:
            return None

        def _copy(value: Any) -> None:
            if when is not None and not when(form.get_value()):
                return
            if fields != "all" and isinstance(value, Mapping):
                value = {key: value[key] for key in fields if key in value}
            if transform is not None:
                value = transform(value)
            target_node.set_value(value, emit_event=False)

        r = reaction(
            lambda: source_node.value.get(),
            lambda value: with_debounce(lambda: _copy(value)),
            fire_immediately=True,
        )
        return r.dispose

    register_behavior(handler, name="copy_from", debounce=debounce)


def link_fields(
    source: PathLike,
    target: PathLike,
    transform: Callable[[Any], Any] | None = None,
    *,
    debounce: float | None = None,
) -> None:
    """One-way link: target follows source (optionally transformed)."""
    copy_from(source, target, transform=transform, debounce=debounce)


def sync_fields(
    first: PathLike,
    second: PathLike,
    *,
    transform: Callable[[Any], Any] | None = None,
    debounce: float | None = None,
) -> None:
    """Two-way link: a change to either field is written to the other.

    first's value is copied into second on setup.
    """
    first_path = extract_path(first)
    second_path = extract_path(second)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        nodes = _resolve_all(form, [first_path, second_path], "sync_fields")
        if nodes is None:
            return None
        first_node, second_node = nodes
        syncing = False

        def _copy(target: FormNode, value: Any) -> None:
            nonlocal syncing
            if syncing:
                return
            syncing = True
            try:
                target.set_value(transform(value) if transform else value, emit_event=False)
            finally:
                syncing = False

        forward = reaction(
            lambda: first_node.value.get(),
            lambda value: with_debounce(lambda: _copy(second_node, value)),
            fire_immediately=True,
        )
        backward = reaction(
            lambda: second_node.value.get(),
            lambda value: with_debounce(lambda: _copy(first_node, value)),
        )

        def _dispose() -> None:
            forward.dispose()
            backward.dispose()

        return _dispose

    register_behavior(handler, name="sync_fields", debounce=debounce)


# ─── Observation ─────────────────────────────────────────────────────────────


def watch_field(
    field: PathLike,
    callback: Callable[[Any, BehaviorContext], None],
    *,
    immediate: bool = False,
    debounce: float | None = None,
) -> None:
    """Call callback(value, ctx) when field changes (and on setup if immediate)."""
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "watch_field")
        if node is None:
            return None
        r = reaction(
            lambda: node.value.get(),
            lambda value: with_debounce(lambda: callback(value, ctx)),
            fire_immediately=immediate,
        )
        return r.dispose

    register_behavior(handler, name="watch_field", debounce=debounce)


def watch_items(
    array: PathLike,
    field_key: str,
    callback: Callable[[list[Any], BehaviorContext], None],
    *,
    debounce: float | None = None,
) -> None:
    """Call callback(values, ctx) with field_key from every item, on setup and on change."""
    path = extract_path(array)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "watch_items")
        if node is None:
            return None
        if node.kind is not NodeKind.ARRAY:
            logger.warning("watch_items: %r is not an array", path)
            return None
        return node.watch_items(field_key, lambda values: with_debounce(lambda: callback(values, ctx)))

    register_behavior(handler, name="watch_items", debounce=debounce)


def revalidate_when(
    target: PathLike,
    triggers: Iterable[PathLike],
    *,
    debounce: float | None = None,
) -> None:
    """Re-run target's validation whenever any trigger field changes."""
    target_path = extract_path(target)
    trigger_paths = [extract_path(trigger) for trigger in triggers]

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        target_node = _resolve(form, target_path, "revalidate_when")
        trigger_nodes = _resolve_all(form, trigger_paths, "revalidate_when")
        if target_node is None or trigger_nodes is None:
            return None
        r = reaction(
            lambda: tuple(node.value.get() for node in trigger_nodes),
            lambda _: with_debounce(target_node.trigger_validation),
        )
        return r.dispose

    register_behavior(handler, name="revalidate_when", debounce=debounce)


# ─── Conditional validation ──────────────────────────────────────────────────


def validate_when(
    field: PathLike,
    condition: Condition,
    *,
    clear_errors_when_inactive: bool = False,
    debounce: float | None = None,
) -> None:
    """Validate field only while condition(form_value) holds.

    While inactive, validate()/validate_sync() on the field (and contextual
    validators aimed at it) are skipped and its errors are left as they are,
    or cleared with clear_errors_when_inactive. Becoming active again
    re-runs its validation.
    """
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "validate_when")
        if node is None:
            return None
        state = {"active": True}

        def _toggle(active: bool) -> None:
            was_active = state["active"]
            state["active"] = active
            if active and not was_active:
                node.trigger_validation()
            elif not active and clear_errors_when_inactive:
                node.clear_errors()

        remove_gate = node.add_validation_gate(lambda: state["active"])
        r = reaction(
            lambda: bool(condition(form.value.get())),
            lambda active: with_debounce(lambda: _toggle(active)),
            fire_immediately=True,
        )

        def _dispose() -> None:
            r.dispose()
            remove_gate()

        return _dispose

    register_behavior(handler, name="validate_when", debounce=debounce)


def skip_validation_when(
    field: PathLike,
    condition: Condition,
    *,
    clear_errors_when_inactive: bool = False,
    debounce: float | None = None,
) -> None:
    validate_when(
        field,
        lambda value: not condition(value),
        clear_errors_when_inactive=clear_errors_when_inactive,
        debounce=debounce,
    )


# ─── Composition ─────────────────────────────────────────────────────────────


def apply(field: PathLike, schema: BehaviorSchema) -> None:
    """Apply a behavior schema to the group or array at field.

    The schema's paths are relative to that node. For an array the schema is
    applied to every item, including items added later.
    """
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "apply")
        if node is None:
            return None
        if node.kind is NodeKind.FIELD:
            logger.warning("apply: %r is a field, not a group or array", path)
            return None
        return node.apply_behavior_schema(schema)

    register_behavior(handler, name="apply")


def apply_when(
    field: PathLike,
    condition: Callable[[Any], bool],
    schema: BehaviorSchema,
    *,
    debounce: float | None = None,
) -> None:
    """Keep schema's rules wired only while condition(field_value) holds.

    schema's paths are rooted at the form. The rules are torn down when the
    condition turns false and wired afresh when it turns true again.
    """
    path = extract_path(field)

    def handler(form, ctx: BehaviorContext, with_debounce: WithDebounce):
        node = _resolve(form, path, "apply_when")
        if node is None:
            return None
        current = {"dispose": None}

        def _teardown() -> None:
            dispose, current["dispose"] = current["dispose"], None
            if dispose is not None:
                dispose()

        def _toggle(active: bool) -> None:
            if active and current["dispose"] is None:
                current["dispose"] = form.apply_behavior_schema(schema)
            elif not active:
                _teardown()

        r = reaction(
            lambda: bool(condition(node.value.get())),
            lambda active: with_debounce(lambda: _toggle(active)),
            fire_immediately=True,
        )

        def _dispose() -> None:
            r.dispose()
            _teardown()

        return _dispose

    register_behavior(handler, name="apply_when", debounce=debounce)
