"""Behavior schemas: registry, context and applicator.

A behavior schema is a function taking a FieldPath handle. The rule
functions it calls (compute_from, enable_when, watch_field, ...) do not
touch the form directly: they register a handler with the registry that is
collecting for the current apply_behavior_schema() call. The applicator then
runs every handler against the form and folds their disposers into one.

    def behavior(path):
        compute_from([path.price, path.quantity], path.total, lambda p, q: p * q)
        enable_when(path.discount_code, lambda form: form["total"] > 100)

    dispose = form.apply_behavior_schema(behavior)

Registries are per application, never process-wide; the active one is
found through a context variable, the same way derivations are tracked.
"""

from __future__ import annotations

import contextvars
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Mapping

from reformx.debounce import Debouncer
from reformx.errors import RegistrationError
from reformx.paths import FieldPath, PathLike, extract_path, get_form_node_value
from reformx.subscriptions import Disposer, combine, unique_key

if TYPE_CHECKING:
    from reformx.group import GroupNode
    from reformx.node import FormNode

logger = logging.getLogger("reformx.behavior")

BehaviorSchema = Callable[[FieldPath], None]
WithDebounce = Callable[[Callable[[], None]], None]
BehaviorHandler = Callable[["GroupNode", "BehaviorContext", WithDebounce], "Disposer | None"]

_current_registry: contextvars.ContextVar[BehaviorRegistry | None] = contextvars.ContextVar(
    "reformx_behavior_registry", default=None
)


@dataclass
class BehaviorRegistration:
    handler: BehaviorHandler
    name: str
    debounce: float | None = None


class BehaviorRegistry:
    """Collects the rules registered while one behavior schema runs."""

    def __init__(self) -> None:
        self._registrations: list[BehaviorRegistration] = []
        self._token: contextvars.Token | None = None

    def begin_registration(self) -> None:
        self._registrations = []
        self._token = _current_registry.set(self)

    def end_registration(self) -> list[BehaviorRegistration]:
        if self._token is not None:
            _current_registry.reset(self._token)
            self._token = None
        registrations, self._registrations = self._registrations, []
        return registrations

    def register(self, handler: BehaviorHandler, *, name: str, debounce: float | None = None) -> None:
        self._registrations.append(BehaviorRegistration(handler, name, debounce))

    def __len__(self) -> int:
        return len(self._registrations)


def get_current_behavior_registry() -> BehaviorRegistry:
    registry = _current_registry.get()
    if registry is None:
        raise RegistrationError("Behavior rules can only be used inside a behavior schema function")
    return registry


def register_behavior(handler: BehaviorHandler, *, name: str, debounce: float | None = None) -> None:
    get_current_behavior_registry().register(handler, name=name, debounce=debounce)


class BehaviorContext:
    """What behavior callbacks get to work with: path-based access to the form."""

    def __init__(self, form: GroupNode) -> None:
        self.form_node = form

    def get_field(self, path: PathLike) -> Any:
        """Current value at path (untracked), or None."""
        return get_form_node_value(self.form_node, extract_path(path))

    def set_field(self, path: PathLike, value: Any) -> None:
        """Write value at path without marking it dirty."""
        node = self._require(path)
        if node is not None:
            node.set_value(value, emit_event=False)

    def get_field_node(self, path: PathLike) -> FormNode | None:
        return self.form_node.get_field_by_path(path)

    def get_form(self) -> dict[str, Any]:
        return self.form_node.get_value()

    async def validate_field(self, path: PathLike) -> bool:
        node = self._require(path)
        if node is None:
            return False
        return await node.validate()

    def set_errors(self, path: PathLike, errors) -> None:
        node = self._require(path)
        if node is not None:
            node.set_errors(errors)

    def clear_errors(self, path: PathLike) -> None:
        node = self._require(path)
        if node is not None:
            node.clear_errors()

    def update_component_props(self, path: PathLike, props: Mapping[str, Any]) -> None:
        node = self._require(path)
        if node is None:
            return
        if not hasattr(node, "update_component_props"):
            logger.warning("update_component_props: %r has no component props", extract_path(path))
            return
        node.update_component_props(props)

    def _require(self, path: PathLike) -> FormNode | None:
        node = self.form_node.get_field_by_path(path)
        if node is None:
            logger.warning("BehaviorContext: no node at %r", extract_path(path))
        return node


class BehaviorApplicator:
    """Runs a behavior schema against one form and owns the resulting wiring."""

    def __init__(self, form: GroupNode) -> None:
        self._form = form

    def apply(self, schema: BehaviorSchema) -> Disposer:
        registry = BehaviorRegistry()
        registry.begin_registration()
        try:
            schema(FieldPath())
        finally:
            registrations = registry.end_registration()

        context = BehaviorContext(self._form)
        disposers: list[Disposer] = []
        for registration in registrations:
            debouncer = Debouncer(registration.debounce) if registration.debounce else None
            dispose = registration.handler(self._form, context, _with_debounce(debouncer))
            if dispose is not None:
                disposers.append(dispose)
            if debouncer is not None:
                disposers.append(debouncer.cancel)

        logger.debug("Applied behavior schema: %d rule(s), %d active", len(registrations), len(disposers))
        return self._form._subscriptions.add(unique_key("behavior_schema"), combine(disposers))


def _with_debounce(debouncer: Debouncer | None) -> WithDebounce:
    if debouncer is None:
        return lambda fn: fn()
    return debouncer.call
