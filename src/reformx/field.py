"""FieldNode — a single value with validators, flags and UI metadata."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Awaitable, Callable, Generic, TypeVar

from reformx.action import transaction
from reformx.computed import Computed
from reformx.debounce import Debouncer
from reformx.errors import ValidationError, coerce_errors
from reformx.node import UNSET, FieldStatus, FormNode, NodeKind, UpdateOn, _running_loop, as_signal
from reformx.observable import ReadonlySignal, Signal
from reformx.reaction import reaction
from reformx.subscriptions import Disposer, unique_key

logger = logging.getLogger("reformx.field")

T = TypeVar("T")

Validator = Callable[[Any], Any]
AsyncValidator = Callable[[Any], Awaitable[Any]]

_FIELD_CONFIG_KEYS = frozenset(
    {
        "value",
        "component",
        "component_props",
        "validators",
        "async_validators",
        "update_on",
        "debounce",
        "disabled",
    }
)


class FieldNode(FormNode, Generic[T]):
    """A leaf holding one value.

    Usage:
        email = FieldNode("", validators=[required()], update_on="change")
        email.set_value("a@b.c")
        email.valid.get()   # True

    Validation runs every sync validator and collects their errors. Async
    validators run only when every sync validator passed; while they are in
    flight the field is `pending`. Each validation run takes a fresh id, and
    results from a run that is no longer the latest are dropped.
    """

    kind = NodeKind.FIELD

    def __init__(
        self,
        value: T = None,
        *,
        component: Any = None,
        component_props: Mapping[str, Any] | None = None,
        validators: Iterable[Validator] = (),
        async_validators: Iterable[AsyncValidator] = (),
        update_on: UpdateOn | str = UpdateOn.BLUR,
        debounce: float = 0.0,
        disabled: bool = False,
    ) -> None:
        super().__init__()
        self._initial_value = copy.deepcopy(value)
        self._value: Signal[T] = Signal(value)
        self._errors: Signal[list[ValidationError]] = Signal([])
        self._pending = Signal(False)
        self._component_props: Signal[dict[str, Any]] = Signal(dict(component_props or {}))
        self._validators = list(validators)
        self._async_validators = list(async_validators)
        self._update_on = UpdateOn(update_on)
        self._debouncer = Debouncer(debounce)
        self._validation_id = 0
        self._validator_errors: list[ValidationError] = []

        self.component = component
        self.value = ReadonlySignal(self._value)
        self.errors = ReadonlySignal(self._errors)
        self.pending = ReadonlySignal(self._pending)
        self.touched = ReadonlySignal(self._touched)
        self.dirty = ReadonlySignal(self._dirty)
        self.component_props = ReadonlySignal(self._component_props)
        self.status = Computed(self._compute_status)
        self.should_show_error = Computed(
            lambda: self.invalid.get() and (self._touched.get() or self._dirty.get())
        )

        if disabled:
            self._disabled.set(True)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> FieldNode:
        """Build from a field config mapping (must contain "value")."""
        unknown = set(config) - _FIELD_CONFIG_KEYS
        if unknown:
            logger.warning("Ignoring unknown field config keys: %s", ", ".join(sorted(unknown)))
        return cls(
            config["value"],
            component=config.get("component"),
            component_props=config.get("component_props"),
            validators=config.get("validators") or (),
            async_validators=config.get("async_validators") or (),
            update_on=config.get("update_on", UpdateOn.BLUR),
            debounce=config.get("debounce", 0.0),
            disabled=bool(config.get("disabled", False)),
        )

    def _compute_status(self) -> FieldStatus:
        if self._disabled.get():
            return FieldStatus.DISABLED
        if self._pending.get():
            return FieldStatus.PENDING
        if self._errors.get():
            return FieldStatus.INVALID
        return FieldStatus.VALID

    @property
    def initial_value(self) -> T:
        return copy.deepcopy(self._initial_value)

    @property
    def validator_errors(self) -> list[ValidationError]:
        """Errors produced by this field's own validators in their latest run.

        Unlike `errors`, this leaves out errors set from outside (set_errors,
        contextual validators).
        """
        return list(self._validator_errors)

    @property
    def update_on(self) -> UpdateOn:
        return self._update_on

    def set_update_on(self, update_on: UpdateOn | str) -> None:
        self._update_on = UpdateOn(update_on)

    # ─── Values ──────────────────────────────────────────────────────────────

    def get_value(self) -> T:
        return self._value.peek()

    def set_value(self, value: T, *, emit_event: bool = True) -> None:
        """Write the value.

        With emit_event (the default) the field becomes dirty and, when it
        validates on change, validation runs. emit_event=False writes the
        value only: derived and programmatic updates use it.
        """
        self._value.set(value)
        if not emit_event:
            return
        self._dirty.set(True)
        if self._update_on is UpdateOn.CHANGE:
            self.trigger_validation()

    def patch_value(self, value: T) -> None:
        self.set_value(value)

    def reset(self, value: Any = UNSET) -> None:
        self._cancel_validation()
        with transaction():
            self._value.set(self.initial_value if value is UNSET else value)
            self._validator_errors = []
            self._errors.set([])
            self._pending.set(False)
            self._touched.set(False)
            self._dirty.set(False)

    def reset_to_initial(self) -> None:
        self.reset()

    # ─── Validation ──────────────────────────────────────────────────────────

    def _run_sync_validators(self, value: T) -> list[ValidationError]:
        errors: list[ValidationError] = []
        for validator in self._validators:
            error = validator(value)
            if error:
                errors.append(ValidationError.coerce(error))
        return errors

    def _begin_validation(self, *, run_async: bool = True) -> tuple[int, bool]:
        """Sync phase. Returns (validation id, whether async validators should run)."""
        self._validation_id += 1
        validation_id = self._validation_id
        if self._disabled.peek():
            with transaction():
                self._validator_errors = []
                self._errors.set([])
                self._pending.set(False)
            return validation_id, False
        if not self.validation_active:
            self._pending.set(False)
            return validation_id, False

        errors = self._run_sync_validators(self._value.peek())
        self._validator_errors = errors
        with transaction():
            self._errors.set(errors)
            self._pending.set(bool(run_async and not errors and self._async_validators))
        return validation_id, self._pending.peek()

    async def _finish_validation(self, validation_id: int) -> bool:
        value = self._value.peek()
        try:
            results = await asyncio.gather(*(validator(value) for validator in self._async_validators))
        except BaseException:
            if validation_id == self._validation_id:
                self._pending.set(False)
            raise

        if validation_id != self._validation_id:
            logger.debug("Dropping stale async validation result %d (latest is %d)", validation_id, self._validation_id)
            return False

        errors = [ValidationError.coerce(r) for r in results if r]
        self._validator_errors = errors
        with transaction():
            self._errors.set(errors)
            self._pending.set(False)
        return not errors

    async def _validate_now(self) -> bool:
        validation_id, run_async = self._begin_validation()
        if run_async:
            return await self._finish_validation(validation_id)
        return not self._errors.peek()

    async def validate(self, *, debounce: float | None = None) -> bool:
        """Run sync then async validators. Returns True when valid.

        With a debounce (or a configured one), the run is delayed and
        coalesced with other debounced calls; a superseded caller gets
        asyncio.CancelledError.
        """
        delay = self._debouncer.delay if debounce is None else debounce
        if delay > 0:
            return await self._debouncer.debounce(self._validate_now, delay)
        return await self._validate_now()

    def validate_sync(self) -> bool:
        """Run sync validators only. Any in-flight async run is superseded."""
        self._begin_validation(run_async=False)
        return not self._disabled.peek() and not self._errors.peek()

    def trigger_validation(self) -> None:
        if self._disabled.peek():
            return
        if _running_loop() is None:
            if self._async_validators:
                logger.debug("No running event loop; async validators skipped")
            self.validate_sync()
            return
        if self._debouncer.delay > 0:
            self._spawn(self.validate())
            return
        validation_id, run_async = self._begin_validation()
        if run_async:
            self._spawn(self._finish_validation(validation_id))

    def _cancel_validation(self) -> None:
        self._validation_id += 1
        self._debouncer.cancel()

    # ─── Errors ──────────────────────────────────────────────────────────────

    def set_errors(self, errors: Iterable[ValidationError | Mapping[str, Any]]) -> None:
        """Replace the errors. Supersedes any in-flight validation run."""
        self._validation_id += 1
        with transaction():
            self._errors.set(coerce_errors(errors))
            self._pending.set(False)

    def clear_errors(self) -> None:
        self.set_errors([])

    # ─── Flags ───────────────────────────────────────────────────────────────

    def _on_mark_as_touched(self) -> None:
        if self._update_on is UpdateOn.BLUR:
            self.trigger_validation()

    def _on_enable(self, was_disabled: bool) -> None:
        if was_disabled:
            self.trigger_validation()

    def _on_disable(self, was_disabled: bool) -> None:
        self._cancel_validation()
        self._validator_errors = []
        with transaction():
            self._errors.set([])
            self._pending.set(False)

    # ─── UI metadata ─────────────────────────────────────────────────────────

    def update_component_props(self, props: Mapping[str, Any]) -> None:
        """Merge props into component_props."""
        self._component_props.set({**self._component_props.peek(), **props})

    # ─── Subscriptions ───────────────────────────────────────────────────────

    def watch(self, callback: Callable[[T], None]) -> Disposer:
        """Call callback with the current value now and on every change."""
        r = reaction(lambda: self._value.get(), callback, fire_immediately=True)
        return self._subscriptions.add(unique_key("watch"), r.dispose)

    def compute_from(self, sources: Iterable[Any], fn: Callable[..., T]) -> Disposer:
        """Keep this value equal to fn(*source_values).

        Sources are nodes or signals. The write does not mark the field dirty.
        """
        signals = [as_signal(source) for source in sources]
        r = reaction(
            lambda: tuple(s.get() for s in signals),
            lambda values: self.set_value(fn(*values), emit_event=False),
            fire_immediately=True,
        )
        return self._subscriptions.add(unique_key("compute_from"), r.dispose)

    def _on_dispose(self) -> None:
        self._cancel_validation()

    def __repr__(self) -> str:
        return f"FieldNode({self._value.peek()!r}, status={self.status.peek().value})"
