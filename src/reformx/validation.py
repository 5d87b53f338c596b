"""Validation schemas — contextual, cross-field validators registered per form.

A validation schema is a function taking a FieldPath handle and calling the
rule functions below:

    def validation(path):
        validate(path.email, lambda value, ctx: None if "@" in value else {"message": "Invalid"})
        validate_tree(
            lambda ctx: None if ctx.get_field("password") == ctx.get_field("confirm")
            else {"code": "mismatch", "message": "Passwords differ"},
            target_field="confirm",
        )
        apply_when(path.has_company, lambda v: v, lambda p: validate(p.company, required_ctx))
        validate_items(path.items, item_validation)

Registrations live in a ValidationRegistry owned by the form that applied
the schema, never in a shared table. The ValidationApplicator runs them
after the fields' own validators and appends their errors to the field
(or, for tree validators without a target, to the form itself).
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Literal

from reformx.errors import ErrorStrategy, FormErrorHandler, RegistrationError, ValidationError
from reformx.node import FormNode, NodeKind, iter_field_nodes
from reformx.paths import FieldPath, PathLike, extract_path, get_form_node_value

if TYPE_CHECKING:
    from reformx.group import GroupNode

logger = logging.getLogger("reformx.validation")

ValidationSchema = Callable[[FieldPath], None]
ContextValidator = Callable[[Any, "ValidationContext"], Any]
TreeValidator = Callable[["TreeValidationContext"], Any]

_current_registry: contextvars.ContextVar[ValidationRegistry | None] = contextvars.ContextVar(
    "reformx_validation_registry", default=None
)


@dataclass(frozen=True)
class Condition:
    field_path: str
    predicate: Callable[[Any], bool]


@dataclass
class ValidatorRegistration:
    field_path: str
    type: Literal["sync", "async", "tree", "array_items"]
    validator: Callable[..., Any]
    target_field: str | None = None
    conditions: tuple[Condition, ...] = ()


class RegistrationContext:
    """Registrations and open apply_when() conditions for one schema run."""

    def __init__(self) -> None:
        self.validators: list[ValidatorRegistration] = []
        self._conditions: list[Condition] = []

    def add(self, registration: ValidatorRegistration) -> None:
        registration.conditions = tuple(self._conditions)
        self.validators.append(registration)

    def enter_condition(self, field_path: str, predicate: Callable[[Any], bool]) -> None:
        self._conditions.append(Condition(field_path, predicate))

    def exit_condition(self) -> None:
        self._conditions.pop()


class ValidationRegistry:
    """Per-form store of contextual validators."""

    def __init__(self) -> None:
        self._validators: list[ValidatorRegistration] = []
        self._stack: list[tuple[RegistrationContext, contextvars.Token]] = []

    def begin_registration(self) -> RegistrationContext:
        context = RegistrationContext()
        token = _current_registry.set(self)
        self._stack.append((context, token))
        return context

    def end_registration(self) -> list[ValidatorRegistration]:
        context, token = self._stack.pop()
        _current_registry.reset(token)
        return context.validators

    def current_context(self) -> RegistrationContext:
        if not self._stack:
            raise RegistrationError("No validation schema is being registered")
        return self._stack[-1][0]

    def collect(self, schema: ValidationSchema, form: GroupNode) -> None:
        """Run schema, keep its field/tree validators, hand item schemas to arrays."""
        self.begin_registration()
        try:
            schema(FieldPath())
        finally:
            registrations = self.end_registration()

        self._validators = [r for r in registrations if r.type != "array_items"]
        for registration in registrations:
            if registration.type == "array_items":
                _apply_item_schema(form, registration)
        logger.debug("Registered %d validator(s)", len(self._validators))

    def register(self, registration: ValidatorRegistration) -> None:
        self.current_context().add(registration)

    def enter_condition(self, field_path: str, predicate: Callable[[Any], bool]) -> None:
        self.current_context().enter_condition(field_path, predicate)

    def exit_condition(self) -> None:
        self.current_context().exit_condition()

    def get_validators(self) -> list[ValidatorRegistration]:
        return list(self._validators)

    def clear(self) -> None:
        self._validators = []

    def __len__(self) -> int:
        return len(self._validators)


def _apply_item_schema(form: GroupNode, registration: ValidatorRegistration) -> None:
    node = form.get_field_by_path(registration.field_path)
    if node is None or node.kind is not NodeKind.ARRAY:
        logger.warning("validate_items: %r is not an array", registration.field_path)
        return
    node.apply_validation_schema(registration.validator)


def get_current_registry() -> ValidationRegistry:
    registry = _current_registry.get()
    if registry is None:
        raise RegistrationError("Validation rules can only be used inside a validation schema function")
    return registry


# ─── Contexts ────────────────────────────────────────────────────────────────


class TreeValidationContext:
    """Read access to the whole form for cross-field validators."""

    def __init__(self, form: GroupNode) -> None:
        self._form = form

    def get_field(self, path: PathLike) -> Any:
        return get_form_node_value(self._form, extract_path(path))

    def form_value(self) -> dict[str, Any]:
        return self._form.get_value()

    def get_form(self) -> GroupNode:
        return self._form


class ValidationContext(TreeValidationContext):
    """Context for a validator attached to one field."""

    def __init__(self, form: GroupNode, field_path: str, control: FormNode) -> None:
        super().__init__(form)
        self.field_path = field_path
        self._control = control

    def value(self) -> Any:
        return self._control.get_value()

    def set_field(self, path: PathLike, value: Any) -> None:
        node = self._form.get_field_by_path(path)
        if node is None:
            logger.warning("set_field: no node at %r", extract_path(path))
            return
        node.set_value(value, emit_event=False)

    def get_control(self) -> FormNode:
        return self._control


# ─── Applicator ──────────────────────────────────────────────────────────────


def _always() -> bool:
    return True


def _own_errors(node: FormNode) -> list[ValidationError]:
    if node.kind is NodeKind.GROUP:
        return node.form_errors.peek()
    if node.kind is NodeKind.ARRAY:
        return node.array_errors.peek()
    return node.validator_errors


class _ErrorRun:
    """Contextual errors of one applicator pass, kept apart from the nodes until commit()."""

    def __init__(self) -> None:
        self._entries: dict[int, tuple[FormNode, list[ValidationError], list[ValidationError]]] = {}

    def track(self, node: FormNode) -> None:
        if id(node) not in self._entries:
            self._entries[id(node)] = (node, list(_own_errors(node)), [])

    def add(self, node: FormNode, error: Any) -> None:
        self.track(node)
        if error:
            self._entries[id(node)][2].append(ValidationError.coerce(error))

    def commit(self) -> None:
        # Fields end up with their own validator output plus this pass's
        # errors; composites keep their own errors and gain this pass's.
        for node, base, added in self._entries.values():
            if added or node.kind is NodeKind.FIELD:
                node.set_errors([*base, *added])


class ValidationApplicator:
    """Runs a form's contextual validators and attaches their errors."""

    def __init__(self, form: GroupNode) -> None:
        self._form = form

    async def apply(
        self,
        registrations: list[ValidatorRegistration],
        is_current: Callable[[], bool] = _always,
    ) -> bool:
        """Run field, async and tree validators, then attach their errors.

        is_current is checked once the async validators have settled; when it
        returns False nothing is attached and the result is False.
        """
        run = _ErrorRun()
        targets = self._targets(registrations)
        for _, control, _ in targets:
            run.track(control)

        for path, control, group in targets:
            context = ValidationContext(self._form, path, control)
            for registration in group:
                if not self._conditions_hold(registration):
                    continue
                error = self._call(registration, control.get_value(), context)
                if inspect.isawaitable(error):
                    error = await self._await(registration, error)
                run.add(control, error)

        if not is_current():
            logger.debug("Dropping contextual validation results from a superseded run")
            return False
        self._apply_tree(registrations, run)
        run.commit()
        return True

    def apply_sync(self, registrations: list[ValidatorRegistration]) -> None:
        """Like apply(), skipping async validators."""
        run = _ErrorRun()
        targets = self._targets([r for r in registrations if r.type != "async"])
        for _, control, _ in targets:
            run.track(control)

        for path, control, group in targets:
            context = ValidationContext(self._form, path, control)
            for registration in group:
                if self._conditions_hold(registration):
                    run.add(control, self._call(registration, control.get_value(), context))

        self._apply_tree(registrations, run)
        run.commit()

    def _targets(
        self, registrations: list[ValidatorRegistration]
    ) -> list[tuple[str, FormNode, list[ValidatorRegistration]]]:
        grouped: dict[str, list[ValidatorRegistration]] = {}
        for registration in registrations:
            if registration.type in ("sync", "async"):
                grouped.setdefault(registration.field_path, []).append(registration)
        targets = []
        for path, group in grouped.items():
            control = self._resolve(path)
            if control is not None:
                targets.append((path, control, group))
        return targets

    def _resolve(self, path: str) -> FormNode | None:
        control = self._form.get_field_by_path(path)
        if control is None:
            logger.warning("Validator registered for unknown field %r", path)
            return None
        if not _validates(control):
            return None
        return control

    def _conditions_hold(self, registration: ValidatorRegistration) -> bool:
        for condition in registration.conditions:
            node = self._form.get_field_by_path(condition.field_path)
            if node is None:
                logger.debug("Condition field %r not found, validator skipped", condition.field_path)
                return False
            if not condition.predicate(node.get_value()):
                return False
        return True

    def _call(self, registration: ValidatorRegistration, *args: Any) -> Any:
        try:
            return registration.validator(*args)
        except Exception as exc:
            FormErrorHandler.handle(exc, f"ValidationApplicator: {registration.field_path}", ErrorStrategy.LOG)
            return None

    async def _await(self, registration: ValidatorRegistration, awaitable) -> Any:
        try:
            return await awaitable
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            FormErrorHandler.handle(exc, f"ValidationApplicator: {registration.field_path}", ErrorStrategy.LOG)
            return None

    def _apply_tree(self, registrations: list[ValidatorRegistration], run: _ErrorRun) -> None:
        context = TreeValidationContext(self._form)
        for registration in registrations:
            if registration.type != "tree":
                continue
            if registration.target_field is None:
                target = self._form
            else:
                target = self._form.get_field_by_path(registration.target_field)
                if target is None:
                    logger.warning("Tree validator target %r not found", registration.target_field)
                    continue
                if not _validates(target):
                    continue
            if not self._conditions_hold(registration):
                continue
            run.add(target, self._call(registration, context))


def _validates(node: FormNode) -> bool:
    return not node.disabled.peek() and node.validation_active


# ─── Schema rules ────────────────────────────────────────────────────────────


def validate(field: PathLike, validator: ContextValidator) -> None:
    """Register validator(value, ctx) for field."""
    get_current_registry().register(ValidatorRegistration(extract_path(field), "sync", validator))


def validate_async(field: PathLike, validator: Callable[[Any, ValidationContext], Any]) -> None:
    """Register an async validator(value, ctx) for field."""
    get_current_registry().register(ValidatorRegistration(extract_path(field), "async", validator))


def validate_tree(validator: TreeValidator, *, target_field: PathLike | None = None) -> None:
    """Register a cross-field validator(ctx).

    Its error goes to target_field when given, otherwise to the form.
    """
    target = extract_path(target_field) if target_field is not None else None
    get_current_registry().register(ValidatorRegistration("", "tree", validator, target_field=target))


def apply_when(field: PathLike, condition: Callable[[Any], bool], schema: ValidationSchema) -> None:
    """Validators registered by schema only run while condition(field_value) holds."""
    registry = get_current_registry()
    registry.enter_condition(extract_path(field), condition)
    try:
        schema(FieldPath())
    finally:
        registry.exit_condition()


def apply(field: PathLike, schema: ValidationSchema) -> None:
    """Run a nested schema with its paths rooted at field."""
    schema(field if isinstance(field, FieldPath) else FieldPath(field))


def validate_items(field: PathLike, item_schema: ValidationSchema) -> None:
    """Apply item_schema to every item of the array at field (and to future items)."""
    get_current_registry().register(ValidatorRegistration(extract_path(field), "array_items", item_schema))


async def validate_form(form: GroupNode, schema: ValidationSchema) -> bool:
    """Validate form against schema without registering schema on the form."""
    registry = ValidationRegistry()
    registry.begin_registration()
    try:
        schema(FieldPath())
    finally:
        registrations = registry.end_registration()

    form.clear_errors()
    fields = [node for node in iter_field_nodes(form) if not node.disabled.peek()]
    await asyncio.gather(*(node.validate() for node in fields))
    contextual = [r for r in registrations if r.type != "array_items"]
    if not await form.apply_contextual_validators(contextual):
        return False
    return form.valid.peek()
