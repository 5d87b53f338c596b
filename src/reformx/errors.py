"""Validation errors, error filters and the exception hierarchy."""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger("reformx.errors")


class FormError(Exception):
    """Base class for errors raised by reformx."""


class InvalidPathError(FormError, ValueError):
    """A path string does not match the `a.b[2].c` grammar."""


class PathStructureError(FormError, TypeError):
    """A write path needs a list at a position that holds something else."""


class RegistrationError(FormError, RuntimeError):
    """A schema rule was called outside a schema function."""


@dataclass(slots=True)
class ValidationError:
    """A single validation failure attached to a node."""

    code: str
    message: str
    params: dict[str, Any] | None = None
    severity: str = "error"

    @classmethod
    def coerce(cls, error: ValidationError | Mapping[str, Any]) -> ValidationError:
        """Accept a ValidationError or a plain mapping (`code` defaults to "custom")."""
        if isinstance(error, ValidationError):
            return error
        if isinstance(error, Mapping):
            return cls(
                code=str(error.get("code", "custom")),
                message=str(error.get("message", "")),
                params=dict(error["params"]) if error.get("params") else None,
                severity=str(error.get("severity", "error")),
            )
        raise TypeError(f"Expected ValidationError or mapping, got {type(error).__name__}")


def coerce_errors(errors: Iterable[ValidationError | Mapping[str, Any]] | None) -> list[ValidationError]:
    if not errors:
        return []
    return [ValidationError.coerce(e) for e in errors]


@dataclass
class ErrorFilter:
    """Criteria for get_errors(). All given criteria must match.

    code: a single code or a collection of accepted codes.
    message: substring the message must contain.
    params: every key/value here must be present and equal in error.params.
    predicate: arbitrary test.
    """

    code: str | Iterable[str] | None = None
    message: str | None = None
    params: Mapping[str, Any] | None = None
    predicate: Callable[[ValidationError], bool] | None = None
    _codes: frozenset[str] | None = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.code, str):
            self._codes = frozenset((self.code,))
        elif self.code is not None:
            self._codes = frozenset(self.code)

    def matches(self, error: ValidationError) -> bool:
        if self._codes is not None and error.code not in self._codes:
            return False
        if self.message is not None and self.message not in error.message:
            return False
        if self.params is not None:
            params = error.params or {}
            for key, expected in self.params.items():
                if key not in params or params[key] != expected:
                    return False
        if self.predicate is not None and not self.predicate(error):
            return False
        return True


def filter_errors(
    errors: Iterable[ValidationError],
    options: ErrorFilter | Callable[[ValidationError], bool] | None = None,
    **criteria: Any,
) -> list[ValidationError]:
    """Return the errors matching options (an ErrorFilter or a predicate) and criteria."""
    errors = list(errors)
    if callable(options) and not isinstance(options, ErrorFilter):
        options = ErrorFilter(predicate=options)
    if criteria:
        if options is not None:
            raise TypeError("Pass either a filter object or keyword criteria, not both")
        options = ErrorFilter(**criteria)
    if options is None:
        return errors
    return [e for e in errors if options.matches(e)]


class ErrorStrategy(str, Enum):
    THROW = "throw"
    LOG = "log"
    CONVERT = "convert"


class FormErrorHandler:
    """Uniform handling of exceptions raised by user-supplied callables."""

    @staticmethod
    def handle(
        error: BaseException,
        context: str,
        strategy: ErrorStrategy = ErrorStrategy.THROW,
    ) -> ValidationError | None:
        if strategy is ErrorStrategy.THROW:
            raise error
        if strategy is ErrorStrategy.LOG:
            logger.error("[%s] %s", context, error, exc_info=error)
            return None
        logger.debug("[%s] converted to validation error: %s", context, error)
        return ValidationError(
            code="validator_error",
            message=FormErrorHandler.extract_message(error),
            params={"field": context},
        )

    @staticmethod
    def extract_message(error: object) -> str:
        if isinstance(error, BaseException):
            return str(error) or type(error).__name__
        if isinstance(error, Mapping) and "message" in error:
            return str(error["message"])
        return str(error)

    @staticmethod
    def wrap(validator: Callable[..., Any], context: str | None = None) -> Callable[..., Any]:
        """Wrap a sync or async validator so exceptions become `validator_error` errors."""
        name = context or getattr(validator, "__name__", "validator")

        if inspect.iscoroutinefunction(validator):

            @functools.wraps(validator)
            async def _async_wrapper(*args, **kwargs):
                try:
                    return await validator(*args, **kwargs)
                except Exception as exc:
                    return FormErrorHandler.handle(exc, name, ErrorStrategy.CONVERT)

            return _async_wrapper

        @functools.wraps(validator)
        def _wrapper(*args, **kwargs):
            try:
                return validator(*args, **kwargs)
            except Exception as exc:
                return FormErrorHandler.handle(exc, name, ErrorStrategy.CONVERT)

        return _wrapper

    @staticmethod
    def is_validation_error(value: object) -> bool:
        if isinstance(value, ValidationError):
            return True
        return (
            isinstance(value, Mapping)
            and isinstance(value.get("code"), str)
            and isinstance(value.get("message"), str)
        )
