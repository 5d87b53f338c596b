"""reformx: reactive form state and validation on a MobX-style signal core."""

from importlib.metadata import version as _version

__version__ = _version("reformx")

from reformx._tracking import get_pending_count, untracked
from reformx.observable import Signal, ReadonlySignal, ObservableList, set_scheduler
from reformx.computed import Computed, computed
from reformx.reaction import Reaction, autorun, reaction
from reformx.action import action, transaction
from reformx.debounce import Debouncer
from reformx.subscriptions import SubscriptionRegistry
from reformx.errors import (
    ErrorFilter,
    ErrorStrategy,
    FormError,
    FormErrorHandler,
    InvalidPathError,
    PathStructureError,
    RegistrationError,
    ValidationError,
)
from reformx.paths import (
    FieldPath,
    PathSegment,
    get_form_node_value,
    get_node_by_path,
    get_value_by_path,
    join_path,
    parse_path,
    set_value_by_path,
)
from reformx.node import UNSET, FieldStatus, FormNode, NodeKind, UpdateOn
from reformx.field import FieldNode
from reformx.group import GroupNode
from reformx.array import ArrayNode
from reformx.factory import create_node
from reformx.behavior import BehaviorContext
from reformx.behaviors import (
    apply as apply_behavior,
    apply_when as apply_behavior_when,
    compute_from,
    copy_from,
    create_transformer,
    disable_when,
    enable_when,
    hide_when,
    link_fields,
    reset_when,
    revalidate_when,
    show_when,
    skip_validation_when,
    sync_fields,
    transform_value,
    transformers,
    validate_when,
    watch_field,
    watch_items,
)
from reformx.validation import (
    TreeValidationContext,
    ValidationContext,
    apply,
    apply_when,
    validate,
    validate_async,
    validate_form,
    validate_items,
    validate_tree,
)
# textual is opt-in and not imported here

__all__ = [
    "Signal",
    "ReadonlySignal",
    "ObservableList",
    "Computed",
    "computed",
    "Reaction",
    "autorun",
    "reaction",
    "action",
    "transaction",
    "untracked",
    "get_pending_count",
    "set_scheduler",
    "Debouncer",
    "SubscriptionRegistry",
    "FormError",
    "InvalidPathError",
    "PathStructureError",
    "RegistrationError",
    "ValidationError",
    "ErrorFilter",
    "ErrorStrategy",
    "FormErrorHandler",
    "FieldPath",
    "PathSegment",
    "parse_path",
    "join_path",
    "get_value_by_path",
    "set_value_by_path",
    "get_node_by_path",
    "get_form_node_value",
    "UNSET",
    "FieldStatus",
    "FormNode",
    "NodeKind",
    "UpdateOn",
    "FieldNode",
    "GroupNode",
    "ArrayNode",
    "create_node",
    "BehaviorContext",
    "compute_from",
    "copy_from",
    "create_transformer",
    "disable_when",
    "enable_when",
    "hide_when",
    "link_fields",
    "reset_when",
    "revalidate_when",
    "show_when",
    "sync_fields",
    "transform_value",
    "transformers",
    "watch_field",
    "watch_items",
    "validate_when",
    "skip_validation_when",
    "apply_behavior",
    "apply_behavior_when",
    "TreeValidationContext",
    "ValidationContext",
    "apply",
    "apply_when",
    "validate",
    "validate_async",
    "validate_form",
    "validate_items",
    "validate_tree",
]
