"""Build nodes from schema entries.

Entry shapes, checked in this order:
    FormNode instance                      -> used as is
    mapping with a "value" key             -> FieldNode
    mapping with "schema" (+ "initial_items") -> ArrayNode
    one-element list [item_schema]         -> ArrayNode
    any other mapping                      -> GroupNode
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from reformx.field import FieldNode
from reformx.node import FormNode

_ARRAY_CONFIG_KEYS = frozenset({"schema", "initial_items"})


def is_field_config(config: Any) -> bool:
    return isinstance(config, Mapping) and "value" in config


def is_array_config(config: Any) -> bool:
    return (
        isinstance(config, Mapping)
        and "schema" in config
        and set(config) <= _ARRAY_CONFIG_KEYS
        and isinstance(config["schema"], Mapping)
    )


def is_array_schema(config: Any) -> bool:
    return isinstance(config, list) and len(config) == 1 and isinstance(config[0], Mapping)


def create_node(config: Any) -> FormNode:
    """Create the node described by a schema entry."""
    from reformx.array import ArrayNode
    from reformx.group import GroupNode

    if isinstance(config, FormNode):
        return config
    if is_field_config(config):
        return FieldNode.from_config(config)
    if is_array_config(config):
        return ArrayNode(config["schema"], config.get("initial_items"))
    if is_array_schema(config):
        return ArrayNode(config[0])
    if isinstance(config, list):
        raise TypeError(f"An array schema holds exactly one item schema, got {len(config)}")
    if isinstance(config, Mapping):
        return GroupNode(config)
    raise TypeError(f"Cannot build a form node from {type(config).__name__}")
