"""Path resolver for dot/bracket addresses such as `items[2].price`.

Grammar: path := key (("." key) | ("[" integer "]"))*

Reads never raise: an address that does not resolve (or does not parse) is
"not found". Writes through set_value_by_path raise PathStructureError when
a list index is applied to something that is not a list.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from reformx.errors import InvalidPathError, PathStructureError

if TYPE_CHECKING:
    from reformx.node import FormNode

_KEY = re.compile(r"[^.\[\]]+")
_INDEX = re.compile(r"\[(\d+)\]")


@dataclass(frozen=True, slots=True)
class PathSegment:
    """One step of a path: a named key, optionally followed by a list index.

    A segment with an empty key indexes directly into the previous result
    (the second index in `matrix[0][1]`).
    """

    key: str
    index: int | None = None

    def __str__(self) -> str:
        if self.index is None:
            return self.key
        return f"{self.key}[{self.index}]"


def parse_path(path: str) -> list[PathSegment]:
    """Split a path string into segments. Raises InvalidPathError on bad syntax."""
    if not isinstance(path, str) or not path:
        raise InvalidPathError(f"Path must be a non-empty string, got {path!r}")

    match = _KEY.match(path)
    if match is None:
        raise InvalidPathError(f"Path {path!r} must start with a key")
    segments: list[PathSegment] = []
    current = PathSegment(match.group())
    pos = match.end()

    while pos < len(path):
        char = path[pos]
        if char == ".":
            match = _KEY.match(path, pos + 1)
            if match is None:
                raise InvalidPathError(f"Expected a key after '.' at position {pos} in {path!r}")
            segments.append(current)
            current = PathSegment(match.group())
        elif char == "[":
            match = _INDEX.match(path, pos)
            if match is None:
                raise InvalidPathError(f"Malformed index at position {pos} in {path!r}")
            index = int(match.group(1))
            if current.index is None:
                current = PathSegment(current.key, index)
            else:
                segments.append(current)
                current = PathSegment("", index)
        else:
            raise InvalidPathError(f"Unexpected {char!r} at position {pos} in {path!r}")
        pos = match.end()

    segments.append(current)
    return segments


def join_path(segments: Sequence[PathSegment]) -> str:
    """Inverse of parse_path."""
    parts: list[str] = []
    for segment in segments:
        if segment.key or not parts:
            parts.append(str(segment))
        else:
            parts[-1] += f"[{segment.index}]"
    return ".".join(parts)


def _try_parse(path: str) -> list[PathSegment] | None:
    try:
        return parse_path(path)
    except InvalidPathError:
        return None


def _is_list(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


# ─── Plain values ────────────────────────────────────────────────────────────


def get_value_by_path(obj: Any, path: str, default: Any = None) -> Any:
    """Read a nested value from dicts and lists. Returns default when not found."""
    segments = _try_parse(path)
    if segments is None:
        return default

    current = obj
    for segment in segments:
        if segment.key:
            if not isinstance(current, Mapping) or segment.key not in current:
                return default
            current = current[segment.key]
        if segment.index is not None:
            if not _is_list(current) or not 0 <= segment.index < len(current):
                return default
            current = current[segment.index]
    return current


def set_value_by_path(obj: MutableMapping[str, Any], path: str, value: Any) -> MutableMapping[str, Any]:
    """Write value at path, creating missing intermediate dicts and lists.

    Lists are padded with None up to the written index. Returns obj.
    """
    segments = parse_path(path)
    container: Any = obj
    last = len(segments) - 1

    for position, segment in enumerate(segments):
        is_last = position == last

        if segment.key:
            if not isinstance(container, MutableMapping):
                raise PathStructureError(
                    f"Cannot set key {segment.key!r} on {type(container).__name__} in path {path!r}"
                )
            if segment.index is None:
                if is_last:
                    container[segment.key] = value
                    return obj
                child = container.get(segment.key)
                if child is None:
                    child = container[segment.key] = {}
                container = child
                continue
            child = container.get(segment.key)
            if child is None:
                child = container[segment.key] = []
            container = child

        if not isinstance(container, list):
            raise PathStructureError(
                f"Segment {str(segment)!r} in path {path!r} expects a list, "
                f"found {type(container).__name__}"
            )
        if len(container) <= segment.index:
            container.extend([None] * (segment.index + 1 - len(container)))
        if is_last:
            container[segment.index] = value
            return obj
        child = container[segment.index]
        if child is None:
            next_segment = segments[position + 1]
            child = container[segment.index] = {} if next_segment.key else []
        container = child

    return obj


# ─── Node trees ──────────────────────────────────────────────────────────────


def get_node_by_path(root: FormNode, path: str) -> FormNode | None:
    """Walk a node tree: named lookup for keys, item lookup for indices."""
    from reformx.node import NodeKind

    segments = _try_parse(path)
    if segments is None:
        return None

    current: FormNode | None = root
    for segment in segments:
        if segment.key:
            if current.kind is not NodeKind.GROUP:
                return None
            current = current.get_field(segment.key)
            if current is None:
                return None
        if segment.index is not None:
            if current.kind is not NodeKind.ARRAY:
                return None
            current = current.at(segment.index)
            if current is None:
                return None
    return current


def get_form_node_value(root: FormNode, path: str, default: Any = None) -> Any:
    """Current value of the node at path (untracked), or default when not found."""
    node = get_node_by_path(root, path)
    if node is None:
        return default
    return node.get_value()


# ─── Path handles for schema functions ───────────────────────────────────────


class FieldPath:
    """Address builder handed to behavior and validation schema functions.

    `path.address.city` is the path "address.city"; `path.items[0].price` is
    "items[0].price". Item access with a string key appends a key, which is
    how fields whose names clash with Python keywords are addressed.
    """

    __slots__ = ("_fieldpath",)

    def __init__(self, path: str = "") -> None:
        object.__setattr__(self, "_fieldpath", path)

    def __getattr__(self, name: str) -> FieldPath:
        if name.startswith("__"):
            raise AttributeError(name)
        return FieldPath(f"{self._fieldpath}.{name}" if self._fieldpath else name)

    def __getitem__(self, item: int | str) -> FieldPath:
        if isinstance(item, int):
            if not self._fieldpath:
                raise InvalidPathError("An index needs a key before it")
            return FieldPath(f"{self._fieldpath}[{item}]")
        return FieldPath(f"{self._fieldpath}.{item}" if self._fieldpath else item)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("FieldPath is immutable")

    def __str__(self) -> str:
        return self._fieldpath

    def __repr__(self) -> str:
        return f"FieldPath({self._fieldpath!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FieldPath):
            return self._fieldpath == other._fieldpath
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._fieldpath)


PathLike = Union[str, FieldPath]


def extract_path(path: PathLike) -> str:
    """Plain string form of a path handle or string."""
    if isinstance(path, FieldPath):
        return str(path)
    if isinstance(path, str):
        return path
    raise TypeError(f"Expected a path string or FieldPath, got {type(path).__name__}")
