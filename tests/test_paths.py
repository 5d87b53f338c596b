"""Tests for the path resolver and FieldPath handles."""

import pytest

from reformx import (
    FieldPath,
    GroupNode,
    InvalidPathError,
    PathSegment,
    PathStructureError,
    get_form_node_value,
    get_node_by_path,
    get_value_by_path,
    join_path,
    parse_path,
    set_value_by_path,
)
from reformx.paths import extract_path


class TestParsePath:
    def test_keys(self):
        assert parse_path("address.city") == [PathSegment("address"), PathSegment("city")]

    def test_index(self):
        assert parse_path("items[2].price") == [PathSegment("items", 2), PathSegment("price")]

    def test_repeated_index(self):
        assert parse_path("matrix[0][1]") == [PathSegment("matrix", 0), PathSegment("", 1)]

    @pytest.mark.parametrize("path", ["a", "a.b.c", "items[0]", "items[10].tags[3].name", "m[0][1].x"])
    def test_join_reproduces_path(self, path):
        assert join_path(parse_path(path)) == path

    @pytest.mark.parametrize("path", ["", ".a", "a.", "a..b", "a[x]", "a[1", "[0]", "a]b"])
    def test_rejects_malformed(self, path):
        with pytest.raises(InvalidPathError):
            parse_path(path)

    def test_invalid_path_is_value_error(self):
        with pytest.raises(ValueError):
            parse_path("a..b")


class TestPlainValues:
    def test_get_nested(self):
        data = {"address": {"city": "Oslo"}, "items": [{"price": 5}, {"price": 7}]}
        assert get_value_by_path(data, "address.city") == "Oslo"
        assert get_value_by_path(data, "items[1].price") == 7

    def test_get_missing_returns_default(self):
        data = {"items": [{"price": 5}]}
        assert get_value_by_path(data, "items[3].price") is None
        assert get_value_by_path(data, "nope.x", "fallback") == "fallback"
        assert get_value_by_path(data, "a..b", "bad") == "bad"

    def test_set_creates_intermediate_objects(self):
        data = {}
        set_value_by_path(data, "address.city", "Oslo")
        assert data == {"address": {"city": "Oslo"}}

    def test_set_creates_and_pads_lists(self):
        data = {}
        set_value_by_path(data, "items[2].price", 9)
        assert data == {"items": [None, None, {"price": 9}]}

    def test_set_then_get(self):
        data = {"a": {"b": 1}}
        value = object()
        assert get_value_by_path(set_value_by_path(data, "a.c.d", value), "a.c.d") is value

    def test_set_through_non_list_fails(self):
        data = {"items": {"not": "a list"}}
        with pytest.raises(PathStructureError):
            set_value_by_path(data, "items[0]", 1)

    def test_set_key_on_non_mapping_fails(self):
        data = {"name": "text"}
        with pytest.raises(PathStructureError):
            set_value_by_path(data, "name.first", "x")


class TestNodeTrees:
    def make_form(self):
        return GroupNode(
            {
                "name": {"value": "Ann"},
                "address": {"city": {"value": "Oslo"}},
                "items": {"schema": {"price": {"value": 0}}, "initial_items": [{"price": 3}, {"price": 4}]},
            }
        )

    def test_named_and_indexed_lookup(self):
        form = self.make_form()
        assert get_node_by_path(form, "address.city") is form["address"]["city"]
        assert get_node_by_path(form, "items[1].price").get_value() == 4
        assert get_form_node_value(form, "name") == "Ann"

    def test_not_found_is_none(self):
        form = self.make_form()
        assert get_node_by_path(form, "items[5].price") is None
        assert get_node_by_path(form, "name.first") is None
        assert get_node_by_path(form, "name[0]") is None
        assert get_node_by_path(form, "bad..path") is None
        assert get_form_node_value(form, "missing", "dflt") == "dflt"

    def test_get_field_by_path_accepts_field_path(self):
        form = self.make_form()
        assert form.get_field_by_path(FieldPath().items[0].price).get_value() == 3


class TestFieldPath:
    def test_builds_paths(self):
        path = FieldPath()
        assert str(path.address.city) == "address.city"
        assert str(path.items[0].price) == "items[0].price"
        assert str(path["class"].name) == "class.name"

    def test_immutable(self):
        with pytest.raises(AttributeError):
            FieldPath().x = 1

    def test_equality_and_hash(self):
        assert FieldPath().a.b == FieldPath("a.b")
        assert len({FieldPath("a"), FieldPath().a}) == 1

    def test_index_needs_key(self):
        with pytest.raises(InvalidPathError):
            FieldPath()[0]

    def test_extract_path(self):
        assert extract_path(FieldPath().a) == "a"
        assert extract_path("a.b") == "a.b"
        with pytest.raises(TypeError):
            extract_path(3)
