"""Tests for ArrayNode."""

import asyncio

import pytest

from reformx import ArrayNode, FieldStatus, GroupNode, compute_from, validate

ITEM = {
    "title": {"value": ""},
    "price": {"value": 0},
    "quantity": {"value": 1},
}


def make_items(*initial):
    return ArrayNode(ITEM, initial)


def title_required(path):
    validate(path.title, lambda value, ctx: None if value else {"code": "required", "message": "Title"})


def line_total(path):
    compute_from([path.price, path.quantity], path.total, lambda p, q: p * q)


class TestItems:
    def test_initial_items(self):
        items = make_items({"title": "a"}, {"title": "b", "price": 2})
        assert len(items) == 2
        assert items.length.get() == 2
        assert items.get_value() == [
            {"title": "a", "price": 0, "quantity": 1},
            {"title": "b", "price": 2, "quantity": 1},
        ]
        assert items.dirty.get() is False

    def test_push_insert_remove_clear(self):
        items = make_items()
        first = items.push({"title": "first"})
        items.push({"title": "last"})
        items.insert(1, {"title": "middle"})
        assert [item["title"].get_value() for item in items] == ["first", "middle", "last"]
        assert isinstance(first, GroupNode)

        items.remove_at(0)
        assert first.is_disposed
        assert items.length.get() == 2
        items.remove_at(10)
        items.remove_at(-1)
        assert items.length.get() == 2

        items.clear()
        assert items.length.get() == 0
        assert items.get_value() == []

    def test_at(self):
        items = make_items({"title": "a"})
        assert items.at(0)["title"].get_value() == "a"
        assert items.at(1) is None
        assert items.at(-1) is None
        assert items[0] is items.at(0)

    def test_for_each_and_map(self):
        items = make_items({"title": "a"}, {"title": "b"})
        seen = []
        items.for_each(lambda item, index: seen.append((index, item["title"].get_value())))
        assert seen == [(0, "a"), (1, "b")]
        assert items.map(lambda item, index: item["title"].get_value() * (index + 1)) == ["a", "bb"]

    def test_value_tracks_items(self):
        items = make_items()
        seen = []
        items.watch_length(seen.append)
        items.push()
        items.push()
        items.remove_at(0)
        assert seen == [0, 1, 2, 1]

    def test_non_mapping_item_schema(self):
        with pytest.raises(TypeError):
            ArrayNode("nope")


class TestValues:
    def test_set_value_resizes(self):
        items = make_items({"title": "a"})
        items.set_value([{"title": "x"}, {"title": "y", "price": 3}])
        assert [v["title"] for v in items.get_value()] == ["x", "y"]
        items.set_value([{"title": "z"}])
        assert items.get_value() == [{"title": "z", "price": 0, "quantity": 1}]
        assert items.dirty.get() is True

    def test_patch_value_existing_only(self):
        items = make_items({"title": "a"})
        items.patch_value([{"price": 9}, {"price": 10}])
        assert items.get_value() == [{"title": "a", "price": 9, "quantity": 1}]

    def test_reset_rebuilds_initial_items(self):
        items = make_items({"title": "a"})
        items.push({"title": "b"})
        items.at(0)["title"].set_value("changed")
        items.reset()
        assert [v["title"] for v in items.get_value()] == ["a"]
        assert items.dirty.get() is False
        assert items.touched.get() is False

    def test_reset_with_value(self):
        items = make_items({"title": "a"})
        items.reset([{"title": "x"}, {"title": "y"}])
        assert [v["title"] for v in items.get_value()] == ["x", "y"]
        items.reset_to_initial()
        assert [v["title"] for v in items.get_value()] == ["a"]


class TestValidationSchema:
    def test_pushed_item_is_validated_immediately(self):
        items = make_items({"title": "ok"})
        items.apply_validation_schema(title_required)
        item = items.push()
        assert item["title"].errors.get()[0].code == "required"
        assert items.invalid.get() is True

    def test_existing_items_get_schema(self):
        items = make_items({"title": ""})
        items.apply_validation_schema(title_required)
        assert asyncio.run(items.validate()) is False
        items.at(0)["title"].set_value("x")
        assert asyncio.run(items.validate()) is True

    def test_array_errors(self):
        items = make_items()
        items.set_errors([{"code": "min_items", "message": "Add one"}])
        assert items.invalid.get() is True
        assert items.array_errors.get()[0].code == "min_items"
        assert items.validate_sync() is True
        assert items.array_errors.get() == []


class TestBehaviorSchema:
    def test_applied_to_existing_and_new_items(self):
        items = ArrayNode({**ITEM, "total": {"value": 0}}, [{"price": 2, "quantity": 3}])
        items.apply_behavior_schema(line_total)
        assert items.at(0)["total"].get_value() == 6
        new = items.push({"price": 5, "quantity": 2})
        assert new["total"].get_value() == 10
        new["quantity"].set_value(4)
        assert new["total"].get_value() == 20

    def test_dispose_removes_wiring(self):
        items = ArrayNode({**ITEM, "total": {"value": 0}}, [{"price": 2}])
        dispose = items.apply_behavior_schema(line_total)
        dispose()
        items.at(0)["price"].set_value(50)
        assert items.at(0)["total"].get_value() == 2
        assert items.push({"price": 3})["total"].get_value() == 0


class TestDisabled:
    def test_disable_propagates_and_new_items_inherit(self):
        items = make_items({"title": "a"})
        items.disable()
        assert items.at(0).disabled.get() is True
        new = items.push()
        assert new.disabled.get() is True
        assert items.status.get() is FieldStatus.DISABLED
        items.enable()
        assert new.disabled.get() is False

    def test_disabled_item_excluded_from_value(self):
        items = make_items({"title": "a"}, {"title": "b"})
        items.at(0).disable()
        assert items.get_value() == [{"title": "b", "price": 0, "quantity": 1}]
        assert items.value.get() == items.get_value()


class TestWatchItems:
    def test_fires_on_item_change_and_shape_change(self):
        items = make_items({"price": 1}, {"price": 2})
        seen = []
        items.watch_items("price", seen.append)
        items.at(1)["price"].set_value(5)
        items.push({"price": 7})
        items.remove_at(0)
        assert seen == [[1, 2], [1, 5], [1, 5, 7], [5, 7]]

    def test_dispose(self):
        items = make_items({"price": 1})
        seen = []
        dispose = items.watch_items("price", seen.append)
        dispose()
        items.at(0)["price"].set_value(3)
        assert seen == [[1]]


class TestFlags:
    def test_touch_propagates_to_items(self):
        items = make_items({"title": "a"})
        items.mark_as_touched()
        assert items.at(0)["title"].touched.get() is True
        assert items.touched.get() is True

    def test_item_dirty_bubbles(self):
        items = make_items({"title": "a"})
        items.at(0)["title"].set_value("b")
        assert items.dirty.get() is True


class TestNested:
    def test_array_inside_group(self):
        form = GroupNode({"owner": {"value": "me"}, "lines": [ITEM]})
        form["lines"].push({"title": "x"})
        assert form.get_value() == {"owner": "me", "lines": [{"title": "x", "price": 0, "quantity": 1}]}
        assert form.get_field_by_path("lines[0].title").get_value() == "x"

    def test_dispose_group_disposes_items(self):
        form = GroupNode({"lines": [ITEM]})
        item = form["lines"].push()
        form.dispose()
        assert item.is_disposed
