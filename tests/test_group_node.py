"""Tests for GroupNode."""

import asyncio

import pytest

from reformx import ArrayNode, FieldNode, FieldStatus, GroupNode, autorun


def required(value):
    if value in ("", None):
        return {"code": "required", "message": "Required"}
    return None


def make_profile(**kwargs):
    return GroupNode(
        {
            "name": {"value": "", "validators": [required], "component": "Input"},
            "age": {"value": 30},
            "address": {
                "city": {"value": "Oslo", "validators": [required]},
                "zip": {"value": ""},
            },
        },
        **kwargs,
    )


class TestConstruction:
    def test_builds_child_kinds(self):
        form = GroupNode(
            {
                "name": {"value": ""},
                "address": {"city": {"value": ""}},
                "tags": [{"label": {"value": ""}}],
                "existing": FieldNode(1),
            }
        )
        assert isinstance(form["name"], FieldNode)
        assert isinstance(form["address"], GroupNode)
        assert isinstance(form["tags"], ArrayNode)
        assert form["existing"].get_value() == 1

    def test_child_access(self):
        form = make_profile()
        assert form.get_field("name") is form["name"]
        assert form.get_field("nope") is None
        assert "age" in form
        assert "nope" not in form
        assert list(form) == ["name", "age", "address"]
        assert set(form.fields) == {"name", "age", "address"}
        with pytest.raises(KeyError):
            form["nope"]

    def test_fields_view_is_read_only(self):
        form = make_profile()
        with pytest.raises(TypeError):
            form.fields["x"] = FieldNode(1)

    def test_config_form(self):
        seen = []
        form = GroupNode(
            {
                "form": {"a": {"value": 1}},
                "behavior": lambda path: seen.append("behavior"),
                "validation": lambda path: seen.append("validation"),
            }
        )
        assert form.get_value() == {"a": 1}
        assert seen == ["behavior", "validation"]

    def test_bad_entry_rejected(self):
        with pytest.raises(TypeError):
            GroupNode({"a": 5})
        with pytest.raises(TypeError):
            GroupNode({"a": [{"x": {"value": 1}}, {"y": {"value": 2}}]})


class TestValue:
    def test_aggregates_children(self):
        form = make_profile()
        assert form.get_value() == {"name": "", "age": 30, "address": {"city": "Oslo", "zip": ""}}
        assert form.value.get() == form.get_value()

    def test_value_is_reactive(self):
        form = make_profile()
        seen = []
        autorun(lambda: seen.append(form.value.get()["age"]))
        form["age"].set_value(31)
        assert seen == [30, 31]

    def test_set_value_batches(self):
        form = make_profile()
        seen = []
        autorun(lambda: seen.append((form.value.get()["name"], form.value.get()["age"])))
        form.set_value({"name": "Ann", "age": 40, "unknown": 1})
        assert seen == [("", 30), ("Ann", 40)]
        assert form["name"].dirty.get() is True

    def test_set_value_nested(self):
        form = make_profile()
        form.set_value({"address": {"zip": "0150"}})
        assert form.get_value()["address"] == {"city": "Oslo", "zip": "0150"}

    def test_patch_value(self):
        form = make_profile()
        form.patch_value({"age": 5})
        assert form["age"].get_value() == 5
        assert form.dirty.get() is True


class TestDisabledChildren:
    def test_disabled_child_is_excluded(self):
        form = make_profile()
        form["age"].disable()
        assert "age" not in form.get_value()
        assert "age" not in form.value.get()
        form["age"].enable()
        assert form.get_value()["age"] == 30

    def test_disabled_child_does_not_validate(self):
        form = make_profile()
        form["name"].disable()
        assert form.validate_sync() is True
        assert form["name"].errors.get() == []

    def test_disabled_child_errors_excluded(self):
        form = make_profile()
        form["name"].set_errors([{"message": "x"}])
        assert form.invalid.get() is True
        form["name"].disable()
        assert form.valid.get() is True

    def test_disable_group_propagates(self):
        form = make_profile()
        form.disable()
        assert form.status.get() is FieldStatus.DISABLED
        assert form["address"]["city"].disabled.get() is True
        form.enable()
        assert form["address"]["city"].disabled.get() is False


class TestStatus:
    def test_invalid_when_any_child_invalid(self):
        form = make_profile()
        assert form.valid.get() is True
        assert form.validate_sync() is False
        assert form.status.get() is FieldStatus.INVALID
        assert [e.code for e in form.errors.get()] == ["required"]

    def test_nested_invalid_bubbles(self):
        form = make_profile()
        form["name"].set_value("Ann")
        form["address"]["city"].set_value("")
        form.validate_sync()
        assert form["address"].invalid.get() is True
        assert form.invalid.get() is True

    def test_pending_bubbles(self):
        async def slow(value):
            await asyncio.sleep(0.01)

        async def scenario():
            form = GroupNode({"user": {"value": "x", "async_validators": [slow]}})
            task = asyncio.ensure_future(form.validate())
            await asyncio.sleep(0)
            assert form.pending.get() is True
            assert form.status.get() is FieldStatus.PENDING
            assert await task is True
            assert form.pending.get() is False

        asyncio.run(scenario())

    def test_composite_errors(self):
        form = make_profile()
        form.set_errors([{"code": "server", "message": "Rejected"}])
        assert form.invalid.get() is True
        assert form.form_errors.get()[0].code == "server"
        assert form.get_errors(code="server")[0].message == "Rejected"
        form.clear_errors()
        assert form.valid.get() is True


class TestSetErrorsByPath:
    def test_routes_errors_to_fields(self):
        form = make_profile()
        form.set_errors({"name": [{"message": "X"}], "address.city": [{"code": "geo", "message": "Unknown"}]})
        assert form["name"].errors.get()[0].message == "X"
        assert form["name"].invalid.get() is True
        assert form["address"]["city"].errors.get()[0].code == "geo"
        assert form.form_errors.get() == []

    def test_unknown_path_is_skipped(self):
        form = make_profile()
        form.set_errors({"nope": [{"message": "X"}]})
        assert form.valid.get() is True


class TestFlags:
    def test_touched_is_own_or_children(self):
        form = make_profile()
        assert form.touched.get() is False
        form["age"].mark_as_touched()
        assert form.touched.get() is True
        form["age"].mark_as_untouched()
        assert form.touched.get() is False
        form.mark_as_touched()
        assert form["address"]["zip"].touched.get() is True

    def test_mark_skips_disabled_children(self):
        form = make_profile()
        form["age"].disable()
        form.mark_as_touched()
        assert form["age"].touched.get() is False

    def test_dirty_is_own_or_children(self):
        form = make_profile()
        form["address"]["zip"].set_value("1")
        assert form["address"].dirty.get() is True
        assert form.dirty.get() is True
        form.mark_as_pristine()
        assert form.dirty.get() is False

    def test_touch_all_runs_blur_validation(self):
        form = make_profile()
        form.touch_all()
        assert form["name"].invalid.get() is True


class TestReset:
    def test_reset_restores_initial(self):
        form = make_profile()
        form.set_value({"name": "Ann", "age": 1})
        form.touch_all()
        form.set_errors([{"message": "x"}])
        form.reset()
        assert form.get_value()["name"] == ""
        assert form.get_value()["age"] == 30
        assert form.touched.get() is False
        assert form.dirty.get() is False
        assert form.errors.get() == []
        assert form.status.get() is FieldStatus.VALID

    def test_reset_with_value(self):
        form = make_profile()
        form.reset({"name": "Bob", "address": {"city": "Bergen"}})
        assert form.get_value() == {"name": "Bob", "age": 30, "address": {"city": "Bergen", "zip": ""}}
        assert form.dirty.get() is False

    def test_reset_to_initial_after_reset_value(self):
        form = make_profile()
        form.reset({"name": "Bob"})
        form.reset_to_initial()
        assert form["name"].get_value() == ""


class TestValidate:
    def test_validate_all_children(self):
        form = make_profile()
        assert asyncio.run(form.validate()) is False
        form["name"].set_value("Ann")
        assert asyncio.run(form.validate()) is True

    def test_validate_clears_composite_errors(self):
        form = make_profile()
        form["name"].set_value("Ann")
        form.set_errors([{"message": "stale server error"}])
        assert asyncio.run(form.validate()) is True


class TestSubmit:
    def test_submit_valid(self):
        form = make_profile()
        form["name"].set_value("Ann")
        received = []

        async def on_submit(value):
            received.append(value)
            return "saved"

        assert asyncio.run(form.submit(on_submit)) == "saved"
        assert received[0]["name"] == "Ann"
        assert form.submitting.get() is False

    def test_submit_invalid_skips_callback(self):
        form = make_profile()
        received = []
        assert asyncio.run(form.submit(received.append)) is None
        assert received == []
        assert form["name"].touched.get() is True
        assert form["name"].should_show_error.get() is True

    def test_submitting_flag_during_callback(self):
        form = make_profile()
        form["name"].set_value("Ann")
        seen = []

        def on_submit(value):
            seen.append(form.submitting.get())
            return len(value)

        assert asyncio.run(form.submit(on_submit)) == 3
        assert seen == [True]
        assert form.submitting.get() is False


class TestLinkAndWatch:
    def test_link_fields(self):
        form = GroupNode({"email": {"value": "a@b"}, "login": {"value": ""}})
        dispose = form.link_fields("email", "login", str.upper)
        assert form["login"].get_value() == "A@B"
        form["email"].set_value("c@d")
        assert form["login"].get_value() == "C@D"
        assert form["login"].dirty.get() is False
        dispose()
        form["email"].set_value("e@f")
        assert form["login"].get_value() == "C@D"

    def test_link_unknown_path_is_noop(self):
        form = GroupNode({"a": {"value": 1}})
        dispose = form.link_fields("a", "missing")
        dispose()

    def test_watch_field(self):
        form = make_profile()
        seen = []
        form.watch_field("address.city", seen.append)
        form["address"]["city"].set_value("Bergen")
        assert seen == ["Oslo", "Bergen"]

    def test_dispose_tears_down_everything(self):
        form = make_profile()
        seen = []
        form.watch_field("age", seen.append)
        form["name"].watch(seen.append)
        form.dispose()
        form.dispose()
        form["age"].set_value(99)
        form["name"].set_value("Ann")
        assert seen == [30, ""]
        assert form["address"]["city"].is_disposed
