"""Tests for SubscriptionRegistry and disposer helpers."""

from reformx import SubscriptionRegistry
from reformx.subscriptions import combine, unique_key


class TestSubscriptionRegistry:
    def test_add_and_dispose_all(self):
        log = []
        registry = SubscriptionRegistry()
        registry.add("a", lambda: log.append("a"))
        registry.add("b", lambda: log.append("b"))
        assert len(registry) == 2
        registry.dispose()
        assert sorted(log) == ["a", "b"]
        assert len(registry) == 0

    def test_same_key_replaces_and_disposes_previous(self):
        log = []
        registry = SubscriptionRegistry()
        registry.add("k", lambda: log.append("first"))
        registry.add("k", lambda: log.append("second"))
        assert log == ["first"]
        assert len(registry) == 1
        registry.dispose()
        assert log == ["first", "second"]

    def test_unsubscribe_only_its_own_entry(self):
        log = []
        registry = SubscriptionRegistry()
        unsubscribe = registry.add("k", lambda: log.append("first"))
        registry.add("k", lambda: log.append("second"))
        unsubscribe()
        assert log == ["first"]
        assert "k" in registry

    def test_unsubscribe_is_idempotent(self):
        log = []
        registry = SubscriptionRegistry()
        unsubscribe = registry.add("k", lambda: log.append("x"))
        unsubscribe()
        unsubscribe()
        assert log == ["x"]
        assert not registry.has("k")

    def test_remove(self):
        log = []
        registry = SubscriptionRegistry()
        registry.add("k", lambda: log.append("x"))
        assert registry.remove("k") is True
        assert registry.remove("k") is False
        assert log == ["x"]

    def test_dispose_twice(self):
        log = []
        registry = SubscriptionRegistry()
        registry.add("k", lambda: log.append("x"))
        registry.dispose()
        registry.dispose()
        assert log == ["x"]


class TestHelpers:
    def test_combine_runs_each_once(self):
        log = []
        dispose = combine([lambda: log.append(1), lambda: log.append(2)])
        dispose()
        dispose()
        assert sorted(log) == [1, 2]

    def test_unique_key(self):
        assert unique_key("watch") != unique_key("watch")
        assert unique_key("watch").startswith("watch-")
