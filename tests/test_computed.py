"""Tests for Computed values."""

from reformx import Computed, Signal, autorun, computed, transaction


class TestComputed:
    def test_lazy_eval(self):
        call_count = 0
        s = Signal(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return s.get() * 2

        c = Computed(fn)
        assert call_count == 0
        assert c.get() == 10
        assert call_count == 1

    def test_caches_until_dirty(self):
        call_count = 0
        s = Signal(5)

        def fn():
            nonlocal call_count
            call_count += 1
            return s.get() * 2

        c = Computed(fn)
        c.get()
        c.get()
        assert call_count == 1

    def test_invalidation(self):
        s = Signal(5)
        c = Computed(lambda: s.get() * 2)
        assert c.get() == 10
        s.set(10)
        assert c.get() == 20

    def test_dependency_tracking(self):
        flag = Signal(True)
        a = Signal(1)
        b = Signal(2)

        c = Computed(lambda: a.get() if flag.get() else b.get())
        assert c.get() == 1

        flag.set(False)
        assert c.get() == 2

    def test_chained_computed(self):
        s = Signal(3)
        doubled = Computed(lambda: s.get() * 2)
        quadrupled = Computed(lambda: doubled.get() * 2)
        assert quadrupled.get() == 12
        s.set(5)
        assert quadrupled.get() == 20

    def test_fresh_inside_transaction(self):
        """Reads inside a batch see the writes made earlier in the same batch."""
        s = Signal(1)
        c = Computed(lambda: s.get() + 1)
        assert c.get() == 2
        with transaction():
            s.set(5)
            assert c.get() == 6

    def test_peek_does_not_track(self):
        s = Signal(1)
        c = Computed(lambda: s.get() * 3)
        log = []
        autorun(lambda: log.append(c.peek()))
        s.set(2)
        assert log == [3]
        assert c.peek() == 6

    def test_dispose(self):
        s = Signal(5)
        c = Computed(lambda: s.get() * 2)
        c.get()
        c.dispose()
        s.set(10)
        assert c.get() == 20

    def test_propagates_to_reactions(self):
        s = Signal(5)
        c = Computed(lambda: s.get() * 2)
        log = []
        autorun(lambda: log.append(c.get()))
        assert log == [10]
        s.set(10)
        assert log == [10, 20]


class TestComputedDecorator:
    def test_decorator_factory(self):
        s = Signal(7)

        @computed
        def doubled():
            return s.get() * 2

        assert doubled.get() == 14
        s.set(3)
        assert doubled.get() == 6
