"""Tests for action batching and transaction context manager."""

from reformx import Signal, action, autorun, get_pending_count, reaction, transaction


class TestAction:
    def test_batches_updates(self):
        a = Signal(0)
        b = Signal(0)
        log = []
        autorun(lambda: log.append((a.get(), b.get())))
        assert log == [(0, 0)]

        @action
        def update_both():
            a.set(1)
            b.set(2)

        update_both()
        # Should see (1, 2) not intermediate (1, 0)
        assert log == [(0, 0), (1, 2)]

    def test_nested_actions(self):
        s = Signal(0)
        log = []
        autorun(lambda: log.append(s.get()))

        @action
        def outer():
            s.set(1)

            @action
            def inner():
                s.set(2)

            inner()
            s.set(3)

        outer()
        # Only fires after outermost action completes
        assert log == [0, 3]

    def test_preserves_return_value(self):
        @action
        def compute():
            return 42

        assert compute() == 42


class TestTransaction:
    def test_batches_updates(self):
        a = Signal(0)
        b = Signal(0)
        log = []
        autorun(lambda: log.append((a.get(), b.get())))

        with transaction():
            a.set(10)
            b.set(20)

        assert log == [(0, 0), (10, 20)]

    def test_nested_transactions(self):
        s = Signal(0)
        log = []
        autorun(lambda: log.append(s.get()))

        with transaction():
            s.set(1)
            with transaction():
                s.set(2)
            s.set(3)

        assert log == [0, 3]


class TestBatchedReactions:
    def test_reaction_sees_final_state_once(self):
        price = Signal(10)
        quantity = Signal(1)
        totals = []
        reaction(lambda: price.get() * quantity.get(), totals.append)

        with transaction():
            price.set(100)
            quantity.set(3)

        assert totals == [300]

    def test_pending_count_drains(self):
        s = Signal(0)
        autorun(lambda: s.get())
        with transaction():
            s.set(1)
            assert get_pending_count() == 1
        assert get_pending_count() == 0

    def test_batch_closes_on_exception(self):
        s = Signal(0)
        log = []
        autorun(lambda: log.append(s.get()))

        @action
        def fail():
            s.set(1)
            raise RuntimeError("boom")

        try:
            fail()
        except RuntimeError:
            pass
        assert log == [0, 1]
        s.set(2)
        assert log == [0, 1, 2]
