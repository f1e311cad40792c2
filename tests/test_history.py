"""Tests for HistoryStore ring buffers.

Validates capacity bounds, timestamp ordering, copy-out reads and resizing.
"""

import threading

import pytest

from kanshi.errors import OutOfOrderSample
from kanshi.intelligence.history import HistoryStore
from kanshi.models import Sample


def _sample(t, value=50.0, metric_id="cpu_temperature"):
    return Sample(metric_id=metric_id, value=value, timestamp=t)


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------

class TestCapacity:
    def test_never_exceeds_window(self):
        store = HistoryStore(window=5)
        for i in range(50):
            store.record("cpu_temperature", _sample(float(i), value=float(i)))
            assert len(store.snapshot("cpu_temperature")) <= 5

    def test_evicts_oldest(self):
        store = HistoryStore(window=3)
        for i in range(6):
            store.record("cpu_temperature", _sample(float(i), value=float(i)))
        assert [s.value for s in store.snapshot("cpu_temperature")] == [3.0, 4.0, 5.0]

    def test_window_reported(self):
        assert HistoryStore(window=7).window("anything") == 7

    def test_invalid_window(self):
        with pytest.raises(ValueError):
            HistoryStore(window=0)

    def test_metrics_are_independent(self):
        store = HistoryStore(window=2)
        for i in range(4):
            store.record("a", _sample(float(i), metric_id="a"))
        store.record("b", _sample(0.0, metric_id="b"))
        assert len(store.snapshot("a")) == 2
        assert len(store.snapshot("b")) == 1
        assert len(store) == 3


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------

class TestOrdering:
    def test_out_of_order_rejected(self):
        store = HistoryStore()
        store.record("cpu_temperature", _sample(10.0))
        with pytest.raises(OutOfOrderSample) as info:
            store.record("cpu_temperature", _sample(5.0))
        assert info.value.newest == 10.0
        assert [s.timestamp for s in store.snapshot("cpu_temperature")] == [10.0]

    def test_equal_timestamps_accepted(self):
        store = HistoryStore()
        store.record("cpu_temperature", _sample(10.0, value=1.0))
        store.record("cpu_temperature", _sample(10.0, value=2.0))
        assert len(store.snapshot("cpu_temperature")) == 2

    def test_snapshot_non_decreasing(self):
        store = HistoryStore(window=10)
        for t in [1.0, 2.0, 2.0, 0.5, 3.0, 2.5, 4.0]:
            try:
                store.record("cpu_temperature", _sample(t))
            except OutOfOrderSample:
                pass
        stamps = [s.timestamp for s in store.snapshot("cpu_temperature")]
        assert stamps == sorted(stamps)
        assert stamps == [1.0, 2.0, 2.0, 3.0, 4.0]

    def test_mismatched_metric_id(self):
        store = HistoryStore()
        with pytest.raises(ValueError):
            store.record("gpu0_temperature", _sample(1.0))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestReads:
    def test_unknown_metric_is_empty(self):
        store = HistoryStore()
        assert store.snapshot("missing") == []
        assert store.latest("missing") is None
        assert store.recent("missing", 3) == []

    def test_snapshot_is_a_copy(self):
        store = HistoryStore()
        store.record("cpu_temperature", _sample(1.0))
        copy = store.snapshot("cpu_temperature")
        copy.clear()
        assert len(store.snapshot("cpu_temperature")) == 1

    def test_recent_and_latest(self):
        store = HistoryStore()
        for i in range(5):
            store.record("cpu_temperature", _sample(float(i), value=float(i)))
        assert [s.value for s in store.recent("cpu_temperature", 2)] == [3.0, 4.0]
        assert store.recent("cpu_temperature", 0) == []
        assert store.latest("cpu_temperature").value == 4.0

    def test_metric_ids(self):
        store = HistoryStore()
        store.record("b", _sample(1.0, metric_id="b"))
        store.record("a", _sample(1.0, metric_id="a"))
        assert store.metric_ids() == ["b", "a"]

    def test_clear(self):
        store = HistoryStore()
        store.record("cpu_temperature", _sample(1.0))
        store.clear()
        assert len(store) == 0
        assert store.metric_ids() == []

    def test_discard(self):
        store = HistoryStore()
        store.record("a", _sample(1.0, metric_id="a"))
        store.record("b", _sample(1.0, metric_id="b"))
        store.discard("a")
        store.discard("never-recorded")
        assert store.snapshot("a") == []
        assert store.metric_ids() == ["b"]
        store.record("a", _sample(0.5, metric_id="a"))
        assert store.latest("a").timestamp == 0.5


class TestResize:
    def test_shrink_keeps_newest(self):
        store = HistoryStore(window=5)
        for i in range(5):
            store.record("cpu_temperature", _sample(float(i), value=float(i)))
        store.resize(2)
        assert store.window() == 2
        assert [s.value for s in store.snapshot("cpu_temperature")] == [3.0, 4.0]

    def test_grow_keeps_everything(self):
        store = HistoryStore(window=2)
        for i in range(2):
            store.record("cpu_temperature", _sample(float(i)))
        store.resize(10)
        for i in range(2, 6):
            store.record("cpu_temperature", _sample(float(i)))
        assert len(store.snapshot("cpu_temperature")) == 6


class TestConcurrentAccess:
    def test_reader_never_sees_overfull_buffer(self):
        store = HistoryStore(window=20)
        errors = []

        def writer():
            for i in range(2000):
                store.record("cpu_temperature", _sample(float(i)))

        def reader():
            for _ in range(500):
                snap = store.snapshot("cpu_temperature")
                if len(snap) > 20:
                    errors.append(len(snap))

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
