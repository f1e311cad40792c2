"""Shared fixtures for the kanshi test suite."""

import itertools
import threading

import pytest

from kanshi.config.loader import reload_config
from kanshi.core.providers import ProviderRegistry
from kanshi.models import MetricKind, Sample
from kanshi.monitor import HardwareMonitor


# ---------------------------------------------------------------------------
# Scripted providers
# ---------------------------------------------------------------------------

class ScriptedProvider:
    """Replays a list of values, then keeps repeating the last one.

    A None entry makes that call raise, like a sensor that went offline.
    Timestamps start at `start` and advance by `step` on every call.
    """

    def __init__(self, values, start=1000.0, step=1.0):
        self._values = list(values)
        self._index = 0
        self._clock = itertools.count()
        self._start = start
        self._step = step
        self._lock = threading.Lock()
        self.calls = 0

    def __call__(self, metric_id):
        with self._lock:
            value = self._values[min(self._index, len(self._values) - 1)]
            self._index += 1
            self.calls += 1
            timestamp = self._start + next(self._clock) * self._step
        if value is None:
            raise RuntimeError("sensor offline")
        return Sample(metric_id=metric_id, value=value, timestamp=timestamp)


class LinearProvider:
    """Value rising at a constant rate per second of sample time."""

    def __init__(self, start_value, per_second, start=1000.0, step=10.0):
        self._start_value = start_value
        self._per_second = per_second
        self._start = start
        self._step = step
        self._n = itertools.count()

    def __call__(self, metric_id):
        elapsed = next(self._n) * self._step
        return Sample(
            metric_id=metric_id,
            value=self._start_value + self._per_second * elapsed,
            timestamp=self._start + elapsed,
        )


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_kind(self, kind):
        return [e for e in self.events if e.kind is kind]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolated_home(tmp_path, monkeypatch):
    """Point KANSHI_HOME at a temp dir so a developer's config never leaks in."""
    monkeypatch.setenv("KANSHI_HOME", str(tmp_path))
    reload_config()
    yield
    monkeypatch.delenv("KANSHI_HOME", raising=False)
    reload_config()


@pytest.fixture
def registry():
    reg = ProviderRegistry()
    reg.register("cpu_temperature", ScriptedProvider([60.0]), kind=MetricKind.TEMPERATURE)
    reg.register("cpu_utilization", ScriptedProvider([25.0]), kind=MetricKind.UTILIZATION)
    return reg


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def make_monitor():
    """Factory for monitors that are always stopped on teardown."""
    created = []

    def _make(registry, **config):
        config.setdefault("update_interval", 0.01)
        config.setdefault("enabled_metrics", registry.metric_ids())
        monitor = HardwareMonitor(registry=registry, config=config)
        created.append(monitor)
        return monitor

    yield _make
    for monitor in created:
        monitor.stop()
