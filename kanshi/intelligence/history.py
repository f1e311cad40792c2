"""Per-metric history ring buffers.

Each metric gets a fixed-size deque so that the threshold evaluator and the
predictors can look at trends over the last N samples instead of a single
reading. Only the scheduler thread writes; readers always get copies taken
under the lock, so a concurrent tick is never observed half-applied.
"""

from __future__ import annotations

import collections
import threading

from kanshi.errors import OutOfOrderSample
from kanshi.models import Sample


class HistoryStore:
    """Bounded, timestamp-ordered sample history for every metric."""

    def __init__(self, window: int = 120) -> None:
        if window < 1:
            raise ValueError("history window must be at least 1")
        self._window = window
        self._series: dict[str, collections.deque[Sample]] = {}
        self._data_lock = threading.RLock()

    def record(self, metric_id: str, sample: Sample) -> None:
        """Append a sample, evicting the oldest beyond capacity.

        Raises OutOfOrderSample if the sample is older than the newest one
        already stored for the metric. Equal timestamps are accepted.
        """
        if sample.metric_id != metric_id:
            raise ValueError(f"sample for '{sample.metric_id}' recorded under '{metric_id}'")
        with self._data_lock:
            series = self._series.get(metric_id)
            if series is None:
                series = collections.deque(maxlen=self._window)
                self._series[metric_id] = series
            elif series and sample.timestamp < series[-1].timestamp:
                raise OutOfOrderSample(metric_id, sample.timestamp, series[-1].timestamp)
            series.append(sample)

    def snapshot(self, metric_id: str) -> list[Sample]:
        """Oldest-first copy of a metric's history (empty if never recorded)."""
        with self._data_lock:
            series = self._series.get(metric_id)
            return list(series) if series else []

    def recent(self, metric_id: str, count: int) -> list[Sample]:
        """The newest `count` samples, oldest first."""
        if count <= 0:
            return []
        with self._data_lock:
            series = self._series.get(metric_id)
            if not series:
                return []
            return list(series)[-count:]

    def latest(self, metric_id: str) -> Sample | None:
        with self._data_lock:
            series = self._series.get(metric_id)
            return series[-1] if series else None

    def window(self, metric_id: str | None = None) -> int:
        """Capacity of a metric's history. Every metric shares the same window."""
        with self._data_lock:
            return self._window

    def metric_ids(self) -> list[str]:
        with self._data_lock:
            return [m for m, s in self._series.items() if s]

    def resize(self, window: int) -> None:
        """Change capacity, keeping the newest samples of every metric."""
        if window < 1:
            raise ValueError("history window must be at least 1")
        with self._data_lock:
            if window == self._window:
                return
            self._window = window
            for metric_id, series in self._series.items():
                self._series[metric_id] = collections.deque(series, maxlen=window)

    def discard(self, metric_id: str) -> None:
        """Forget a metric's samples. Unknown metrics are ignored."""
        with self._data_lock:
            self._series.pop(metric_id, None)

    def clear(self) -> None:
        with self._data_lock:
            self._series.clear()

    def __len__(self) -> int:
        """Total samples stored across all metrics."""
        with self._data_lock:
            return sum(len(s) for s in self._series.values())
