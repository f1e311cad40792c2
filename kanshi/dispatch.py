"""Event dispatch and running statistics.

Subscribers are called synchronously on the thread that dispatches, in the
order they subscribed. A failing subscriber is logged, counted and skipped;
it never reaches the scheduler and never stops delivery to the others.

Counters are updated before any callback runs, so a stats snapshot taken
inside or after a callback already includes the event being delivered.
"""

from __future__ import annotations

import collections
import itertools
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from kanshi.errors import SubscriberFailure
from kanshi.log import logger
from kanshi.models import EventKind, MonitoringEvent, MonitoringStats

Callback = Callable[[MonitoringEvent], object]

_TICK_DURATION_WINDOW = 100


class StatsAggregator:
    """Thread-safe counters for one monitor run."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.reset()

    def reset(self, started_at: float | None = None) -> None:
        with self._lock:
            self._started_at = started_at
            self._stopped_at: float | None = None
            self._frozen = False
            self._total_samples = 0
            self._total_events = 0
            self._events_by_kind = {kind: 0 for kind in EventKind}
            self._ticks = 0
            self._sample_failures = 0
            self._failures_by_metric: dict[str, int] = {}
            self._out_of_order = 0
            self._dispatch_failures = 0
            self._last_tick_at: float | None = None
            self._tick_durations: collections.deque[float] = collections.deque(maxlen=_TICK_DURATION_WINDOW)

    def freeze(self, stopped_at: float | None = None) -> None:
        """Stop counting. Everything after this is ignored until reset()."""
        with self._lock:
            if self._frozen:
                return
            self._stopped_at = stopped_at if stopped_at is not None else time.time()
            self._frozen = True

    def record_event(self, kind: EventKind) -> None:
        with self._lock:
            if self._frozen:
                return
            self._total_events += 1
            self._events_by_kind[kind] += 1

    def record_samples(self, count: int) -> None:
        with self._lock:
            if not self._frozen:
                self._total_samples += count

    def record_sample_failure(self, metric_id: str) -> None:
        with self._lock:
            if self._frozen:
                return
            self._sample_failures += 1
            self._failures_by_metric[metric_id] = self._failures_by_metric.get(metric_id, 0) + 1

    def record_out_of_order(self, metric_id: str) -> None:
        with self._lock:
            if not self._frozen:
                self._out_of_order += 1

    def record_dispatch_failure(self) -> None:
        with self._lock:
            if not self._frozen:
                self._dispatch_failures += 1

    def record_tick(self, duration: float, at: float | None = None) -> None:
        with self._lock:
            if self._frozen:
                return
            self._ticks += 1
            self._last_tick_at = at if at is not None else time.time()
            self._tick_durations.append(duration)

    def snapshot(self) -> MonitoringStats:
        """Copy of the current counters."""
        with self._lock:
            if self._started_at is None:
                uptime = 0.0
            else:
                end = self._stopped_at if self._stopped_at is not None else time.time()
                uptime = max(0.0, end - self._started_at)
            durations = list(self._tick_durations)
            return MonitoringStats(
                started_at=self._started_at,
                stopped_at=self._stopped_at,
                total_samples=self._total_samples,
                total_events=self._total_events,
                events_by_kind=dict(self._events_by_kind),
                ticks=self._ticks,
                sample_failures=self._sample_failures,
                failures_by_metric=dict(self._failures_by_metric),
                out_of_order_samples=self._out_of_order,
                dispatch_failures=self._dispatch_failures,
                last_tick_at=self._last_tick_at,
                average_tick_seconds=sum(durations) / len(durations) if durations else 0.0,
                uptime_seconds=uptime,
            )


@dataclass(frozen=True)
class Subscription:
    """Handle returned by subscribe(); pass it back to unsubscribe()."""

    id: int
    kinds: frozenset[EventKind] | None = None


class EventDispatcher:
    """Subscriber registry with isolated, ordered delivery."""

    def __init__(self, stats: StatsAggregator | None = None, failure_log_size: int = 100) -> None:
        self._stats = stats if stats is not None else StatsAggregator()
        self._subscribers: dict[int, tuple[Subscription, Callback]] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._failures: collections.deque[SubscriberFailure] = collections.deque(maxlen=failure_log_size)

    @property
    def stats(self) -> StatsAggregator:
        return self._stats

    def subscribe(self, callback: Callback, kinds: Iterable[EventKind] | None = None) -> Subscription:
        """Register a callback for every event, or only for the given kinds."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        kind_filter = frozenset(EventKind(k) for k in kinds) if kinds is not None else None
        with self._lock:
            handle = Subscription(id=next(self._ids), kinds=kind_filter)
            self._subscribers[handle.id] = (handle, callback)
        return handle

    def unsubscribe(self, handle: Subscription) -> bool:
        """Remove a subscription. Returns False if it was already gone."""
        with self._lock:
            return self._subscribers.pop(handle.id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def recent_failures(self) -> list[SubscriberFailure]:
        """Most recent subscriber failures, oldest first."""
        with self._lock:
            return list(self._failures)

    def dispatch(self, event: MonitoringEvent) -> int:
        """Count the event, then deliver it. Returns the number of successful deliveries."""
        self._stats.record_event(event.kind)

        # Copy so callbacks can subscribe/unsubscribe during delivery
        with self._lock:
            targets = list(self._subscribers.values())

        delivered = 0
        for handle, callback in targets:
            if handle.kinds is not None and event.kind not in handle.kinds:
                continue
            try:
                callback(event)
                delivered += 1
            except Exception as exc:
                failure = SubscriberFailure(handle.id, event.kind.value, exc)
                with self._lock:
                    self._failures.append(failure)
                self._stats.record_dispatch_failure()
                logger.warning("Subscriber #%d failed on %s event", handle.id, event.kind.value, exc_info=True)
        return delivered
