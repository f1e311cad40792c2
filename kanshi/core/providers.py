"""Sample provider boundary.

The engine never reads hardware itself. Each metric id is bound to a
provider: a callable taking the metric id and returning a Sample. The
registry is the only place that calls providers, and it turns every way a
provider can fail into SampleUnavailable so the scheduler has one thing to
catch.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from kanshi.errors import SampleUnavailable
from kanshi.log import logger
from kanshi.models import MetricKind, Sample

Provider = Callable[[str], Sample]
Reader = Callable[[], "float | None"]


@dataclass(frozen=True)
class ProviderEntry:
    metric_id: str
    kind: MetricKind
    provider: Provider
    description: str = ""


class ProviderRegistry:
    """Maps metric ids to sample providers. Safe to share across threads."""

    def __init__(self) -> None:
        self._entries: dict[str, ProviderEntry] = {}
        self._lock = threading.Lock()

    def register(
        self,
        metric_id: str,
        provider: Provider,
        kind: MetricKind = MetricKind.OTHER,
        description: str = "",
    ) -> None:
        """Bind a provider to a metric id, replacing any previous binding."""
        if not metric_id or not isinstance(metric_id, str):
            raise ValueError("metric_id must be a non-empty string")
        if not callable(provider):
            raise TypeError(f"provider for '{metric_id}' is not callable")
        with self._lock:
            if metric_id in self._entries:
                logger.debug("Replacing provider for metric '%s'", metric_id)
            self._entries[metric_id] = ProviderEntry(metric_id, MetricKind(kind), provider, description)

    def register_reader(
        self,
        metric_id: str,
        read: Reader,
        kind: MetricKind = MetricKind.OTHER,
        description: str = "",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Bind a zero-argument reading function, stamping each value with clock().

        A reader returning None means "no reading right now".
        """
        def provide(requested: str) -> Sample:
            value = read()
            if value is None:
                raise SampleUnavailable(requested, "reader returned no value")
            return Sample(metric_id=requested, value=float(value), timestamp=clock())

        self.register(metric_id, provide, kind=kind, description=description)

    def unregister(self, metric_id: str) -> bool:
        with self._lock:
            return self._entries.pop(metric_id, None) is not None

    def __contains__(self, metric_id: object) -> bool:
        with self._lock:
            return metric_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def metric_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def kind(self, metric_id: str) -> MetricKind:
        """Kind of a registered metric; OTHER for unknown ids."""
        with self._lock:
            entry = self._entries.get(metric_id)
        return entry.kind if entry else MetricKind.OTHER

    def metrics_of_kind(self, kind: MetricKind) -> list[str]:
        with self._lock:
            return [m for m, e in self._entries.items() if e.kind is kind]

    def describe(self) -> list[dict]:
        with self._lock:
            entries = list(self._entries.values())
        return [
            {"metric_id": e.metric_id, "kind": e.kind.value, "description": e.description}
            for e in entries
        ]

    def provide(self, metric_id: str) -> Sample:
        """Pull one sample. Raises SampleUnavailable for any provider failure."""
        with self._lock:
            entry = self._entries.get(metric_id)
        if entry is None:
            raise SampleUnavailable(metric_id, "no provider registered")

        try:
            sample = entry.provider(metric_id)
        except SampleUnavailable:
            raise
        except Exception as exc:
            raise SampleUnavailable(metric_id, f"provider raised {exc!r}") from exc

        if not isinstance(sample, Sample):
            raise SampleUnavailable(metric_id, f"provider returned {type(sample).__name__}, not Sample")
        if sample.metric_id != metric_id:
            raise SampleUnavailable(metric_id, f"provider returned a sample for '{sample.metric_id}'")
        try:
            finite = math.isfinite(sample.value) and math.isfinite(sample.timestamp)
        except TypeError:
            finite = False
        if not finite:
            raise SampleUnavailable(metric_id, "provider returned a non-finite or non-numeric value")
        return sample
