from __future__ import annotations

__version__ = "0.1.0"

from collections.abc import Mapping
from types import TracebackType
from typing import Any

from kanshi.config.settings import MonitoringConfig
from kanshi.core.providers import ProviderRegistry
from kanshi.errors import (
    AlreadyRunning,
    ConfigInvalid,
    KanshiError,
    LifecycleError,
    NotRunning,
    OutOfOrderSample,
    SampleUnavailable,
    SubscriberFailure,
)
from kanshi.models import (
    EventKind,
    MetricKind,
    MonitorState,
    PowerAlert,
    Sample,
    Snapshot,
    Started,
    Stopped,
    ThermalAlert,
)
from kanshi.monitor import HardwareMonitor

__all__ = [
    "AlreadyRunning",
    "ConfigInvalid",
    "EventKind",
    "HardwareMonitor",
    "KanshiError",
    "LifecycleError",
    "MetricKind",
    "MonitorState",
    "MonitoringConfig",
    "NotRunning",
    "OutOfOrderSample",
    "PowerAlert",
    "ProviderRegistry",
    "Sample",
    "SampleUnavailable",
    "Snapshot",
    "Started",
    "Stopped",
    "SubscriberFailure",
    "ThermalAlert",
    "watch",
]


class watch:
    """Context manager that runs a HardwareMonitor during a block of code.

    Usage:
        with kanshi.watch() as monitor:
            monitor.subscribe(print, kinds=[kanshi.EventKind.THERMAL_ALERT])
            train_model()

    Without a config, the "monitoring" section of ~/.kanshi/config.json
    (over the packaged defaults) is used, limited to metrics this host
    actually provides.
    """

    def __init__(
        self,
        config: MonitoringConfig | Mapping[str, Any] | None = None,
        registry: ProviderRegistry | None = None,
    ) -> None:
        self._monitor = HardwareMonitor(registry=registry)
        if config is None:
            available = [m for m in MonitoringConfig.from_settings().enabled_metrics if m in self._monitor.registry]
            if not available:
                available = self._monitor.registry.metric_ids()
            config = MonitoringConfig.from_settings(enabled_metrics=available)
        self._monitor.configure(config)

    def __enter__(self) -> HardwareMonitor:
        self._monitor.start()
        return self._monitor

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: TracebackType | None) -> bool:
        self._monitor.stop()
        return False
