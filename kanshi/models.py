"""Value objects shared across the engine.

Everything here is immutable: samples, events, predictions and suggestions
are produced per tick or per query and handed out by value.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field


class MetricKind(str, enum.Enum):
    """What a metric measures. Decides which threshold applies to it."""

    TEMPERATURE = "temperature"
    POWER = "power"
    UTILIZATION = "utilization"
    BATTERY = "battery"
    OTHER = "other"


class EventKind(str, enum.Enum):
    STARTED = "started"
    STOPPED = "stopped"
    SNAPSHOT = "snapshot"
    THERMAL_ALERT = "thermal_alert"
    POWER_ALERT = "power_alert"


class MonitorState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class CrossingKind(str, enum.Enum):
    ROSE_ABOVE = "rose_above"
    FELL_BELOW = "fell_below"


class Severity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class PredictionStatus(str, enum.Enum):
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"


class ThermalStatus(str, enum.Enum):
    NORMAL = "normal"
    WARM = "warm"
    HOT = "hot"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class PowerState(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


class OptimizationCategory(str, enum.Enum):
    CPU_SCALING = "cpu_scaling"
    GPU_POWER_LIMIT = "gpu_power_limit"
    DISPLAY_BRIGHTNESS = "display_brightness"
    BACKGROUND_PROCESSES = "background_processes"
    THERMAL_MANAGEMENT = "thermal_management"
    COOLING_HARDWARE = "cooling_hardware"
    SYSTEM_SETTINGS = "system_settings"


class Difficulty(enum.IntEnum):
    """Ordered so that ranking can sort easiest first."""

    EASY = 1
    MODERATE = 2
    ADVANCED = 3


class CostTier(enum.IntEnum):
    FREE = 0
    LOW = 1
    MODERATE = 2
    HIGH = 3


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Sample:
    """One reading of one metric."""

    metric_id: str
    value: float
    timestamp: float


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MonitoringEvent:
    """Base class for everything handed to subscribers."""

    kind = EventKind.SNAPSHOT  # overridden by every subclass


@dataclass(frozen=True)
class Started(MonitoringEvent):
    timestamp: float = field(default_factory=time.time)

    kind = EventKind.STARTED


@dataclass(frozen=True)
class Stopped(MonitoringEvent):
    timestamp: float = field(default_factory=time.time)

    kind = EventKind.STOPPED


@dataclass(frozen=True)
class ThermalAlert(MonitoringEvent):
    metric_id: str
    temperature: float
    threshold: float
    timestamp: float

    kind = EventKind.THERMAL_ALERT


@dataclass(frozen=True)
class PowerAlert(MonitoringEvent):
    metric_id: str
    current_power: float
    threshold: float
    timestamp: float

    kind = EventKind.POWER_ALERT


@dataclass(frozen=True)
class Snapshot(MonitoringEvent):
    """Readings gathered during one tick, in enabled-metric order."""

    samples: tuple[Sample, ...]
    timestamp: float
    prediction: ThrottlePrediction | None = None

    kind = EventKind.SNAPSHOT

    def value_of(self, metric_id: str) -> float | None:
        for sample in self.samples:
            if sample.metric_id == metric_id:
                return sample.value
        return None


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MonitoringStats:
    started_at: float | None
    stopped_at: float | None
    total_samples: int
    total_events: int
    events_by_kind: dict[EventKind, int]
    ticks: int
    sample_failures: int
    failures_by_metric: dict[str, int]
    out_of_order_samples: int
    dispatch_failures: int
    last_tick_at: float | None
    average_tick_seconds: float
    uptime_seconds: float


# ---------------------------------------------------------------------------
# Predictions and suggestions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ThrottlePrediction:
    will_throttle: bool
    projected_seconds: float | None
    severity: Severity
    status: PredictionStatus = PredictionStatus.OK
    metric_id: str | None = None
    current_temperature: float | None = None
    critical_temperature: float | None = None
    slope_per_second: float = 0.0
    r_squared: float = 0.0
    data_points: int = 0
    recommendations: tuple[str, ...] = ()

    @property
    def insufficient_data(self) -> bool:
        return self.status is PredictionStatus.INSUFFICIENT_DATA


@dataclass(frozen=True)
class OptimizationSuggestion:
    category: OptimizationCategory
    recommendation: str
    estimated_impact: float
    difficulty: Difficulty
    cost: CostTier
    impact_unit: str = "W"


@dataclass(frozen=True)
class RunwayEstimate:
    remaining_seconds: float | None
    status: str
    capacity_wh: float | None = None
    power_draw_w: float | None = None
    eta: str = "unknown"

    @property
    def known(self) -> bool:
        return self.remaining_seconds is not None
