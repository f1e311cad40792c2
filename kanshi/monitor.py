"""HardwareMonitor: the sampling loop and the query surface around it.

One background thread per running monitor. Every tick it pulls one sample
per enabled metric from the provider registry, records it, runs the
edge-triggered threshold checks and dispatches the resulting events. All
state (config, history, edge flags, stats, subscribers) belongs to the
instance, so any number of monitors can run side by side.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable, Mapping
from typing import Any

from kanshi.config.loader import get_config
from kanshi.config.settings import MonitoringConfig
from kanshi.core.providers import ProviderRegistry
from kanshi.dispatch import Callback, EventDispatcher, StatsAggregator, Subscription
from kanshi.errors import (
    AlreadyRunning,
    ConfigInvalid,
    LifecycleError,
    NotRunning,
    OutOfOrderSample,
    SampleUnavailable,
    SubscriberFailure,
)
from kanshi.intelligence.alerts import ThresholdEvaluator
from kanshi.intelligence.history import HistoryStore
from kanshi.intelligence.power import classify_power_state, efficiency_score, estimate_runway
from kanshi.intelligence.recommendations import suggest_cooling, suggest_power
from kanshi.intelligence.thermal import classify_thermal_status, predict_throttling
from kanshi.log import logger
from kanshi.models import (
    CrossingKind,
    EventKind,
    MetricKind,
    MonitoringEvent,
    MonitoringStats,
    MonitorState,
    OptimizationSuggestion,
    PowerAlert,
    PowerState,
    RunwayEstimate,
    Sample,
    Snapshot,
    Started,
    Stopped,
    ThermalAlert,
    ThermalStatus,
    ThrottlePrediction,
)

# Edge-state key for the summed draw of all enabled power metrics
TOTAL_POWER_ID = "power_total"


class HardwareMonitor:
    """Samples registered metrics on a fixed interval and notifies subscribers.

    Lifecycle is Stopped -> Running -> Stopping -> Stopped. start() on a
    monitor that is not stopped raises AlreadyRunning; stop() is idempotent
    and returns once the loop thread has exited.
    """

    def __init__(
        self,
        registry: ProviderRegistry | None = None,
        config: MonitoringConfig | Mapping[str, Any] | None = None,
    ) -> None:
        if registry is None:
            from kanshi.core.sensors import default_registry
            registry = default_registry()
        self._registry = registry

        self._config: MonitoringConfig | None = None
        self._config_lock = threading.Lock()

        self._state = MonitorState.STOPPED
        self._lifecycle_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

        self._tick_cond = threading.Condition()
        self._tick_count = 0

        self._history = HistoryStore()
        self._evaluator = ThresholdEvaluator()
        self._stats = StatsAggregator()
        failure_log_size = _section("dispatch").get("failure_log_size", 100)
        self._dispatcher = EventDispatcher(self._stats, failure_log_size=failure_log_size)

        if config is not None:
            self.configure(config)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def config(self) -> MonitoringConfig | None:
        with self._config_lock:
            return self._config

    def configure(self, config: MonitoringConfig | Mapping[str, Any]) -> MonitoringConfig:
        """Validate and store a new configuration.

        Raises ConfigInvalid and leaves the current configuration untouched
        if validation fails. While running, the change applies from the next
        tick.
        """
        new = MonitoringConfig.coerce(config)
        self._check_registered(new)
        with self._config_lock:
            self._config = new
        logger.info(
            "Monitor configured: interval=%.2fs window=%d metrics=%s",
            new.update_interval, new.history_window, ",".join(new.enabled_metrics),
        )
        return new

    def _check_registered(self, config: MonitoringConfig) -> None:
        missing = [m for m in config.enabled_metrics if m not in self._registry]
        if missing:
            raise ConfigInvalid(
                f"no provider registered for: {', '.join(missing)}",
                field_name="enabled_metrics",
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        with self._lifecycle_lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state is MonitorState.RUNNING

    def start(self) -> None:
        """Start the sampling thread. The first tick happens one interval later."""
        with self._lifecycle_lock:
            if self._state is not MonitorState.STOPPED:
                raise AlreadyRunning(f"monitor is already {self._state.value}")
            config = self.config
            if config is None:
                raise ConfigInvalid("monitor has no configuration; call configure() first")
            self._check_registered(config)

            self._history.clear()
            self._history.resize(config.history_window)
            self._evaluator.reset()
            self._stats.reset(started_at=time.time())
            with self._tick_cond:
                self._tick_count = 0
            self._stop_event.clear()

            self._state = MonitorState.RUNNING
            self._thread = threading.Thread(target=self._run, name="kanshi-monitor", daemon=True)
            self._thread.start()
        logger.info("Monitor started (%d metrics)", len(config.enabled_metrics))

    def stop(self) -> None:
        """Stop sampling and wait for the loop thread to exit.

        Called from a subscriber on the loop thread, the stop is deferred: this
        returns immediately and the loop finishes right after the current
        dispatch.
        """
        with self._lifecycle_lock:
            if self._state is MonitorState.STOPPED:
                return
            self._state = MonitorState.STOPPING
            self._stop_event.set()
            thread = self._thread

        if thread is None:
            return
        if thread is threading.current_thread():
            logger.debug("stop() called from the monitor thread, finishing after current dispatch")
            return
        thread.join()

    def restart(self) -> None:
        """Stop (if needed) and start again with fresh history and stats.

        Raises LifecycleError when called from a subscriber: the loop thread
        cannot wait for itself to exit. Call stop() there instead.
        """
        thread = self._thread
        if thread is not None and thread is threading.current_thread():
            raise LifecycleError("restart() cannot run on the monitor thread; call stop() from the subscriber instead")
        self.stop()
        self.start()

    def wait_for_ticks(self, count: int = 1, timeout: float | None = 5.0) -> bool:
        """Block until `count` more ticks have completed.

        Returns False if the timeout expires or the monitor stops first.
        Raises NotRunning when called on a monitor that is not running.
        """
        if not self.is_running:
            raise NotRunning("monitor is not running")
        with self._tick_cond:
            target = self._tick_count + count
            self._tick_cond.wait_for(
                lambda: self._tick_count >= target or self._state is not MonitorState.RUNNING,
                timeout=timeout,
            )
            return self._tick_count >= target

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _run(self) -> None:
        try:
            self._dispatcher.dispatch(Started())
            wait = self._interval()
            while not self._stop_event.wait(wait):
                cycle_start = time.monotonic()
                try:
                    self._tick()
                except Exception:
                    logger.warning("Monitor tick failed", exc_info=True)
                elapsed = time.monotonic() - cycle_start
                self._stats.record_tick(elapsed)
                with self._tick_cond:
                    self._tick_count += 1
                    self._tick_cond.notify_all()
                # A slow tick delays the next one instead of overlapping it
                wait = max(0.0, self._interval() - elapsed)
        finally:
            self._finish()

    def _finish(self) -> None:
        try:
            self._dispatcher.dispatch(Stopped())
        finally:
            self._stats.freeze()
            with self._lifecycle_lock:
                self._state = MonitorState.STOPPED
            with self._tick_cond:
                self._tick_cond.notify_all()
            stats = self._stats.snapshot()
            logger.info(
                "Monitor stopped after %d ticks (%d samples, %d events)",
                stats.ticks, stats.total_samples, stats.total_events,
            )

    def _interval(self) -> float:
        config = self.config
        return config.update_interval if config is not None else 1.0

    def _tick(self) -> None:
        config = self.config
        if config is None:
            return
        self._history.resize(config.history_window)
        self._drop_disabled(config)

        samples: list[Sample] = []
        for metric_id in config.enabled_metrics:
            try:
                sample = self._registry.provide(metric_id)
            except SampleUnavailable as exc:
                self._stats.record_sample_failure(metric_id)
                if exc.__cause__ is not None:
                    logger.warning("Provider for '%s' crashed: %s", metric_id, exc.reason)
                else:
                    logger.debug("Skipping '%s' this tick: %s", metric_id, exc.reason)
                continue
            try:
                self._history.record(metric_id, sample)
            except OutOfOrderSample as exc:
                self._stats.record_out_of_order(metric_id)
                logger.warning("Dropped out-of-order sample: %s", exc)
                continue
            samples.append(sample)
        self._stats.record_samples(len(samples))

        for alert in self._check_thresholds(samples, config):
            self._dispatcher.dispatch(alert)

        prediction = None
        if config.predict_on_tick:
            prediction = self._predict(config, workload_intensity=1.0, metric_id=None)
        self._dispatcher.dispatch(Snapshot(samples=tuple(samples), timestamp=time.time(), prediction=prediction))

    def _drop_disabled(self, config: MonitoringConfig) -> None:
        """Forget history and edge state of metrics the config no longer samples."""
        enabled = set(config.enabled_metrics)
        for metric_id in self._history.metric_ids():
            if metric_id not in enabled:
                logger.debug("Dropping history of disabled metric '%s'", metric_id)
                self._history.discard(metric_id)
                self._evaluator.forget(metric_id)
        if not any(self._registry.kind(m) is MetricKind.POWER for m in enabled):
            self._evaluator.forget(TOTAL_POWER_ID)

    def _check_thresholds(self, samples: list[Sample], config: MonitoringConfig) -> list[MonitoringEvent]:
        """Thermal alerts per temperature metric, then one power alert on the summed draw."""
        alerts: list[MonitoringEvent] = []
        power_samples = []
        for sample in samples:
            kind = self._registry.kind(sample.metric_id)
            if kind is MetricKind.POWER:
                power_samples.append(sample)
            elif kind is MetricKind.TEMPERATURE and self._rose_above(
                sample.metric_id, sample.value, config.thermal_threshold,
            ):
                alerts.append(ThermalAlert(
                    metric_id=sample.metric_id,
                    temperature=sample.value,
                    threshold=config.thermal_threshold,
                    timestamp=sample.timestamp,
                ))

        if power_samples and config.power_threshold is not None:
            total = self._total_power(config)
            if total is not None and self._rose_above(TOTAL_POWER_ID, total, config.power_threshold):
                alerts.append(PowerAlert(
                    metric_id=TOTAL_POWER_ID,
                    current_power=total,
                    threshold=config.power_threshold,
                    timestamp=max(s.timestamp for s in power_samples),
                ))
        return alerts

    def _rose_above(self, metric_id: str, value: float, threshold: float) -> bool:
        crossing = self._evaluator.evaluate(metric_id, value, threshold)
        if crossing is CrossingKind.FELL_BELOW:
            logger.info("'%s' back at or below %.1f (now %.1f)", metric_id, threshold, value)
        elif crossing is CrossingKind.ROSE_ABOVE:
            logger.info("'%s' rose above %.1f (now %.1f)", metric_id, threshold, value)
        return crossing is CrossingKind.ROSE_ABOVE

    # ------------------------------------------------------------------
    # Subscriptions and stats
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callback, kinds: Iterable[EventKind] | None = None) -> Subscription:
        return self._dispatcher.subscribe(callback, kinds=kinds)

    def unsubscribe(self, handle: Subscription) -> bool:
        return self._dispatcher.unsubscribe(handle)

    def recent_failures(self) -> list[SubscriberFailure]:
        return self._dispatcher.recent_failures()

    def stats(self) -> MonitoringStats:
        return self._stats.snapshot()

    # ------------------------------------------------------------------
    # History queries
    # ------------------------------------------------------------------

    def snapshot(self, metric_id: str) -> list[Sample]:
        """Copy of a metric's history, oldest first."""
        return self._history.snapshot(metric_id)

    def latest(self, metric_id: str) -> Sample | None:
        return self._history.latest(metric_id)

    def _latest_of_kind(self, kind: MetricKind, config: MonitoringConfig | None) -> list[Sample]:
        """Latest reading of each enabled metric of a kind. Disabled metrics never count."""
        metric_ids = self._registry.metrics_of_kind(kind)
        if config is not None:
            enabled = set(config.enabled_metrics)
            metric_ids = [m for m in metric_ids if m in enabled]
        samples = []
        for metric_id in metric_ids:
            sample = self._history.latest(metric_id)
            if sample is not None:
                samples.append(sample)
        return samples

    def _total_power(self, config: MonitoringConfig | None) -> float | None:
        draws = self._latest_of_kind(MetricKind.POWER, config)
        return sum(s.value for s in draws) if draws else None

    def current_temperature(self) -> float | None:
        """Hottest latest reading across enabled temperature metrics."""
        temps = self._latest_of_kind(MetricKind.TEMPERATURE, self.config)
        return max(s.value for s in temps) if temps else None

    def current_power_draw(self) -> float | None:
        """Sum of the latest readings of every enabled power metric, in watts."""
        return self._total_power(self.config)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def predict_thermal_throttling(
        self,
        workload_intensity: float = 1.0,
        metric_id: str | None = None,
    ) -> ThrottlePrediction:
        """Project when a temperature metric reaches its critical temperature.

        Without a metric_id the currently hottest temperature metric is used.
        """
        return self._predict(self.config, workload_intensity=workload_intensity, metric_id=metric_id)

    def _predict(
        self,
        config: MonitoringConfig | None,
        workload_intensity: float,
        metric_id: str | None,
    ) -> ThrottlePrediction:
        if metric_id is None:
            temps = self._latest_of_kind(MetricKind.TEMPERATURE, config)
            if temps:
                metric_id = max(temps, key=lambda s: s.value).metric_id

        samples = self._history.snapshot(metric_id) if metric_id is not None else []
        if config is None:
            return predict_throttling(samples, workload_intensity=workload_intensity)
        return predict_throttling(
            samples,
            workload_intensity=workload_intensity,
            critical_temperature=config.critical_temperature,
            horizon_seconds=config.prediction_horizon,
            trend_samples=config.trend_samples,
        )

    def thermal_status(self) -> ThermalStatus:
        bands = _section("thermal_status")
        return classify_thermal_status(
            self.current_temperature(),
            warm=bands.get("warm", 70.0),
            hot=bands.get("hot", 80.0),
            critical=bands.get("critical", 90.0),
        )

    def power_state(self) -> PowerState:
        return self._classify_power(self.current_power_draw())

    def _classify_power(self, draw: float | None) -> PowerState:
        bands = _section("power_state")
        config = self.config
        return classify_power_state(
            draw,
            power_threshold=config.power_threshold if config is not None else None,
            normal_watts=bands.get("normal_watts", 50.0),
            high_watts=bands.get("high_watts", 100.0),
            critical_watts=bands.get("critical_watts", 200.0),
        )

    def power_efficiency(self) -> float:
        """Performance-per-watt score in [0, 1] for the current draw; 0.0 when unknown."""
        return efficiency_score(self.current_power_draw())

    def suggest_cooling_optimizations(self) -> list[OptimizationSuggestion]:
        return suggest_cooling(self.thermal_status(), self.power_state())

    def suggest_power_optimizations(self) -> list[OptimizationSuggestion]:
        draw = self.current_power_draw()
        return suggest_power(self.thermal_status(), self._classify_power(draw), draw)

    def estimate_battery_runway(
        self,
        capacity_wh: float | None = None,
        power_draw_w: float | None = None,
        charge_percent: float | None = None,
    ) -> RunwayEstimate:
        """Remaining battery time at the current draw.

        Missing arguments fall back to the configured capacity, the summed
        power metrics and the latest battery charge reading.
        """
        config = self.config
        if capacity_wh is None:
            capacity_wh = config.battery_capacity_wh if config is not None else None
        if power_draw_w is None:
            power_draw_w = self._total_power(config)
        if charge_percent is None:
            charges = self._latest_of_kind(MetricKind.BATTERY, config)
            charge_percent = charges[0].value if charges else None
        return estimate_runway(capacity_wh, power_draw_w, charge_percent)


def _section(name: str) -> dict:
    section = get_config().get(name, {})
    return section if isinstance(section, dict) else {}
