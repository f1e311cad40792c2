from __future__ import annotations

import psutil

from kanshi.core.providers import ProviderRegistry
from kanshi.log import logger
from kanshi.models import MetricKind

# psutil sensor labels that report the package/die temperature, by driver
_CPU_SENSOR_DRIVERS = ("coretemp", "k10temp", "zenpower", "cpu_thermal", "cpu-thermal", "acpitz")


def read_cpu_temperature() -> float | None:
    """Hottest current reading among known CPU sensor drivers, in Celsius."""
    sensors = getattr(psutil, "sensors_temperatures", None)
    if sensors is None:
        return None
    try:
        readings = sensors()
    except Exception:
        logger.debug("psutil.sensors_temperatures failed", exc_info=True)
        return None

    temps = []
    for driver in _CPU_SENSOR_DRIVERS:
        for entry in readings.get(driver, []):
            if entry.current is not None and entry.current > 0:
                temps.append(entry.current)
    return max(temps) if temps else None


def read_cpu_utilization() -> float:
    # interval=0 is non-blocking and relies on psutil's delta between calls.
    # The first call returns 0.0; later ticks are accurate.
    return psutil.cpu_percent(interval=0)


def read_memory_utilization() -> float:
    return psutil.virtual_memory().percent


def read_battery_percent() -> float | None:
    sensors = getattr(psutil, "sensors_battery", None)
    if sensors is None:
        return None
    try:
        battery = sensors()
    except Exception:
        logger.debug("psutil.sensors_battery failed", exc_info=True)
        return None
    return float(battery.percent) if battery is not None else None


def register_system_sensors(registry: ProviderRegistry) -> list[str]:
    """Register the psutil-backed sensors this host actually exposes.

    Returns the metric ids that were registered.
    """
    registered = []

    registry.register_reader(
        "cpu_utilization", read_cpu_utilization,
        kind=MetricKind.UTILIZATION, description="CPU utilization (%)",
    )
    registered.append("cpu_utilization")

    registry.register_reader(
        "memory_utilization", read_memory_utilization,
        kind=MetricKind.UTILIZATION, description="RAM utilization (%)",
    )
    registered.append("memory_utilization")

    if read_cpu_temperature() is not None:
        registry.register_reader(
            "cpu_temperature", read_cpu_temperature,
            kind=MetricKind.TEMPERATURE, description="CPU package temperature (C)",
        )
        registered.append("cpu_temperature")
    else:
        logger.debug("CPU temperature sensors unavailable on this host")

    if read_battery_percent() is not None:
        registry.register_reader(
            "battery_percent", read_battery_percent,
            kind=MetricKind.BATTERY, description="Battery charge (%)",
        )
        registered.append("battery_percent")

    return registered


def default_registry() -> ProviderRegistry:
    """Registry with every system and GPU sensor available on this host."""
    from kanshi.core.gpu import register_gpu_sensors

    registry = ProviderRegistry()
    ids = register_system_sensors(registry)
    ids += register_gpu_sensors(registry)
    logger.info("Registered %d sample providers: %s", len(ids), ", ".join(ids))
    return registry
