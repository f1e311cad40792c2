from __future__ import annotations

from kanshi.core.providers import ProviderRegistry
from kanshi.log import logger
from kanshi.models import MetricKind

_pynvml_available = False

try:
    import pynvml
    pynvml.nvmlInit()
    _pynvml_available = True
except Exception:
    logger.debug("NVIDIA GPU monitoring unavailable (pynvml not installed or no GPU)")


def gpu_count() -> int:
    if not _pynvml_available:
        return 0
    try:
        return pynvml.nvmlDeviceGetCount()
    except Exception:
        logger.warning("GPU device count query failed", exc_info=True)
        return 0


def read_gpu_temperature(index: int) -> float | None:
    try:
        handle = pynvml.nvmlDeviceGetHandleByIndex(index)
        return float(pynvml.nvmlDeviceGetTemperature(handle, pynvml.NVML_TEMPERATURE_GPU))
    except Exception:
        logger.debug("GPU temperature read failed for device %d", index)
        return None


def read_gpu_power(index: int) -> float | None:
    """Board power draw in watts (NVML reports milliwatts)."""
    try:
        handle = pynvml.nvmlDeviceGetHandleByIndex(index)
        return pynvml.nvmlDeviceGetPowerUsage(handle) / 1000.0
    except Exception:
        logger.debug("GPU power read failed for device %d", index)
        return None


def read_gpu_utilization(index: int) -> float | None:
    try:
        handle = pynvml.nvmlDeviceGetHandleByIndex(index)
        return float(pynvml.nvmlDeviceGetUtilizationRates(handle).gpu)
    except Exception:
        logger.debug("GPU utilization read failed for device %d", index)
        return None


def register_gpu_sensors(registry: ProviderRegistry) -> list[str]:
    """Register temperature, power and utilization for every NVIDIA GPU."""
    registered = []
    for i in range(gpu_count()):
        readers = (
            (f"gpu{i}_temperature", read_gpu_temperature, MetricKind.TEMPERATURE, "GPU temperature (C)"),
            (f"gpu{i}_power", read_gpu_power, MetricKind.POWER, "GPU board power (W)"),
            (f"gpu{i}_utilization", read_gpu_utilization, MetricKind.UTILIZATION, "GPU utilization (%)"),
        )
        for metric_id, reader, kind, description in readers:
            # Skip counters this board does not expose (e.g. power on laptops)
            if reader(i) is None:
                continue
            registry.register_reader(
                metric_id, lambda r=reader, idx=i: r(idx),
                kind=kind, description=f"{description} #{i}",
            )
            registered.append(metric_id)
    return registered
