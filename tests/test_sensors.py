"""Tests for the psutil and NVML backed sensor readers.

Hardware is never touched: psutil and pynvml calls are monkeypatched.
"""

from types import SimpleNamespace

import pytest

from kanshi.core import gpu, sensors
from kanshi.core.providers import ProviderRegistry
from kanshi.models import MetricKind


def _temp(current):
    return SimpleNamespace(label="Package id 0", current=current, high=100.0, critical=105.0)


# ---------------------------------------------------------------------------
# psutil sensors
# ---------------------------------------------------------------------------

class TestCpuTemperature:
    def test_hottest_known_sensor(self, monkeypatch):
        monkeypatch.setattr(sensors.psutil, "sensors_temperatures", lambda: {
            "coretemp": [_temp(55.0), _temp(61.0)],
            "nvme": [_temp(80.0)],
        }, raising=False)
        assert sensors.read_cpu_temperature() == 61.0

    def test_no_known_driver(self, monkeypatch):
        monkeypatch.setattr(sensors.psutil, "sensors_temperatures", lambda: {"nvme": [_temp(40.0)]}, raising=False)
        assert sensors.read_cpu_temperature() is None

    def test_sensor_error(self, monkeypatch):
        def broken():
            raise OSError("no hwmon")

        monkeypatch.setattr(sensors.psutil, "sensors_temperatures", broken, raising=False)
        assert sensors.read_cpu_temperature() is None


class TestBattery:
    def test_percent(self, monkeypatch):
        monkeypatch.setattr(sensors.psutil, "sensors_battery",
                            lambda: SimpleNamespace(percent=42, power_plugged=False), raising=False)
        assert sensors.read_battery_percent() == 42.0

    def test_no_battery(self, monkeypatch):
        monkeypatch.setattr(sensors.psutil, "sensors_battery", lambda: None, raising=False)
        assert sensors.read_battery_percent() is None


class TestRegisterSystemSensors:
    def test_registers_available_sensors(self, monkeypatch):
        monkeypatch.setattr(sensors, "read_cpu_temperature", lambda: 50.0)
        monkeypatch.setattr(sensors, "read_battery_percent", lambda: None)
        reg = ProviderRegistry()
        ids = sensors.register_system_sensors(reg)
        assert ids == ["cpu_utilization", "memory_utilization", "cpu_temperature"]
        assert reg.kind("cpu_temperature") is MetricKind.TEMPERATURE
        assert "battery_percent" not in reg

    def test_skips_missing_temperature(self, monkeypatch):
        monkeypatch.setattr(sensors, "read_cpu_temperature", lambda: None)
        monkeypatch.setattr(sensors, "read_battery_percent", lambda: 80.0)
        reg = ProviderRegistry()
        ids = sensors.register_system_sensors(reg)
        assert "cpu_temperature" not in ids
        assert reg.kind("battery_percent") is MetricKind.BATTERY


# ---------------------------------------------------------------------------
# NVML
# ---------------------------------------------------------------------------

class _FakeNvml:
    NVML_TEMPERATURE_GPU = 0

    def nvmlDeviceGetCount(self):
        return 1

    def nvmlDeviceGetHandleByIndex(self, index):
        return index

    def nvmlDeviceGetTemperature(self, handle, sensor):
        return 71

    def nvmlDeviceGetPowerUsage(self, handle):
        return 154_000  # milliwatts

    def nvmlDeviceGetUtilizationRates(self, handle):
        return SimpleNamespace(gpu=97, memory=40)


class TestGpu:
    @pytest.fixture
    def fake_nvml(self, monkeypatch):
        monkeypatch.setattr(gpu, "pynvml", _FakeNvml(), raising=False)
        monkeypatch.setattr(gpu, "_pynvml_available", True)

    def test_unavailable(self, monkeypatch):
        monkeypatch.setattr(gpu, "_pynvml_available", False)
        assert gpu.gpu_count() == 0
        assert gpu.register_gpu_sensors(ProviderRegistry()) == []

    def test_readers(self, fake_nvml):
        assert gpu.read_gpu_temperature(0) == 71.0
        assert gpu.read_gpu_power(0) == pytest.approx(154.0)
        assert gpu.read_gpu_utilization(0) == 97.0

    def test_register(self, fake_nvml):
        reg = ProviderRegistry()
        ids = gpu.register_gpu_sensors(reg)
        assert ids == ["gpu0_temperature", "gpu0_power", "gpu0_utilization"]
        assert reg.kind("gpu0_power") is MetricKind.POWER
        assert reg.provide("gpu0_power").value == pytest.approx(154.0)

    def test_missing_power_counter_skipped(self, fake_nvml, monkeypatch):
        def no_power(handle):
            raise RuntimeError("NVML_ERROR_NOT_SUPPORTED")

        monkeypatch.setattr(gpu.pynvml, "nvmlDeviceGetPowerUsage", no_power)
        ids = gpu.register_gpu_sensors(ProviderRegistry())
        assert "gpu0_power" not in ids
