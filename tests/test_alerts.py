"""Tests for the edge-triggered ThresholdEvaluator and time formatting."""

from kanshi.intelligence.alerts import ThresholdEvaluator, format_seconds
from kanshi.models import CrossingKind


# ---------------------------------------------------------------------------
# Edge detection
# ---------------------------------------------------------------------------

class TestEdgeDetection:
    def test_rises_once_while_above(self):
        ev = ThresholdEvaluator()
        results = [ev.evaluate("cpu_temperature", v, 80.0) for v in [85, 86, 90, 95, 81]]
        assert results == [CrossingKind.ROSE_ABOVE, None, None, None, None]

    def test_below_threshold_is_silent(self):
        ev = ThresholdEvaluator()
        assert ev.evaluate("cpu_temperature", 70.0, 80.0) is None
        assert ev.evaluate("cpu_temperature", 80.0, 80.0) is None

    def test_equal_value_is_not_above(self):
        """Strictly greater is required to rise; equal counts as fallen."""
        ev = ThresholdEvaluator()
        assert ev.evaluate("cpu_temperature", 80.0, 80.0) is None
        assert ev.evaluate("cpu_temperature", 80.1, 80.0) is CrossingKind.ROSE_ABOVE
        assert ev.evaluate("cpu_temperature", 80.0, 80.0) is CrossingKind.FELL_BELOW

    def test_rearms_after_fall(self):
        ev = ThresholdEvaluator()
        seq = [85, 70, 90, 91, 60, 99]
        results = [ev.evaluate("cpu_temperature", v, 80.0) for v in seq]
        assert results.count(CrossingKind.ROSE_ABOVE) == 3
        assert results.count(CrossingKind.FELL_BELOW) == 2

    def test_metrics_tracked_separately(self):
        ev = ThresholdEvaluator()
        assert ev.evaluate("cpu_temperature", 85, 80) is CrossingKind.ROSE_ABOVE
        assert ev.evaluate("gpu0_temperature", 85, 80) is CrossingKind.ROSE_ABOVE
        assert ev.evaluate("cpu_temperature", 85, 80) is None


class TestThresholdChange:
    def test_lowering_threshold_while_above_does_not_refire(self):
        ev = ThresholdEvaluator()
        assert ev.evaluate("cpu_temperature", 85, 80) is CrossingKind.ROSE_ABOVE
        assert ev.evaluate("cpu_temperature", 85, 70) is None

    def test_raising_threshold_above_value_falls(self):
        ev = ThresholdEvaluator()
        ev.evaluate("cpu_temperature", 85, 80)
        assert ev.evaluate("cpu_temperature", 85, 90) is CrossingKind.FELL_BELOW

    def test_reset_rearms(self):
        ev = ThresholdEvaluator()
        ev.evaluate("cpu_temperature", 85, 80)
        ev.reset()
        assert ev.evaluate("cpu_temperature", 85, 80) is CrossingKind.ROSE_ABOVE

    def test_forget_rearms_one_metric(self):
        ev = ThresholdEvaluator()
        ev.evaluate("cpu_temperature", 85, 80)
        ev.evaluate("gpu0_temperature", 85, 80)
        ev.forget("cpu_temperature")
        ev.forget("never-seen")
        assert ev.evaluate("cpu_temperature", 85, 80) is CrossingKind.ROSE_ABOVE
        assert ev.evaluate("gpu0_temperature", 85, 80) is None


# ---------------------------------------------------------------------------
# format_seconds
# ---------------------------------------------------------------------------

class TestFormatSeconds:
    def test_seconds(self):
        assert format_seconds(45) == "45s"

    def test_minutes(self):
        assert format_seconds(290) == "4m 50s"

    def test_hours(self):
        assert format_seconds(18000) == "5h 0m"

    def test_unparseable(self):
        assert format_seconds("soon") == "soon"
