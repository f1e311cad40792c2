"""Thermal throttling prediction.

Fits a straight line through the most recent temperature samples and
extrapolates when the sensor reaches its critical temperature. All math is
pure Python (no numpy) so the package stays lightweight.

Method, kept deterministic so results can be asserted exactly:

1. Take the newest ``trend_samples`` samples of the metric.
2. Ordinary least-squares slope of temperature against seconds elapsed
   since the first of those samples (degrees per second).
3. Scale by workload intensity: ``slope * (0.5 + 0.5 * intensity)``.
   Intensity 1.0 keeps the fitted slope; 0.0 halves it.
4. ``projected_seconds = (critical - current) / slope`` for a positive
   slope, ``None`` otherwise; ``current`` is the newest sample's value.
"""

from __future__ import annotations

from collections.abc import Sequence

from kanshi.models import (
    PredictionStatus,
    Sample,
    Severity,
    ThermalStatus,
    ThrottlePrediction,
)

HIGH_SEVERITY_SECONDS = 60.0
MEDIUM_SEVERITY_SECONDS = 300.0
MIN_SAMPLES = 2


def linear_regression(points: Sequence[tuple[float, float]]) -> tuple[float, float, float]:
    """Pure-Python least-squares linear regression.

    Args:
        points: list of (x, y) tuples

    Returns:
        (slope, intercept, r_squared)
    """
    n = len(points)
    if n < 2:
        return 0.0, 0.0, 0.0

    sum_x = sum(p[0] for p in points)
    sum_y = sum(p[1] for p in points)
    sum_xy = sum(p[0] * p[1] for p in points)
    sum_x2 = sum(p[0] ** 2 for p in points)

    denominator = n * sum_x2 - sum_x ** 2
    if denominator == 0:
        return 0.0, sum_y / n, 0.0

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n

    mean_y = sum_y / n
    ss_tot = sum((p[1] - mean_y) ** 2 for p in points)
    ss_res = sum((p[1] - (slope * p[0] + intercept)) ** 2 for p in points)

    r_squared = 1 - (ss_res / ss_tot) if ss_tot > 0 else 0.0
    # Negative R^2 means the fit is worse than the mean
    r_squared = max(0.0, min(1.0, r_squared))

    return slope, intercept, r_squared


def temperature_slope(samples: Sequence[Sample]) -> tuple[float, float]:
    """(degrees per second, r_squared) across the given samples."""
    if len(samples) < MIN_SAMPLES:
        return 0.0, 0.0
    t0 = samples[0].timestamp
    points = [(s.timestamp - t0, s.value) for s in samples]
    slope, _, r_squared = linear_regression(points)
    return slope, r_squared


def severity_for(projected_seconds: float | None) -> Severity:
    if projected_seconds is None:
        return Severity.LOW
    if projected_seconds < HIGH_SEVERITY_SECONDS:
        return Severity.HIGH
    if projected_seconds < MEDIUM_SEVERITY_SECONDS:
        return Severity.MEDIUM
    return Severity.LOW


def classify_thermal_status(
    temperature: float | None,
    warm: float = 70.0,
    hot: float = 80.0,
    critical: float = 90.0,
) -> ThermalStatus:
    if temperature is None:
        return ThermalStatus.UNKNOWN
    if temperature >= critical:
        return ThermalStatus.CRITICAL
    if temperature >= hot:
        return ThermalStatus.HOT
    if temperature >= warm:
        return ThermalStatus.WARM
    return ThermalStatus.NORMAL


def predict_throttling(
    samples: Sequence[Sample],
    *,
    workload_intensity: float = 1.0,
    critical_temperature: float = 90.0,
    horizon_seconds: float = 300.0,
    trend_samples: int = 10,
) -> ThrottlePrediction:
    """Project when a temperature series reaches critical_temperature.

    Raises ValueError if workload_intensity is outside [0, 1]. Fewer than two
    samples is reported as insufficient data rather than a projection.
    """
    if not 0.0 <= workload_intensity <= 1.0:
        raise ValueError(f"workload_intensity must be within [0, 1], got {workload_intensity}")

    window = list(samples)[-max(trend_samples, MIN_SAMPLES):]
    metric_id = window[-1].metric_id if window else None

    if len(window) < MIN_SAMPLES:
        return ThrottlePrediction(
            will_throttle=False,
            projected_seconds=None,
            severity=Severity.LOW,
            status=PredictionStatus.INSUFFICIENT_DATA,
            metric_id=metric_id,
            current_temperature=window[-1].value if window else None,
            critical_temperature=critical_temperature,
            data_points=len(window),
        )

    current = window[-1].value
    slope, r_squared = temperature_slope(window)
    effective_slope = slope * (0.5 + 0.5 * workload_intensity)

    if current >= critical_temperature:
        projected: float | None = 0.0
    elif effective_slope > 0:
        projected = (critical_temperature - current) / effective_slope
    else:
        projected = None

    severity = severity_for(projected)
    will_throttle = projected is not None and projected <= horizon_seconds

    return ThrottlePrediction(
        will_throttle=will_throttle,
        projected_seconds=projected,
        severity=severity,
        status=PredictionStatus.OK,
        metric_id=metric_id,
        current_temperature=current,
        critical_temperature=critical_temperature,
        slope_per_second=effective_slope,
        r_squared=r_squared,
        data_points=len(window),
        recommendations=_throttle_advice(severity, will_throttle, projected),
    )


def _throttle_advice(severity: Severity, will_throttle: bool, projected: float | None) -> tuple[str, ...]:
    if projected == 0.0:
        return (
            "Sensor is at or above its critical temperature; throttling is likely occurring now",
            "Reduce workload immediately",
        )
    if not will_throttle:
        return ()
    if severity is Severity.HIGH:
        return (
            "Throttling expected within a minute; pause or reduce heavy work",
            "Raise fan speed to maximum",
        )
    if severity is Severity.MEDIUM:
        return (
            "Temperature is climbing steadily; consider reducing sustained load",
            "Check that intake and exhaust vents are unobstructed",
        )
    return ("Monitor temperature trend; throttling is possible under sustained load",)
