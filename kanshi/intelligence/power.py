"""Power draw classification and battery runway estimation."""

from __future__ import annotations

from kanshi.intelligence.alerts import format_seconds
from kanshi.models import PowerState, RunwayEstimate


def classify_power_state(
    power_draw_w: float | None,
    power_threshold: float | None = None,
    normal_watts: float = 50.0,
    high_watts: float = 100.0,
    critical_watts: float = 200.0,
) -> PowerState:
    """Bucket a power draw. Reaching a configured power threshold is always CRITICAL."""
    if power_draw_w is None or power_draw_w < 0:
        return PowerState.UNKNOWN
    if power_threshold is not None and power_draw_w >= power_threshold:
        return PowerState.CRITICAL
    if power_draw_w >= critical_watts:
        return PowerState.CRITICAL
    if power_draw_w >= high_watts:
        return PowerState.HIGH
    if power_draw_w >= normal_watts:
        return PowerState.NORMAL
    return PowerState.LOW


def efficiency_score(power_draw_w: float | None) -> float:
    """Rough performance-per-watt score in [0, 1]; 0.0 when the draw is unknown."""
    if power_draw_w is None or power_draw_w <= 0:
        return 0.0
    if power_draw_w < 50.0:
        return 0.9
    if power_draw_w < 100.0:
        return 0.7
    if power_draw_w < 200.0:
        return 0.5
    return 0.3


def estimate_runway(
    capacity_wh: float | None,
    power_draw_w: float | None,
    charge_percent: float | None = None,
) -> RunwayEstimate:
    """Seconds until the battery is exhausted at the current draw.

    remaining = capacity_wh * 3600 / power_draw_w, scaled by the charge level
    when one is known. Unknown (not an error) when the draw is non-positive
    or the capacity is missing.
    """
    if capacity_wh is None or capacity_wh <= 0 or power_draw_w is None or power_draw_w <= 0:
        return RunwayEstimate(
            remaining_seconds=None,
            status="unknown",
            capacity_wh=capacity_wh,
            power_draw_w=power_draw_w,
        )

    usable_wh = capacity_wh
    if charge_percent is not None:
        usable_wh = capacity_wh * max(0.0, min(100.0, charge_percent)) / 100.0

    remaining = usable_wh * 3600.0 / power_draw_w
    return RunwayEstimate(
        remaining_seconds=remaining,
        status="ok",
        capacity_wh=capacity_wh,
        power_draw_w=power_draw_w,
        eta=format_seconds(remaining),
    )
