"""Cooling and power optimization recommendations.

Pure-function module: a rule table keyed by (thermal status, power state)
produces OptimizationSuggestion entries, ranked by estimated impact
(highest first) with ties going to the easier change.
"""

from __future__ import annotations

from dataclasses import dataclass

from kanshi.models import (
    CostTier,
    Difficulty,
    OptimizationCategory,
    OptimizationSuggestion,
    PowerState,
    ThermalStatus,
)

_HOT = frozenset({ThermalStatus.HOT, ThermalStatus.CRITICAL})
_HEAVY_DRAW = frozenset({PowerState.HIGH, PowerState.CRITICAL})
_KNOWN_DRAW = frozenset({PowerState.LOW, PowerState.NORMAL, PowerState.HIGH, PowerState.CRITICAL})


@dataclass(frozen=True)
class _Rule:
    thermal: frozenset[ThermalStatus] | None  # None matches any status
    power: frozenset[PowerState] | None
    category: OptimizationCategory
    recommendation: str
    impact: float
    difficulty: Difficulty
    cost: CostTier
    per_watt: bool = False  # impact is a fraction of the current draw

    def matches(self, thermal: ThermalStatus, power: PowerState) -> bool:
        return (self.thermal is None or thermal in self.thermal) and (
            self.power is None or power in self.power
        )


# Impact is the expected temperature reduction in Celsius.
COOLING_RULES: tuple[_Rule, ...] = (
    _Rule(frozenset({ThermalStatus.CRITICAL}), None, OptimizationCategory.THERMAL_MANAGEMENT,
          "Reduce workload immediately to bring temperatures out of the critical range",
          15.0, Difficulty.EASY, CostTier.FREE),
    _Rule(_HOT, None, OptimizationCategory.SYSTEM_SETTINGS,
          "Switch to a more aggressive fan curve",
          5.0, Difficulty.EASY, CostTier.FREE),
    _Rule(_HOT, None, OptimizationCategory.COOLING_HARDWARE,
          "Clean dust from heatsinks, fans and filters",
          8.0, Difficulty.EASY, CostTier.FREE),
    _Rule(_HOT, None, OptimizationCategory.COOLING_HARDWARE,
          "Reapply thermal paste between the processor and its cooler",
          10.0, Difficulty.ADVANCED, CostTier.LOW),
    _Rule(_HOT, None, OptimizationCategory.COOLING_HARDWARE,
          "Add or reposition case fans to improve airflow",
          6.0, Difficulty.MODERATE, CostTier.LOW),
    _Rule(_HOT, None, OptimizationCategory.COOLING_HARDWARE,
          "Upgrade to a higher-capacity cooler",
          15.0, Difficulty.ADVANCED, CostTier.HIGH),
    _Rule(_HOT, _HEAVY_DRAW, OptimizationCategory.CPU_SCALING,
          "Enable a power-saving profile to cut heat output",
          7.0, Difficulty.EASY, CostTier.FREE),
    _Rule(_HOT, _HEAVY_DRAW, OptimizationCategory.GPU_POWER_LIMIT,
          "Lower the GPU power limit",
          8.0, Difficulty.MODERATE, CostTier.FREE),
    _Rule(frozenset({ThermalStatus.WARM}), None, OptimizationCategory.SYSTEM_SETTINGS,
          "Raise the fan curve slightly",
          3.0, Difficulty.EASY, CostTier.FREE),
    _Rule(frozenset({ThermalStatus.WARM}), None, OptimizationCategory.COOLING_HARDWARE,
          "Keep intake and exhaust vents unobstructed",
          2.0, Difficulty.EASY, CostTier.FREE),
)

# Impact is the expected saving in watts (a fraction of the draw when per_watt).
POWER_RULES: tuple[_Rule, ...] = (
    _Rule(None, _HEAVY_DRAW, OptimizationCategory.CPU_SCALING,
          "Reduce CPU frequency or enable power saving mode",
          0.20, Difficulty.EASY, CostTier.FREE, per_watt=True),
    _Rule(None, _HEAVY_DRAW, OptimizationCategory.GPU_POWER_LIMIT,
          "Lower the GPU power limit or reduce graphics settings",
          0.15, Difficulty.MODERATE, CostTier.FREE, per_watt=True),
    _Rule(None, frozenset({PowerState.NORMAL, PowerState.HIGH, PowerState.CRITICAL}),
          OptimizationCategory.BACKGROUND_PROCESSES,
          "Close idle background applications",
          0.05, Difficulty.EASY, CostTier.FREE, per_watt=True),
    _Rule(None, _KNOWN_DRAW, OptimizationCategory.DISPLAY_BRIGHTNESS,
          "Reduce display brightness",
          3.0, Difficulty.EASY, CostTier.FREE),
    _Rule(None, frozenset({PowerState.CRITICAL}), OptimizationCategory.SYSTEM_SETTINGS,
          "Replace the power supply with a higher-efficiency unit",
          0.10, Difficulty.ADVANCED, CostTier.HIGH, per_watt=True),
    _Rule(_HOT, _KNOWN_DRAW, OptimizationCategory.THERMAL_MANAGEMENT,
          "High thermal throttling risk detected. Reduce workload or improve cooling",
          0.25, Difficulty.EASY, CostTier.FREE, per_watt=True),
)


def rank(suggestions: list[OptimizationSuggestion]) -> list[OptimizationSuggestion]:
    """Impact descending, then difficulty ascending. Stable for full ties."""
    return sorted(suggestions, key=lambda s: (-s.estimated_impact, s.difficulty))


def suggest_cooling(thermal: ThermalStatus, power: PowerState) -> list[OptimizationSuggestion]:
    recs = [
        OptimizationSuggestion(
            category=rule.category,
            recommendation=rule.recommendation,
            estimated_impact=rule.impact,
            difficulty=rule.difficulty,
            cost=rule.cost,
            impact_unit="°C",
        )
        for rule in COOLING_RULES
        if rule.matches(thermal, power)
    ]
    return rank(recs)


def suggest_power(
    thermal: ThermalStatus,
    power: PowerState,
    power_draw_w: float | None,
) -> list[OptimizationSuggestion]:
    if power is PowerState.UNKNOWN or power_draw_w is None:
        return []

    recs = []
    for rule in POWER_RULES:
        if not rule.matches(thermal, power):
            continue
        impact = rule.impact * power_draw_w if rule.per_watt else rule.impact
        recs.append(OptimizationSuggestion(
            category=rule.category,
            recommendation=rule.recommendation,
            estimated_impact=round(impact, 2),
            difficulty=rule.difficulty,
            cost=rule.cost,
            impact_unit="W",
        ))
    return rank(recs)
