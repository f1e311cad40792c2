"""Edge-triggered threshold evaluation.

A metric that stays above its threshold produces one RoseAbove, not one
alert per tick. The edge re-arms only after the value falls back to or
below the threshold.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from kanshi.log import logger
from kanshi.models import CrossingKind


@dataclass
class EdgeState:
    above: bool
    threshold: float


class ThresholdEvaluator:
    """Tracks per-metric "currently above" state across ticks."""

    def __init__(self) -> None:
        self._states: dict[str, EdgeState] = {}
        self._data_lock = threading.Lock()

    def evaluate(self, metric_id: str, value: float, threshold: float) -> CrossingKind | None:
        """Compare a fresh value with the threshold and report a transition, if any.

        The stored "above" flag carries over when the threshold changes, so
        moving the threshold during a breach never fires a second RoseAbove.
        """
        with self._data_lock:
            state = self._states.get(metric_id)
            if state is None:
                state = EdgeState(above=False, threshold=threshold)
                self._states[metric_id] = state

            if state.threshold != threshold:
                logger.debug(
                    "Threshold for '%s' changed %.2f -> %.2f (above=%s)",
                    metric_id, state.threshold, threshold, state.above,
                )
                state.threshold = threshold

            if not state.above and value > threshold:
                state.above = True
                return CrossingKind.ROSE_ABOVE
            if state.above and value <= threshold:
                state.above = False
                return CrossingKind.FELL_BELOW
            return None

    def reset(self) -> None:
        with self._data_lock:
            self._states.clear()

    def forget(self, metric_id: str) -> None:
        """Drop a metric's edge state; its next breach fires RoseAbove again."""
        with self._data_lock:
            self._states.pop(metric_id, None)


def format_seconds(seconds: float | int | str) -> str:
    """Format seconds into human-readable time."""
    try:
        seconds = int(float(seconds))
    except (ValueError, TypeError):
        return str(seconds)
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m {seconds % 60}s"
    hours = minutes // 60
    return f"{hours}h {minutes % 60}m"
