"""Kanshi intelligence: history, edge-triggered alerts, predictions, recommendations."""

from kanshi.intelligence.history import HistoryStore
from kanshi.intelligence.alerts import ThresholdEvaluator
from kanshi.intelligence.thermal import predict_throttling
from kanshi.intelligence.power import estimate_runway

__all__ = ["HistoryStore", "ThresholdEvaluator", "predict_throttling", "estimate_runway"]
