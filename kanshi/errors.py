"""Exception types raised by the monitoring engine.

Configuration and lifecycle errors reach the caller that triggered them.
Sample and subscriber errors are contained inside the loop and only surface
through stats counters and the log.
"""

from __future__ import annotations


class KanshiError(Exception):
    """Base class for all kanshi errors."""


class ConfigInvalid(KanshiError, ValueError):
    """A monitoring configuration was rejected by configure() or start()."""

    def __init__(self, message: str, field_name: str | None = None) -> None:
        super().__init__(message)
        self.field_name = field_name


class SampleUnavailable(KanshiError):
    """A sample provider could not produce a reading this tick."""

    def __init__(self, metric_id: str, reason: str = "") -> None:
        message = f"sample unavailable for '{metric_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.metric_id = metric_id
        self.reason = reason


class OutOfOrderSample(KanshiError):
    """A sample is older than the newest one stored for its metric."""

    def __init__(self, metric_id: str, timestamp: float, newest: float) -> None:
        super().__init__(
            f"sample for '{metric_id}' at {timestamp:.3f} is older than stored newest {newest:.3f}"
        )
        self.metric_id = metric_id
        self.timestamp = timestamp
        self.newest = newest


class SubscriberFailure(KanshiError):
    """A subscriber callback raised while an event was being delivered."""

    def __init__(self, subscription_id: int, event_kind: str, cause: BaseException) -> None:
        super().__init__(f"subscriber #{subscription_id} failed on {event_kind}: {cause!r}")
        self.subscription_id = subscription_id
        self.event_kind = event_kind
        self.cause = cause


class LifecycleError(KanshiError):
    """start()/wait misuse for the monitor's current state."""


class AlreadyRunning(LifecycleError):
    """start() was called while the monitor is running or stopping."""


class NotRunning(LifecycleError):
    """An operation that needs a running monitor was called while stopped."""
