"""Validated monitoring configuration.

MonitoringConfig is immutable. The monitor takes a snapshot of the current
instance at the start of every tick, so replacing it through configure()
only ever affects the next tick.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from kanshi.errors import ConfigInvalid


class MonitoringConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    update_interval: float = Field(default=5.0, gt=0, allow_inf_nan=False)
    thermal_threshold: float = Field(default=80.0, allow_inf_nan=False)
    power_threshold: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    history_window: int = Field(default=120, ge=1)
    enabled_metrics: tuple[str, ...] = Field(..., min_length=1)

    critical_temperature: float = Field(default=90.0, allow_inf_nan=False)
    prediction_horizon: float = Field(default=300.0, gt=0, allow_inf_nan=False)
    trend_samples: int = Field(default=10, ge=2)
    battery_capacity_wh: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    predict_on_tick: bool = False

    @field_validator("enabled_metrics")
    @classmethod
    def _dedupe_metrics(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        seen: list[str] = []
        for metric_id in value:
            metric_id = metric_id.strip()
            if not metric_id:
                raise ValueError("metric ids must be non-empty strings")
            if metric_id not in seen:
                seen.append(metric_id)
        return tuple(seen)

    @classmethod
    def coerce(cls, value: MonitoringConfig | Mapping[str, Any]) -> MonitoringConfig:
        """Validate a config or a plain mapping, raising ConfigInvalid on failure.

        Instances are re-validated too, so one built with model_construct()
        cannot slip past the field constraints.
        """
        if isinstance(value, MonitoringConfig):
            data: Mapping[str, Any] = value.model_dump()
        elif isinstance(value, Mapping):
            data = value
        else:
            raise ConfigInvalid(f"expected MonitoringConfig or mapping, got {type(value).__name__}")
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise _to_config_invalid(exc) from exc

    @classmethod
    def from_settings(cls, **overrides: Any) -> MonitoringConfig:
        """Build a config from the "monitoring" section of the merged settings."""
        from kanshi.config.loader import get_monitoring_config

        data = dict(get_monitoring_config())
        data.update(overrides)
        return cls.coerce(data)

    def with_changes(self, **changes: Any) -> MonitoringConfig:
        """Return a validated copy with some fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return type(self).coerce(data)


def _to_config_invalid(exc: ValidationError) -> ConfigInvalid:
    errors = exc.errors()
    if not errors:
        return ConfigInvalid(str(exc))
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    if len(errors) > 1:
        message = f"{message} (+{len(errors) - 1} more)"
    return ConfigInvalid(f"{loc}: {message}" if loc else message, field_name=loc or None)
