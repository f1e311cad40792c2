"""Configuration: packaged defaults, user overrides, validated MonitoringConfig."""

from kanshi.config.loader import get_config, reload_config
from kanshi.config.settings import MonitoringConfig

__all__ = ["MonitoringConfig", "get_config", "reload_config"]
