from __future__ import annotations

import json
import threading
from pathlib import Path

from kanshi.log import get_home_dir, logger

_USER_CONFIG_NAME = "config.json"
_MERGE_DEPTH_LIMIT = 10

# In-memory config (loaded once, protected by lock)
_config = None
_config_lock = threading.Lock()


def get_config() -> dict:
    """Get the merged config: packaged defaults overlaid with ~/.kanshi/config.json.

    _config transitions None -> dict once per load and is never mutated after
    assignment, so the unlocked fast-path read is safe.
    """
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is not None:
            return _config

        result = _load_defaults()
        user = _load_user_config()
        if user:
            result = _merge(result, user)
        _config = result
        return _config


def reload_config() -> dict:
    """Drop the cached config and load it again from disk."""
    global _config
    with _config_lock:
        _config = None
    return get_config()


def get_monitoring_config() -> dict:
    return get_config().get("monitoring", {})


def _load_defaults() -> dict:
    try:
        defaults_path = Path(__file__).parent / "defaults.json"
        with open(defaults_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except Exception:
        logger.warning("Failed to load defaults.json, using minimal hardcoded config")
        return {
            "monitoring": {},
            "thermal_status": {},
            "power_state": {},
            "dispatch": {},
        }


def _user_config_path() -> Path:
    return get_home_dir() / _USER_CONFIG_NAME


def _load_user_config() -> dict | None:
    try:
        path = _user_config_path()
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            logger.debug("User config is not a dict, ignoring")
            return None
        return data
    except Exception:
        logger.warning("Failed to load user config, falling back to defaults", exc_info=True)
        return None


def _merge(base: dict, override: dict, depth: int = 0) -> dict:
    """Return a copy of base with the user's override laid over it.

    Nested sections merge key by key. Keys starting with "_" are notes for
    the reader of config.json and never reach the config. Past
    _MERGE_DEPTH_LIMIT levels the override section replaces the base one.
    """
    merged = dict(base)
    for key, value in override.items():
        if key.startswith("_"):
            continue
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict) and depth < _MERGE_DEPTH_LIMIT:
            merged[key] = _merge(current, value, depth + 1)
        else:
            merged[key] = value
    return merged
