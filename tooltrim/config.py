"""Configuration system for tooltrim.

All thresholds and settings can be overridden via environment variables
or a JSON config file at ~/.tooltrim/config.json.
"""

import contextlib
import json
import os

_DEFAULTS = {
    "compact_size_ratio": 1.0,
    "chars_per_token": 4.0,
    "coverage_compact_threshold": 80.0,
    "error_message_max_lines": 5,
    "debug": False,
    "log_file": "tooltrim.log",
}

ENV_PREFIX = "TOOLTRIM_"

# Divisors and ratios; a zero or negative override falls back to the default.
_POSITIVE_KEYS = ("compact_size_ratio", "chars_per_token", "error_message_max_lines")

_config: dict | None = None


def _load_config() -> dict:
    """Load config from file, then overlay env vars."""
    config = dict(_DEFAULTS)

    from tooltrim import data_dir  # noqa: PLC0415

    config_path = os.path.join(data_dir(), "config.json")
    if os.path.exists(config_path):
        try:
            with open(config_path) as f:
                user_config = json.load(f)
            if isinstance(user_config, dict):
                config.update(user_config)
        except (json.JSONDecodeError, OSError):
            pass

    # Environment variable overrides
    for key, default_val in _DEFAULTS.items():
        env_key = ENV_PREFIX + key.upper()
        env_val = os.environ.get(env_key)
        if env_val is not None:
            if isinstance(default_val, bool):
                config[key] = env_val.lower() in ("1", "true", "yes")
            elif isinstance(default_val, int):
                with contextlib.suppress(ValueError):
                    config[key] = int(env_val)
            elif isinstance(default_val, float):
                with contextlib.suppress(ValueError):
                    config[key] = float(env_val)
            else:
                config[key] = env_val

    # Numeric settings that fail to parse or go out of range revert to defaults
    for key, default_val in _DEFAULTS.items():
        value = config[key]
        if isinstance(default_val, bool) or not isinstance(default_val, (int, float)):
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            config[key] = default_val
        elif key in _POSITIVE_KEYS and value <= 0:
            config[key] = default_val
        elif isinstance(default_val, int) and not isinstance(value, int):
            config[key] = int(value)

    return config


def get(key: str):
    """Get a config value."""
    global _config  # noqa: PLW0603
    if _config is None:
        _config = _load_config()
    return _config.get(key, _DEFAULTS.get(key))


def reload():
    """Force reload of configuration."""
    global _config  # noqa: PLW0603
    _config = None
