"""
Core configuration settings for bandlink.

Values are resolved once at import: built-in defaults, then the optional
``config.yaml`` in the config directory, then ``BANDLINK_*`` environment
variables.
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml

# Base paths
DATA_DIR = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local/share")) / "bandlink"
CONFIG_DIR = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / "bandlink"

# Logging configuration
LOG_DIR = DATA_DIR / "logs"

# Persistent per-band configuration (auth keys, goals, locks, aliases)
STORE_FILE = DATA_DIR / "bands.json"

# User overrides
CONFIG_FILE = CONFIG_DIR / "config.yaml"

# Log types
LOG__GENERAL = "GENERAL"
LOG__DEBUG = "DEBUG"
LOG__USER = "USERMODE"
LOG__AUTH = "AUTH"

# Defaults
DEFAULT_ADAPTER = "hci0"
DISCOVERY_TIMEOUT = 10.0  # seconds
AUTH_TIMEOUT = None  # wait forever, like the band's own reference client

_ENV_PREFIX = "BANDLINK_"


def load_overrides(path: Path = CONFIG_FILE) -> Dict[str, Any]:
    """Return the mapping stored in *path*, or an empty dict if it is absent."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except FileNotFoundError:
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def _env(name: str, default):
    return os.getenv(_ENV_PREFIX + name.upper(), default)


def _optional_float(value):
    if value in (None, "", "none", "None"):
        return None
    return float(value)


_overrides = load_overrides()

ADAPTER = str(_env("adapter", _overrides.get("adapter", DEFAULT_ADAPTER)))
DISCOVERY_TIMEOUT = float(_env("discovery_timeout", _overrides.get("discovery_timeout", DISCOVERY_TIMEOUT)))
AUTH_TIMEOUT = _optional_float(_env("auth_timeout", _overrides.get("auth_timeout", AUTH_TIMEOUT)))

del _overrides
