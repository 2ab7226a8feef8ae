from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "shelly-gen2"
CONFIG_FILENAME = "config.toml"


def default_config_path() -> Path:
    """Config file under ``$XDG_CONFIG_HOME``; an empty variable counts as unset."""
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_NAME / CONFIG_FILENAME


def expand_path(value: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(value)))
