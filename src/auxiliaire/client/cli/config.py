"""Configuration utilities for the auxiliaire CLI.

The API token is shared with the official Exercism CLI, which stores it in
the ``token`` key of its ``user.json`` file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

EXERCISM_CONFIG_HOME_ENV_VAR_NAME = "EXERCISM_CONFIG_HOME"
EXERCISM_USER_FILE_NAME = "user.json"


def get_exercism_config_dir() -> Path:
    """Get the configuration directory of the Exercism CLI.

    Returns:
        $EXERCISM_CONFIG_HOME if set, else the platform default
        (%APPDATA%\\exercism on Windows, $XDG_CONFIG_HOME/exercism or
        ~/.config/exercism elsewhere).
    """
    if os.environ.get(EXERCISM_CONFIG_HOME_ENV_VAR_NAME):
        return Path(os.environ[EXERCISM_CONFIG_HOME_ENV_VAR_NAME]).expanduser()
    if os.name == "nt" and os.environ.get("APPDATA"):
        return Path(os.environ["APPDATA"]) / "exercism"
    if os.environ.get("XDG_CONFIG_HOME"):
        return Path(os.environ["XDG_CONFIG_HOME"]).expanduser() / "exercism"
    return Path.home() / ".config" / "exercism"


def get_exercism_user_file() -> Path:
    """Get the path to the Exercism CLI's user config file."""
    return get_exercism_config_dir() / EXERCISM_USER_FILE_NAME


def load_exercism_config() -> dict[str, Any]:
    """Load the Exercism CLI's user config.

    Returns:
        The parsed config, or an empty dict if missing or unreadable.
    """
    user_file = get_exercism_user_file()
    if not user_file.is_file():
        return {}
    try:
        data = json.loads(user_file.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def resolve_token(token: str | None = None) -> str | None:
    """Find the API token to use.

    Args:
        token: Token given explicitly on the command line.

    Returns:
        The explicit token, else the Exercism CLI's token, else None.
    """
    if token:
        return token
    stored = load_exercism_config().get("token")
    return str(stored) if stored else None
