"""Shared configuration classes for auxiliaire.

This module defines the API connection settings and the environment-driven
layout options used by the backup engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_BASE_URL = "https://exercism.org/api"

ITERATIONS_DIR_ENV_VAR_NAME = "AUXILIAIRE_ITERATIONS_DIR"
DEFAULT_ITERATIONS_DIR_NAME = "_iterations"

STATE_DIR_NAME = ".auxiliaire"
BACKUP_STATE_FILE_NAME = "backup_state.json"


@dataclass
class ApiConfig:
    """Configuration for connecting to the Exercism API.

    Attributes:
        token: Exercism API token.
        api_base_url: Base URL of the API; v1 and v2 endpoints live below it.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    token: str
    api_base_url: str = DEFAULT_API_BASE_URL
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize API base URL."""
        self.api_base_url = self.api_base_url.rstrip("/")


def get_iterations_dir_name() -> str:
    """Get the name of the per-solution iterations directory.

    Returns:
        Value of AUXILIAIRE_ITERATIONS_DIR, or "_iterations".
    """
    return os.environ.get(ITERATIONS_DIR_ENV_VAR_NAME) or DEFAULT_ITERATIONS_DIR_NAME
