"""Core module - Shared configuration, enums and hashing."""

from auxiliaire.core.config import (
    BACKUP_STATE_FILE_NAME,
    DEFAULT_API_BASE_URL,
    DEFAULT_ITERATIONS_DIR_NAME,
    ITERATIONS_DIR_ENV_VAR_NAME,
    STATE_DIR_NAME,
    ApiConfig,
    get_iterations_dir_name,
)
from auxiliaire.core.hashing import compute_bytes_hash, compute_file_hash
from auxiliaire.core.types import IterationSyncPolicy, OverwritePolicy, SolutionStatus

__all__ = [
    # Config
    "BACKUP_STATE_FILE_NAME",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_ITERATIONS_DIR_NAME",
    "ITERATIONS_DIR_ENV_VAR_NAME",
    "STATE_DIR_NAME",
    "ApiConfig",
    "get_iterations_dir_name",
    # Hashing
    "compute_bytes_hash",
    "compute_file_hash",
    # Types
    "IterationSyncPolicy",
    "OverwritePolicy",
    "SolutionStatus",
]
