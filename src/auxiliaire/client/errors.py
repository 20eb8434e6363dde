"""Exceptions raised while backing up solutions.

Run-level errors (CatalogueUnavailableError, ConfigurationError) abort a
backup before any solution is scheduled. Everything else is recorded against
a single solution and the run carries on.
"""

from __future__ import annotations


class BackupError(Exception):
    """Base exception for backup errors."""


class ConfigurationError(BackupError):
    """Invalid run configuration (destination, concurrency)."""


class CatalogueUnavailableError(BackupError):
    """Listing the remote catalogue failed."""


class FetchFailedError(BackupError):
    """Fetching files or iterations of a solution failed."""


class WriteFailedError(BackupError):
    """Writing a solution to disk failed."""


class StateCorruptError(BackupError):
    """A backup record could not be read or validated."""


class StateMismatchError(BackupError):
    """A backup record doesn't describe the remote solution it sits next to.

    Usually means the destination directory holds someone else's backup.
    """

    def __init__(self, display_name: str, detail: str) -> None:
        self.display_name = display_name
        super().__init__(
            f"solution to {display_name} {detail}: did you choose the wrong output directory?"
        )
