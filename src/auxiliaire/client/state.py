"""Local backup state for solutions.

This module provides:
- BackupRecord: What was last backed up for one solution
- BackedUpFile: One main file known to the record
- BackupStateStore: Reads and atomically writes a solution's record

Architecture:
    Each solution folder holds its own record under a hidden
    ``.auxiliaire/backup_state.json`` file. The record, not the directory
    listing, is the source of truth for what a previous run fetched: users
    are free to edit or delete files in the backup.

    Records written by older releases are migrated on read, and fields
    written by newer releases are ignored.
"""

from __future__ import annotations

import contextlib
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from auxiliaire.client.errors import StateCorruptError
from auxiliaire.core.config import (
    BACKUP_STATE_FILE_NAME,
    STATE_DIR_NAME,
    get_iterations_dir_name,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


class BackedUpFile(BaseModel):
    """A main solution file as it was fetched.

    Attributes:
        path: Path relative to the solution folder, "/"-separated.
        digest: SHA-256 of the fetched content.
        size: Size of the fetched content in bytes.
    """

    model_config = ConfigDict(extra="ignore")

    path: str
    digest: str | None = None
    size: int = 0


class BackupRecord(BaseModel):
    """Persisted state of one solution's backup.

    Attributes:
        schema_version: Layout version of the record.
        uuid: Remote solution identifier.
        synced_at: When the record was last updated.
        last_updated: Remote last-updated timestamp at last main-file fetch.
        num_iterations: Remote iteration count at last main-file fetch.
        last_iterated_at: Remote last-iterated timestamp at last main-file
            fetch, if the solution had one.
        files: Main files fetched last time.
        iterations: Iteration indexes materialized on disk.
    """

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION
    uuid: str
    synced_at: datetime | None = None
    last_updated: datetime | None = None
    num_iterations: int | None = None
    last_iterated_at: datetime | None = None
    files: list[BackedUpFile] = Field(default_factory=list)
    iterations: list[int] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy(cls, data: Any) -> Any:
        """Upgrade records written before schema_version existed."""
        if not isinstance(data, dict) or "schema_version" in data:
            return data

        data = dict(data)
        marker = data.pop("last_iteration_marker", None)
        if isinstance(marker, dict):
            if "last_iterated_at" in marker:
                data.setdefault("last_updated", marker["last_iterated_at"])
                data.setdefault("last_iterated_at", marker["last_iterated_at"])
            elif "num_iterations" in marker:
                data.setdefault("num_iterations", marker["num_iterations"])
        elif marker is None:
            # First layout only knew the iterations present at fetch time
            iterations = data.get("iterations")
            if isinstance(iterations, list) and iterations and isinstance(iterations[-1], int):
                data.setdefault("num_iterations", iterations[-1])
        return data

    @property
    def file_paths(self) -> list[str]:
        """Paths of the recorded main files."""
        return [f.path for f in self.files]

    def with_iteration(self, idx: int) -> BackupRecord:
        """Copy of this record with an iteration added."""
        iterations = sorted(set(self.iterations) | {idx})
        return self.model_copy(update={"iterations": iterations, "synced_at": _now()})

    def without_iteration(self, idx: int) -> BackupRecord:
        """Copy of this record with an iteration removed."""
        iterations = [i for i in self.iterations if i != idx]
        return self.model_copy(update={"iterations": iterations, "synced_at": _now()})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def iterations_dir(solution_dir: Path) -> Path:
    """Directory holding a solution's iteration snapshots."""
    return solution_dir / get_iterations_dir_name()


def iteration_dir(solution_dir: Path, idx: int) -> Path:
    """Directory holding one iteration snapshot."""
    return iterations_dir(solution_dir) / str(idx)


class BackupStateStore:
    """Reads and writes the backup record of one solution folder.

    Usage:
        store = BackupStateStore(solution_dir)
        record = store.load()  # None if never backed up (or unreadable)
        store.save(record)
    """

    def __init__(self, solution_dir: Path) -> None:
        """Initialize the store.

        Args:
            solution_dir: Local folder of the solution.
        """
        self._solution_dir = Path(solution_dir)

    @property
    def solution_dir(self) -> Path:
        """Local folder of the solution."""
        return self._solution_dir

    @property
    def state_dir(self) -> Path:
        """Hidden directory holding the record."""
        return self._solution_dir / STATE_DIR_NAME

    @property
    def path(self) -> Path:
        """Path of the record file."""
        return self.state_dir / BACKUP_STATE_FILE_NAME

    def exists(self) -> bool:
        """Check whether a record file is present."""
        return self.path.is_file()

    def read(self) -> BackupRecord | None:
        """Read the record, failing loudly on bad content.

        Returns:
            The record, or None if there is no record file.

        Raises:
            StateCorruptError: If the file can't be read or validated.
        """
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StateCorruptError(f"Cannot read {self.path}: {e}") from e

        try:
            record = BackupRecord.model_validate_json(raw.decode("utf-8"))
        except (ValidationError, UnicodeDecodeError) as e:
            raise StateCorruptError(f"Invalid backup record {self.path}: {e}") from e

        # Only keep iterations that are still materialized on disk
        present = [
            idx for idx in record.iterations
            if iteration_dir(self._solution_dir, idx).is_dir()
        ]
        if present != record.iterations:
            missing = sorted(set(record.iterations) - set(present))
            logger.debug(f"Iterations {missing} recorded but missing in {self._solution_dir}")
            record = record.model_copy(update={"iterations": present})
        return record

    def load(self) -> BackupRecord | None:
        """Read the record, treating a corrupt one as absent.

        Returns:
            The record, or None if missing or corrupt.
        """
        try:
            return self.read()
        except StateCorruptError as e:
            logger.warning(f"{e}; solution will be fetched again")
            return None

    def save(self, record: BackupRecord) -> None:
        """Atomically replace the record on disk.

        Writes a temporary file next to the record, then renames it over
        the previous one so readers never observe a partial record.

        Args:
            record: Record to persist.
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except Exception:
            if tmp_path.exists():
                with contextlib.suppress(OSError):
                    tmp_path.unlink()
            raise
        logger.debug(f"Saved backup record for {record.uuid} in {self._solution_dir}")
