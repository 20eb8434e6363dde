"""Backup writer: materializes fetched files and updates backup records.

This module provides:
- BackupWriter: Writes main files and iteration snapshots, deletes
  iterations, and keeps the solution's backup record consistent

Every record update happens after the files it describes are on disk, and
records are replaced atomically, so an interrupted or failed write leaves the
record describing the last fully successful state.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import stat
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from auxiliaire.client.errors import WriteFailedError
from auxiliaire.client.state import (
    BackedUpFile,
    BackupRecord,
    BackupStateStore,
    iteration_dir,
    iterations_dir,
)
from auxiliaire.core.config import STATE_DIR_NAME, get_iterations_dir_name
from auxiliaire.core.hashing import compute_bytes_hash, compute_file_hash

if TYPE_CHECKING:
    from auxiliaire.client.api import Solution

logger = logging.getLogger(__name__)

READ_ONLY = stat.S_IRUSR | stat.S_IRGRP | stat.S_IROTH
WRITABLE = stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH


def resolve_target(base_dir: Path, relative_path: str, reserved: tuple[str, ...] = ()) -> Path:
    """Resolve a remote file path below a local directory.

    Args:
        base_dir: Directory the file must stay in.
        relative_path: "/"-separated path reported remotely.
        reserved: Top-level names the file may not be written into.

    Returns:
        Absolute target path.

    Raises:
        WriteFailedError: If the path is absolute, escapes base_dir or
            targets a reserved directory.
    """
    parts = PurePosixPath(relative_path).parts
    if (
        not parts
        or PurePosixPath(relative_path).is_absolute()
        or any(p in ("..", ".") for p in parts)
        or parts[0] in reserved
    ):
        raise WriteFailedError(f"Refusing to write unsafe path {relative_path!r}")
    return base_dir.joinpath(*parts)


def _write_file_atomic(path: Path, content: bytes) -> None:
    """Write a file through a temporary sibling and rename it in place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        tmp_path.write_bytes(content)
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            with contextlib.suppress(OSError):
                tmp_path.unlink()
        raise


def _make_writable(root: Path) -> None:
    """Undo read-only permissions below a directory so it can be removed."""
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            os.chmod(os.path.join(dirpath, name), WRITABLE)


def _remove_tree(root: Path) -> None:
    _make_writable(root)
    shutil.rmtree(root)


class BackupWriter:
    """Writes backups of solutions to disk.

    Usage:
        writer = BackupWriter()
        record = writer.write_solution(solution, solution_dir, files, record)
        record = writer.write_iteration(solution_dir, record, idx, files)
        record = writer.delete_iteration(solution_dir, record, idx)
    """

    def write_solution(
        self,
        solution: Solution,
        solution_dir: Path,
        files: dict[str, bytes],
        previous: BackupRecord | None,
    ) -> BackupRecord:
        """Write a solution's main files, then update its record.

        Args:
            solution: Remote solution the files belong to.
            solution_dir: Local folder of the solution.
            files: Fetched files by relative path.
            previous: Record before this fetch, if any.

        Returns:
            The new record.

        Raises:
            WriteFailedError: If any file or the record can't be written.
                The previous record is left untouched.
        """
        reserved = (STATE_DIR_NAME, get_iterations_dir_name())
        targets = {path: resolve_target(solution_dir, path, reserved) for path in files}

        record = BackupRecord(
            uuid=solution.uuid,
            synced_at=datetime.now(timezone.utc),
            last_updated=solution.last_updated,
            num_iterations=solution.num_iterations,
            last_iterated_at=solution.last_iterated_at,
            files=[
                BackedUpFile(path=path, digest=compute_bytes_hash(content), size=len(content))
                for path, content in files.items()
            ],
            iterations=list(previous.iterations) if previous else [],
        )

        try:
            for path, content in files.items():
                _write_file_atomic(targets[path], content)
                logger.debug(f"Wrote {targets[path]}")
            BackupStateStore(solution_dir).save(record)
        except OSError as e:
            raise WriteFailedError(
                f"Failed to write solution to {solution.display_name} in {solution_dir}: {e}"
            ) from e

        if previous is not None:
            self._prune_stale_files(solution_dir, previous, set(files))

        logger.info(f"Solution to {solution.display_name} backed up ({len(files)} file(s))")
        return record

    def _prune_stale_files(
        self,
        solution_dir: Path,
        previous: BackupRecord,
        current: set[str],
    ) -> None:
        """Remove main files we fetched before that no longer exist remotely.

        Files modified locally since they were fetched are kept.
        """
        for backed_up in previous.files:
            if backed_up.path in current:
                continue
            try:
                target = resolve_target(solution_dir, backed_up.path)
            except WriteFailedError:
                continue
            if not target.is_file():
                continue
            try:
                if backed_up.digest and compute_file_hash(target) != backed_up.digest:
                    logger.info(f"Keeping locally modified file {target}")
                    continue
                target.unlink()
                logger.info(f"Removed {target} (no longer part of the solution)")
            except OSError as e:
                logger.warning(f"Failed to remove stale file {target}: {e}")

    def write_iteration(
        self,
        solution_dir: Path,
        record: BackupRecord,
        idx: int,
        files: dict[str, bytes],
    ) -> BackupRecord:
        """Write an iteration snapshot, then add it to the record.

        The snapshot is assembled in a temporary directory and renamed into
        place, and its files are made read-only.

        Args:
            solution_dir: Local folder of the solution.
            record: Current record of the solution.
            idx: Iteration index.
            files: Iteration files by relative path.

        Returns:
            The record including the iteration.

        Raises:
            WriteFailedError: If the snapshot or the record can't be
                written. The record is left untouched.
        """
        updated = record.with_iteration(idx)
        target = iteration_dir(solution_dir, idx)

        tmp_dir = iterations_dir(solution_dir) / f".{idx}.tmp"
        try:
            if tmp_dir.exists():
                _remove_tree(tmp_dir)
            tmp_dir.mkdir(parents=True)
            for path, content in files.items():
                file_path = resolve_target(tmp_dir, path)
                file_path.parent.mkdir(parents=True, exist_ok=True)
                file_path.write_bytes(content)
                os.chmod(file_path, READ_ONLY)

            if target.exists():
                # Leftover from an earlier run that never got recorded
                _remove_tree(target)
            os.replace(tmp_dir, target)
            BackupStateStore(solution_dir).save(updated)
        except (OSError, WriteFailedError) as e:
            if tmp_dir.exists():
                with contextlib.suppress(OSError):
                    _remove_tree(tmp_dir)
            if isinstance(e, WriteFailedError):
                raise
            raise WriteFailedError(f"Failed to write iteration {idx} to {target}: {e}") from e

        logger.info(f"Iteration {idx} backed up to {target}")
        return updated

    def delete_iteration(
        self,
        solution_dir: Path,
        record: BackupRecord,
        idx: int,
    ) -> BackupRecord:
        """Delete an iteration snapshot, then remove it from the record.

        Args:
            solution_dir: Local folder of the solution.
            record: Current record of the solution.
            idx: Iteration index.

        Returns:
            The record without the iteration.

        Raises:
            WriteFailedError: If the snapshot can't be removed; the
                iteration then stays in the record.
        """
        updated = record.without_iteration(idx)
        target = iteration_dir(solution_dir, idx)

        try:
            if target.exists():
                _remove_tree(target)
        except OSError as e:
            raise WriteFailedError(f"Failed to delete iteration {idx} at {target}: {e}") from e

        try:
            BackupStateStore(solution_dir).save(updated)
        except OSError as e:
            raise WriteFailedError(f"Failed to update backup record in {solution_dir}: {e}") from e

        logger.info(f"Iteration {idx} deleted from {target}")
        return updated
