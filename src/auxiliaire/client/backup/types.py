"""Shared types and dataclasses for backup runs.

This module provides:
- BackupFilters, BackupOptions: What to back up and how
- SolutionAction, IterationAction: Closed sets of planned actions
- IterationStep, SolutionPlan: Planner output
- SolutionResult, RunSummary: Scheduler output
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from auxiliaire.core.types import IterationSyncPolicy, OverwritePolicy, SolutionStatus

if TYPE_CHECKING:
    from auxiliaire.client.api import Iteration, Solution
    from auxiliaire.client.state import BackupRecord


@dataclass(frozen=True)
class BackupFilters:
    """User filters applied to the remote catalogue.

    Empty track/exercise sets match everything.

    Attributes:
        tracks: Track slugs to keep.
        exercises: Exercise slugs to keep.
        status: Minimum solution status to keep.
    """

    tracks: frozenset[str] = frozenset()
    exercises: frozenset[str] = frozenset()
    status: SolutionStatus = SolutionStatus.STARTED

    @classmethod
    def create(
        cls,
        tracks: Iterable[str] = (),
        exercises: Iterable[str] = (),
        status: SolutionStatus = SolutionStatus.STARTED,
    ) -> BackupFilters:
        """Build filters from any iterables."""
        return cls(tracks=frozenset(tracks), exercises=frozenset(exercises), status=status)


@dataclass(frozen=True)
class BackupOptions:
    """Policies and limits of a backup run.

    Attributes:
        overwrite_policy: How to treat solutions already backed up.
        iteration_policy: Whether and how to back up iterations.
        dry_run: Plan and report only, never touch the disk.
        max_concurrency: Maximum number of solutions processed at once.
    """

    overwrite_policy: OverwritePolicy = OverwritePolicy.IF_NEWER
    iteration_policy: IterationSyncPolicy = IterationSyncPolicy.DO_NOT_SYNC
    dry_run: bool = False
    max_concurrency: int = 4


class SolutionAction(Enum):
    """What to do with a solution's main files."""

    SKIP = "skip"
    FETCH_NEW = "fetch-new"  # No backup record yet
    FETCH_UPDATE = "fetch-update"  # Record exists, refresh per overwrite policy

    @property
    def fetches(self) -> bool:
        """Whether this action downloads the main files."""
        return self != SolutionAction.SKIP


class IterationAction(Enum):
    """What to do with one iteration."""

    FETCH_ITERATION = "fetch-iteration"
    SKIP_ITERATION = "skip-iteration"
    DELETE_ITERATION = "delete-iteration"


@dataclass(frozen=True)
class IterationStep:
    """A planned action on one iteration.

    Attributes:
        idx: Iteration index (its identifier on disk and in the record).
        action: What to do.
        iteration: Remote iteration; None for deletions of iterations
            that no longer exist remotely.
    """

    idx: int
    action: IterationAction
    iteration: Iteration | None = None


@dataclass
class SolutionPlan:
    """Planner output for one solution.

    Attributes:
        solution: Remote solution.
        solution_dir: Local folder of the solution.
        action: Main-file action.
        record: Backup record found on disk (None if none/corrupt).
        iteration_steps: Iteration actions, oldest first, deletions last.
        error: Planning error; a plan with an error is never executed.
        position: Index of the plan in catalogue order.
    """

    solution: Solution
    solution_dir: Path
    action: SolutionAction
    record: BackupRecord | None = None
    iteration_steps: list[IterationStep] = field(default_factory=list)
    error: Exception | None = None
    position: int = 0

    def steps_with(self, action: IterationAction) -> list[IterationStep]:
        """Iteration steps with the given action, in plan order."""
        return [s for s in self.iteration_steps if s.action == action]

    @property
    def has_work(self) -> bool:
        """Whether executing this plan would change anything on disk."""
        return self.error is None and (
            self.action.fetches
            or any(s.action != IterationAction.SKIP_ITERATION for s in self.iteration_steps)
        )


@dataclass
class SolutionResult:
    """Outcome of executing (or dry-running) one solution plan.

    Attributes:
        plan: The plan that was executed.
        main_done: Whether the main-file action completed.
        fetched_iterations: Iteration indexes written to disk.
        deleted_iterations: Iteration indexes removed from disk.
        errors: Errors hit while executing; empty on success.
        cancelled: Whether the run was cancelled before or during this plan.
        dry_run: Whether nothing was actually written.
    """

    plan: SolutionPlan
    main_done: bool = False
    fetched_iterations: list[int] = field(default_factory=list)
    deleted_iterations: list[int] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False

    @property
    def action(self) -> SolutionAction:
        """Main-file action of the plan."""
        return self.plan.action

    @property
    def failed(self) -> bool:
        """Whether anything went wrong for this solution."""
        return bool(self.errors)

    @property
    def error(self) -> Exception | None:
        """First error hit for this solution, if any."""
        return self.errors[0] if self.errors else None


class RunSummary:
    """Thread-safe, append-only collection of per-solution results.

    Workers add results as they complete; readers get them back in
    catalogue order regardless of completion order.
    """

    def __init__(self, dry_run: bool = False) -> None:
        self._lock = threading.Lock()
        self._results: list[SolutionResult] = []
        self.dry_run = dry_run
        self.cancelled = False

    def add(self, result: SolutionResult) -> None:
        """Record the result of one solution."""
        with self._lock:
            self._results.append(result)

    @property
    def results(self) -> list[SolutionResult]:
        """Results in catalogue order."""
        with self._lock:
            return sorted(self._results, key=lambda r: r.plan.position)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    @property
    def fetched(self) -> int:
        """Solutions whose main files were (or would be) fetched."""
        return sum(1 for r in self.results if r.main_done and r.action.fetches)

    @property
    def skipped(self) -> int:
        """Solutions left untouched on purpose."""
        return sum(
            1 for r in self.results
            if not r.failed and not r.cancelled and not r.plan.has_work
        )

    @property
    def fetched_iterations(self) -> int:
        """Iterations (to be) written."""
        return sum(len(r.fetched_iterations) for r in self.results)

    @property
    def deleted(self) -> int:
        """Iterations (to be) removed."""
        return sum(len(r.deleted_iterations) for r in self.results)

    @property
    def failed(self) -> int:
        """Solutions with at least one error."""
        return sum(1 for r in self.results if r.failed)

    @property
    def cancelled_count(self) -> int:
        """Solutions not completed because the run was cancelled."""
        return sum(1 for r in self.results if r.cancelled)

    @property
    def failures(self) -> list[SolutionResult]:
        """Failed results in catalogue order."""
        return [r for r in self.results if r.failed]
