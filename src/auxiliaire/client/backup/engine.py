"""Backup orchestration.

This module provides:
- run_backup: Lists the catalogue, plans every selected solution and runs
  the plans on the worker pool

Flow:
    1. Validate the run configuration
    2. List solutions remotely (fatal on failure)
    3. Select solutions in catalogue order
    4. Load local records and list iterations (bounded concurrency)
    5. Plan each solution
    6. Execute plans on the worker pool, collecting results
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING

from auxiliaire.client.api import APIError
from auxiliaire.client.backup.planner import check_record, plan_solution, solution_dir_for
from auxiliaire.client.backup.selection import select_solutions
from auxiliaire.client.backup.types import (
    BackupFilters,
    BackupOptions,
    RunSummary,
    SolutionAction,
    SolutionPlan,
    SolutionResult,
)
from auxiliaire.client.backup.workers import WorkerPool
from auxiliaire.client.backup.writer import BackupWriter
from auxiliaire.client.errors import (
    CatalogueUnavailableError,
    ConfigurationError,
    FetchFailedError,
)
from auxiliaire.client.state import BackupStateStore
from auxiliaire.core.types import IterationSyncPolicy, OverwritePolicy

if TYPE_CHECKING:
    from auxiliaire.client.api import ExercismClient, Iteration, Solution
    from auxiliaire.client.state import BackupRecord

logger = logging.getLogger(__name__)


def run_backup(
    client: ExercismClient,
    destination: Path | str,
    filters: BackupFilters,
    overwrite_policy: OverwritePolicy = OverwritePolicy.IF_NEWER,
    iteration_policy: IterationSyncPolicy = IterationSyncPolicy.DO_NOT_SYNC,
    dry_run: bool = False,
    max_concurrency: int = 4,
    cancel_event: threading.Event | None = None,
) -> RunSummary:
    """Back up the user's solutions to a local directory.

    Args:
        client: API client.
        destination: Root directory of the backup.
        filters: Which solutions to back up.
        overwrite_policy: How to treat solutions already backed up.
        iteration_policy: Whether and how to back up iterations.
        dry_run: Plan and report only; nothing is written or deleted.
        max_concurrency: Maximum number of solutions processed at once.
        cancel_event: Set to stop the run; queued solutions are reported
            cancelled and in-flight ones stop at their next step.

    Returns:
        Per-solution results in catalogue order.

    Raises:
        ConfigurationError: If the destination or concurrency is invalid.
        CatalogueUnavailableError: If the solutions can't be listed.
    """
    destination = Path(destination)
    options = BackupOptions(
        overwrite_policy=overwrite_policy,
        iteration_policy=iteration_policy,
        dry_run=dry_run,
        max_concurrency=max_concurrency,
    )
    _validate(destination, options)
    cancel_event = cancel_event or threading.Event()

    solutions = _list_catalogue(client, filters)
    selected = select_solutions(solutions, filters)
    logger.info(f"{len(selected)} of {len(solutions)} solution(s) selected for backup")

    if not dry_run:
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot create destination {destination}: {e}") from e

    plans = build_plans(client, destination, selected, filters, options, cancel_event)
    return execute_plans(client, plans, options, cancel_event)


def _validate(destination: Path, options: BackupOptions) -> None:
    if options.max_concurrency < 1:
        raise ConfigurationError(
            f"Maximum concurrent downloads must be at least 1, got {options.max_concurrency}"
        )
    if destination.exists() and not destination.is_dir():
        raise ConfigurationError(f"Destination {destination} exists and is not a directory")


def _list_catalogue(client: ExercismClient, filters: BackupFilters) -> list[Solution]:
    """List remote solutions, narrowing server-side to a single track."""
    if filters.tracks:
        _warn_unknown_tracks(client, filters)

    track = next(iter(filters.tracks)) if len(filters.tracks) == 1 else None
    try:
        return client.list_solutions(track=track)
    except APIError as e:
        raise CatalogueUnavailableError(f"Failed to list solutions: {e}") from e


def _warn_unknown_tracks(client: ExercismClient, filters: BackupFilters) -> None:
    try:
        known = {t.slug for t in client.list_tracks()}
    except APIError as e:
        logger.debug(f"Could not list tracks to check filters: {e}")
        return
    for slug in sorted(filters.tracks - known):
        logger.warning(f"Unknown track: {slug}")


def _gather(
    client: ExercismClient,
    solution_dir: Path,
    solution: Solution,
    options: BackupOptions,
    cancel_event: threading.Event,
) -> tuple[BackupRecord | None, list[Iteration], Exception | None]:
    """Collect what the planner needs to know about one solution."""
    record = BackupStateStore(solution_dir).load()
    if not options.iteration_policy.syncs or cancel_event.is_set():
        return record, [], None
    if record is not None and check_record(solution, record) is not None:
        # Mismatch is reported by the planner, no need to ask the server
        return record, [], None

    try:
        return record, client.list_iterations(solution), None
    except APIError as e:
        error = FetchFailedError(f"Failed to list iterations of {solution.display_name}: {e}")
        logger.error(str(error))
        return record, [], error


def build_plans(
    client: ExercismClient,
    destination: Path,
    solutions: list[Solution],
    filters: BackupFilters,
    options: BackupOptions,
    cancel_event: threading.Event | None = None,
) -> list[SolutionPlan]:
    """Plan every selected solution.

    Records are loaded and iterations listed with the run's concurrency
    limit. The plans come back in the order of ``solutions``.

    Args:
        client: API client.
        destination: Root directory of the backup.
        solutions: Selected solutions in catalogue order.
        filters: Filters of the run (for iteration eligibility).
        options: Policies of the run.
        cancel_event: Cancellation token; once set no more iterations
            are listed.

    Returns:
        One plan per solution.
    """
    cancel_event = cancel_event or threading.Event()
    solution_dirs = [solution_dir_for(destination, s) for s in solutions]

    with ThreadPoolExecutor(
        max_workers=options.max_concurrency,
        thread_name_prefix="Planner",
    ) as executor:
        gathered = list(executor.map(
            lambda args: _gather(client, args[0], args[1], options, cancel_event),
            zip(solution_dirs, solutions),
        ))

    plans: list[SolutionPlan] = []
    for position, (solution, solution_dir, (record, iterations, error)) in enumerate(
        zip(solutions, solution_dirs, gathered)
    ):
        if error is not None:
            plan = SolutionPlan(
                solution=solution,
                solution_dir=solution_dir,
                action=SolutionAction.SKIP,
                record=record,
                error=error,
                position=position,
            )
        else:
            plan = plan_solution(
                solution,
                solution_dir,
                record,
                iterations,
                options,
                status=filters.status,
                position=position,
            )
        plans.append(plan)
    return plans


def execute_plans(
    client: ExercismClient,
    plans: list[SolutionPlan],
    options: BackupOptions,
    cancel_event: threading.Event | None = None,
) -> RunSummary:
    """Run plans on a bounded worker pool.

    Plans are admitted in order as workers free up. Once the cancellation
    token is set, plans not yet started are reported cancelled.

    Args:
        client: API client.
        plans: Plans in catalogue order.
        options: Policies of the run.
        cancel_event: Cancellation token.

    Returns:
        The run summary.
    """
    summary = RunSummary(dry_run=options.dry_run)
    pool = WorkerPool(
        client,
        BackupWriter(),
        max_workers=options.max_concurrency,
        dry_run=options.dry_run,
        cancel_event=cancel_event,
    )

    pool.start()
    try:
        for plan in plans:
            if not pool.submit(plan, on_complete=summary.add):
                summary.add(SolutionResult(plan=plan, cancelled=True, dry_run=options.dry_run))
        pool.wait()
    finally:
        pool.stop()

    summary.cancelled = summary.cancelled_count > 0
    logger.info(
        f"Backup {'dry run ' if options.dry_run else ''}finished: "
        f"{summary.fetched} fetched, {summary.skipped} skipped, "
        f"{summary.fetched_iterations} iteration(s) fetched, {summary.deleted} deleted, "
        f"{summary.failed} failed, {summary.cancelled_count} cancelled"
    )
    return summary
