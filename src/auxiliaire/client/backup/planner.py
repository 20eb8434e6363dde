"""Reconciliation planner.

Compares the remote state of each solution with its local backup record and
decides what the scheduler should do. Planning is pure: all inputs (record,
remote iterations) are gathered beforehand, so a dry run plans exactly what a
real run would.

Overwrite policy (main files):
| Record | Policy    | Action                                  |
|--------|-----------|-----------------------------------------|
| none   | *         | FETCH_NEW                               |
| exists | ALWAYS    | FETCH_UPDATE                            |
| exists | IF_NEWER  | FETCH_UPDATE if remote is newer, else SKIP |
| exists | NEVER     | SKIP                                    |

Iteration sync policy:
| Policy      | Not recorded (eligible) | Recorded | Recorded, gone remotely |
|-------------|-------------------------|----------|-------------------------|
| DO_NOT_SYNC | -                       | -        | -                       |
| NEW         | FETCH                   | SKIP     | -                       |
| FULL_SYNC   | FETCH                   | SKIP     | -                       |
| CLEAN_UP    | FETCH                   | SKIP     | DELETE                  |
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from auxiliaire.client.backup.selection import iteration_matches
from auxiliaire.client.backup.types import (
    BackupOptions,
    IterationAction,
    IterationStep,
    SolutionAction,
    SolutionPlan,
)
from auxiliaire.client.errors import StateMismatchError
from auxiliaire.core.types import IterationSyncPolicy, OverwritePolicy, SolutionStatus

if TYPE_CHECKING:
    from auxiliaire.client.api import Iteration, Solution
    from auxiliaire.client.state import BackupRecord

logger = logging.getLogger(__name__)


def solution_dir_for(destination: Path, solution: Solution) -> Path:
    """Local folder of a solution: <destination>/<track>/<exercise>."""
    return destination / solution.track.slug / solution.exercise.slug


def check_record(solution: Solution, record: BackupRecord) -> StateMismatchError | None:
    """Check that a backup record can describe the remote solution.

    A record belonging to another solution, a solution that lost its
    last-iterated timestamp, or one with fewer iterations than counted
    last time all point at a backup of something else.

    Returns:
        The mismatch, or None if the record is consistent.
    """
    name = solution.display_name
    if record.uuid != solution.uuid:
        return StateMismatchError(
            name, f"has uuid {solution.uuid} but the backup on disk belongs to {record.uuid}"
        )
    if record.last_iterated_at is not None and solution.last_iterated_at is None:
        return StateMismatchError(
            name,
            f"used to have a last-iterated timestamp ({record.last_iterated_at.isoformat()}) "
            "but no longer has one",
        )
    if (
        record.last_iterated_at is None
        and solution.last_iterated_at is None
        and record.num_iterations is not None
        and solution.num_iterations < record.num_iterations
    ):
        return StateMismatchError(
            name,
            f"has fewer iterations ({solution.num_iterations}) "
            f"than backed up ({record.num_iterations})",
        )
    return None


def is_remote_newer(solution: Solution, record: BackupRecord) -> bool:
    """Check whether the remote solution moved since it was backed up.

    Prefers last-iterated timestamps, then last-updated timestamps when
    both sides have one. Records written by older releases may only know
    the iteration count; with nothing to compare, the remote is assumed
    newer.
    """
    if record.last_iterated_at is not None and solution.last_iterated_at is not None:
        return solution.last_iterated_at != record.last_iterated_at
    if record.last_updated is not None and solution.last_updated is not None:
        return solution.last_updated > record.last_updated
    if record.num_iterations is not None:
        return solution.num_iterations != record.num_iterations
    return True


def decide_solution_action(
    solution: Solution,
    record: BackupRecord | None,
    policy: OverwritePolicy,
) -> SolutionAction:
    """Decide what to do with a solution's main files.

    Args:
        solution: Remote solution.
        record: Local backup record, if any.
        policy: Overwrite policy of the run.

    Returns:
        The main-file action.
    """
    if record is None:
        return SolutionAction.FETCH_NEW

    if policy == OverwritePolicy.ALWAYS:
        return SolutionAction.FETCH_UPDATE
    elif policy == OverwritePolicy.IF_NEWER:
        if is_remote_newer(solution, record):
            return SolutionAction.FETCH_UPDATE
        return SolutionAction.SKIP
    elif policy == OverwritePolicy.NEVER:
        return SolutionAction.SKIP
    else:
        raise ValueError(f"Unknown overwrite policy: {policy}")


def plan_iterations(
    remote_iterations: Sequence[Iteration],
    record: BackupRecord | None,
    policy: IterationSyncPolicy,
    status: SolutionStatus,
) -> list[IterationStep]:
    """Decide what to do with each iteration of a solution.

    Fetches and skips come oldest first so that an interrupted run never
    leaves a newer iteration on disk without the older ones. Deletions
    come last.

    An iteration is only deleted when it no longer exists remotely (or
    was deleted remotely). Iterations that merely stopped being eligible,
    e.g. unpublished while backing up published solutions only, are kept.

    Args:
        remote_iterations: Iterations listed remotely.
        record: Local backup record, if any.
        policy: Iteration sync policy of the run.
        status: Minimum solution status of the run.

    Returns:
        Iteration steps in execution order.
    """
    if policy == IterationSyncPolicy.DO_NOT_SYNC:
        return []
    elif policy in (IterationSyncPolicy.NEW, IterationSyncPolicy.FULL_SYNC):
        delete_absent = False
    elif policy == IterationSyncPolicy.CLEAN_UP:
        delete_absent = True
    else:
        raise ValueError(f"Unknown iteration sync policy: {policy}")

    recorded = set(record.iterations) if record else set()
    remote = sorted(
        (i for i in remote_iterations if not i.is_deleted),
        key=lambda i: i.idx,
    )

    steps: list[IterationStep] = []
    for iteration in remote:
        if iteration.idx in recorded:
            steps.append(IterationStep(iteration.idx, IterationAction.SKIP_ITERATION, iteration))
        elif iteration_matches(iteration, status):
            steps.append(IterationStep(iteration.idx, IterationAction.FETCH_ITERATION, iteration))

    if delete_absent:
        present = {i.idx for i in remote}
        steps.extend(
            IterationStep(idx, IterationAction.DELETE_ITERATION)
            for idx in sorted(recorded - present)
        )

    return steps


def plan_solution(
    solution: Solution,
    solution_dir: Path,
    record: BackupRecord | None,
    remote_iterations: Sequence[Iteration],
    options: BackupOptions,
    status: SolutionStatus = SolutionStatus.STARTED,
    position: int = 0,
) -> SolutionPlan:
    """Build the full plan for one solution.

    Args:
        solution: Remote solution.
        solution_dir: Local folder of the solution.
        record: Local backup record, if any.
        remote_iterations: Iterations listed remotely (empty when
            iterations are not synced).
        options: Policies of the run.
        status: Minimum solution status of the run.
        position: Index of the solution in catalogue order.

    Returns:
        The solution plan. A record that doesn't match the remote solution
        yields a SKIP plan carrying a StateMismatchError.
    """
    mismatch = check_record(solution, record) if record is not None else None
    if mismatch is not None:
        return SolutionPlan(
            solution=solution,
            solution_dir=solution_dir,
            action=SolutionAction.SKIP,
            record=record,
            error=mismatch,
            position=position,
        )

    action = decide_solution_action(solution, record, options.overwrite_policy)
    steps = plan_iterations(remote_iterations, record, options.iteration_policy, status)

    plan = SolutionPlan(
        solution=solution,
        solution_dir=solution_dir,
        action=action,
        record=record,
        iteration_steps=steps,
        position=position,
    )
    logger.debug(
        f"Planned {solution.display_name}: {action.value}, "
        f"{len(plan.steps_with(IterationAction.FETCH_ITERATION))} iteration(s) to fetch, "
        f"{len(plan.steps_with(IterationAction.DELETE_ITERATION))} to delete"
    )
    return plan
