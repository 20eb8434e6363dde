"""Selection of the solutions and iterations to back up.

Pure functions: given the remote catalogue and the user filters, decide
which solutions and iterations are candidates for the planner.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from auxiliaire.core.types import SolutionStatus

if TYPE_CHECKING:
    from auxiliaire.client.api import Iteration, Solution
    from auxiliaire.client.backup.types import BackupFilters


def catalogue_order(solution: Solution) -> tuple[str, str, str]:
    """Sort key giving the catalogue order (track, exercise, solution)."""
    return (solution.track.slug, solution.exercise.slug, solution.uuid)


def solution_matches(solution: Solution, filters: BackupFilters) -> bool:
    """Check whether a solution passes the user filters.

    Args:
        solution: Remote solution.
        filters: Track, exercise and minimum status filters.

    Returns:
        True if the solution should be backed up.
    """
    if filters.tracks and solution.track.slug not in filters.tracks:
        return False
    if filters.exercises and solution.exercise.slug not in filters.exercises:
        return False
    return solution.status is not None and solution.status >= filters.status


def select_solutions(
    solutions: Iterable[Solution],
    filters: BackupFilters,
) -> list[Solution]:
    """Filter the catalogue and put it in catalogue order.

    Args:
        solutions: Every solution listed remotely.
        filters: User filters.

    Returns:
        Matching solutions sorted by track, exercise and uuid.
    """
    selected = [s for s in solutions if solution_matches(s, filters)]
    return sorted(selected, key=catalogue_order)


def iteration_matches(iteration: Iteration, status: SolutionStatus) -> bool:
    """Check whether an iteration may be fetched.

    Deleted iterations are never fetched. When only published solutions
    are wanted, only published iterations are.

    Args:
        iteration: Remote iteration.
        status: Minimum solution status of the run.

    Returns:
        True if the iteration is eligible for fetching.
    """
    if iteration.is_deleted:
        return False
    return status < SolutionStatus.PUBLISHED or iteration.is_published
