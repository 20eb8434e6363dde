"""Backup of solutions to local disk.

This package provides:
- run_backup: Entry point running a full backup
- Selection, planning and execution of per-solution plans

Usage:
    from auxiliaire.client.backup import BackupFilters, run_backup

    summary = run_backup(client, destination, BackupFilters.create(tracks=["rust"]))
    for result in summary.results:
        ...
"""

from auxiliaire.client.backup.engine import build_plans, execute_plans, run_backup
from auxiliaire.client.backup.planner import (
    check_record,
    decide_solution_action,
    is_remote_newer,
    plan_iterations,
    plan_solution,
    solution_dir_for,
)
from auxiliaire.client.backup.selection import (
    catalogue_order,
    iteration_matches,
    select_solutions,
    solution_matches,
)
from auxiliaire.client.backup.types import (
    BackupFilters,
    BackupOptions,
    IterationAction,
    IterationStep,
    RunSummary,
    SolutionAction,
    SolutionPlan,
    SolutionResult,
)
from auxiliaire.client.backup.writer import BackupWriter
from auxiliaire.client.errors import (
    BackupError,
    CatalogueUnavailableError,
    ConfigurationError,
    FetchFailedError,
    StateCorruptError,
    StateMismatchError,
    WriteFailedError,
)

__all__ = [
    # Engine
    "build_plans",
    "execute_plans",
    "run_backup",
    # Planner
    "check_record",
    "decide_solution_action",
    "is_remote_newer",
    "plan_iterations",
    "plan_solution",
    "solution_dir_for",
    # Selection
    "catalogue_order",
    "iteration_matches",
    "select_solutions",
    "solution_matches",
    # Types
    "BackupFilters",
    "BackupOptions",
    "IterationAction",
    "IterationStep",
    "RunSummary",
    "SolutionAction",
    "SolutionPlan",
    "SolutionResult",
    # Writer
    "BackupWriter",
    # Errors
    "BackupError",
    "CatalogueUnavailableError",
    "ConfigurationError",
    "FetchFailedError",
    "StateCorruptError",
    "StateMismatchError",
    "WriteFailedError",
]
