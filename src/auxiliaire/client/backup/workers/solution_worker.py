"""Solution worker for executing one solution plan.

This module provides:
- SolutionBackupWorker: Fetches and writes a solution's main files and
  iterations, and deletes iterations gone remotely
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from auxiliaire.client.api import APIError
from auxiliaire.client.backup.types import IterationAction, SolutionResult
from auxiliaire.client.backup.workers.base import (
    BaseWorker,
    CancelledException,
    WorkerContext,
)
from auxiliaire.client.errors import FetchFailedError, WriteFailedError

if TYPE_CHECKING:
    from auxiliaire.client.api import ExercismClient
    from auxiliaire.client.backup.types import IterationStep, SolutionPlan
    from auxiliaire.client.backup.writer import BackupWriter
    from auxiliaire.client.state import BackupRecord

logger = logging.getLogger(__name__)


class SolutionBackupWorker(BaseWorker):
    """Worker executing the plan of one solution.

    Steps run in plan order: main files first, then iteration fetches
    oldest first, then iteration deletions. A main-file failure abandons
    the solution. The first failed iteration fetch stops further fetches
    of that solution (so no newer iteration is stored without the older
    ones), but deletions are still attempted.

    In dry-run mode nothing is fetched or written; the result reports
    what would have been done.

    Usage:
        worker = SolutionBackupWorker(client, writer)
        worker_result = worker.execute(plan, SolutionResult(plan=plan))
    """

    def __init__(
        self,
        client: ExercismClient,
        writer: BackupWriter,
        dry_run: bool = False,
    ) -> None:
        """Initialize the solution worker.

        Args:
            client: API client used to fetch files.
            writer: Writer used to materialize files.
            dry_run: Only report what would be done.
        """
        super().__init__()
        self._client = client
        self._writer = writer
        self._dry_run = dry_run

    @property
    def worker_type(self) -> str:
        """Return worker type name."""
        return "solution"

    def _check_cancelled(self, ctx: WorkerContext) -> None:
        if ctx.cancel_check():
            raise CancelledException(f"Backup of {ctx.plan.solution.display_name} cancelled")

    def _do_work(self, ctx: WorkerContext) -> SolutionResult:
        """Execute the plan.

        Args:
            ctx: Worker context with plan, result and cancellation check.

        Returns:
            The filled-in SolutionResult.

        Raises:
            CancelledException: If the run was cancelled between steps.
            FetchFailedError: If the main files can't be fetched.
            WriteFailedError: If the main files can't be written.
        """
        plan = ctx.plan
        result = ctx.result
        result.dry_run = self._dry_run

        if plan.error is not None:
            logger.error(str(plan.error))
            result.errors.append(plan.error)
            return result

        record = plan.record
        if plan.action.fetches:
            record = self._backup_main_files(ctx, record)
            result.main_done = True

        fetch_failed = False
        for step in plan.iteration_steps:
            if step.action == IterationAction.SKIP_ITERATION:
                continue
            elif step.action == IterationAction.FETCH_ITERATION:
                if fetch_failed:
                    logger.debug(
                        f"Not fetching iteration {step.idx} of {plan.solution.display_name}: "
                        "an older iteration failed"
                    )
                    continue
                self._check_cancelled(ctx)
                try:
                    record = self._backup_iteration(plan, record, step)
                except (FetchFailedError, WriteFailedError) as e:
                    logger.error(str(e))
                    result.errors.append(e)
                    fetch_failed = True
                    continue
                result.fetched_iterations.append(step.idx)
            elif step.action == IterationAction.DELETE_ITERATION:
                self._check_cancelled(ctx)
                try:
                    record = self._delete_iteration(plan, record, step)
                except WriteFailedError as e:
                    logger.error(str(e))
                    result.errors.append(e)
                    continue
                result.deleted_iterations.append(step.idx)
            else:
                raise ValueError(f"Unknown iteration action: {step.action}")

        return result

    def _backup_main_files(
        self,
        ctx: WorkerContext,
        record: BackupRecord | None,
    ) -> BackupRecord | None:
        plan = ctx.plan
        solution = plan.solution
        self._check_cancelled(ctx)

        if self._dry_run:
            logger.info(f"Would fetch solution to {solution.display_name} into {plan.solution_dir}")
            return record

        try:
            files = self._client.fetch_files(solution)
        except APIError as e:
            raise FetchFailedError(
                f"Failed to fetch solution to {solution.display_name}: {e}"
            ) from e

        self._check_cancelled(ctx)
        return self._writer.write_solution(solution, plan.solution_dir, files, record)

    def _backup_iteration(
        self,
        plan: SolutionPlan,
        record: BackupRecord | None,
        step: IterationStep,
    ) -> BackupRecord | None:
        solution = plan.solution
        if self._dry_run:
            logger.info(f"Would fetch iteration {step.idx} of {solution.display_name}")
            return record
        if record is None:
            # Main files were never written, nothing to attach the iteration to
            raise WriteFailedError(
                f"No backup record for {solution.display_name}, "
                f"can't store iteration {step.idx}"
            )

        try:
            files = self._client.fetch_files(solution, step.iteration)
        except APIError as e:
            raise FetchFailedError(
                f"Failed to fetch iteration {step.idx} of {solution.display_name}: {e}"
            ) from e
        return self._writer.write_iteration(plan.solution_dir, record, step.idx, files)

    def _delete_iteration(
        self,
        plan: SolutionPlan,
        record: BackupRecord | None,
        step: IterationStep,
    ) -> BackupRecord | None:
        if self._dry_run:
            logger.info(f"Would delete iteration {step.idx} of {plan.solution.display_name}")
            return record
        if record is None:
            return record
        return self._writer.delete_iteration(plan.solution_dir, record, step.idx)
