"""Worker pool for concurrent solution backups.

This module provides:
- WorkerPool: Runs solution plans on a bounded number of threads
- WorkerTask: Represents a queued task for the pool
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from auxiliaire.client.backup.types import SolutionResult
from auxiliaire.client.backup.workers.solution_worker import SolutionBackupWorker

if TYPE_CHECKING:
    from collections.abc import Callable

    from auxiliaire.client.api import ExercismClient
    from auxiliaire.client.backup.types import SolutionPlan
    from auxiliaire.client.backup.workers.base import BaseWorker
    from auxiliaire.client.backup.writer import BackupWriter

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while blocked on the queue
_POLL_INTERVAL = 0.1


class PoolState(Enum):
    """State of the worker pool."""

    STOPPED = auto()
    RUNNING = auto()
    STOPPING = auto()


@dataclass
class WorkerTask:
    """A task to be executed by the worker pool.

    Attributes:
        plan: The solution plan to execute.
        on_complete: Callback receiving the result, whatever the outcome.
    """

    plan: SolutionPlan
    on_complete: Callable[[SolutionResult], None] | None = None


class WorkerPool:
    """Pool of workers for concurrent solution backups.

    At most max_workers solutions are processed at once. The task queue is
    bounded to the same size, so submit() blocks while every worker is busy
    and plans are never all loaded up front.

    Cancellation goes through a shared event: once set, running workers
    stop at their next step boundary and queued tasks are reported as
    cancelled without being started.

    Usage:
        pool = WorkerPool(client, writer, max_workers=4)
        pool.start()

        for plan in plans:
            pool.submit(plan, on_complete=summary.add)

        pool.wait()
        pool.stop()
    """

    def __init__(
        self,
        client: ExercismClient,
        writer: BackupWriter,
        max_workers: int = 4,
        dry_run: bool = False,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Initialize the worker pool.

        Args:
            client: API client used by workers to fetch files.
            writer: Writer used by workers to materialize files.
            max_workers: Maximum concurrent workers (at least 1).
            dry_run: Only report what would be done.
            cancel_event: Shared cancellation token. Created if not given.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self._client = client
        self._writer = writer
        self._max_workers = max_workers
        self._dry_run = dry_run
        self._cancel_event = cancel_event or threading.Event()

        # Pool state
        self._pool_state = PoolState.STOPPED
        self._lock = threading.Lock()

        # Task queue
        self._task_queue: queue.Queue[WorkerTask | None] = queue.Queue(maxsize=max_workers)

        # Worker threads
        self._workers: list[threading.Thread] = []

        # Statistics
        self._active_count = 0
        self._peak_active_count = 0
        self._completed_count = 0
        self._error_count = 0
        self._cancelled_count = 0

    @property
    def state(self) -> PoolState:
        """Get current pool state."""
        return self._pool_state

    @property
    def peak_active_count(self) -> int:
        """Get the highest number of tasks executed at once."""
        with self._lock:
            return self._peak_active_count

    @property
    def completed_count(self) -> int:
        """Get number of tasks that ran to the end without error."""
        return self._completed_count

    @property
    def error_count(self) -> int:
        """Get number of tasks with at least one error."""
        return self._error_count

    def start(self) -> None:
        """Start the worker pool."""
        with self._lock:
            if self._pool_state != PoolState.STOPPED:
                logger.warning("Worker pool already running")
                return

            self._pool_state = PoolState.RUNNING

            for i in range(self._max_workers):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"WorkerPool-{i}",
                    daemon=True,
                )
                thread.start()
                self._workers.append(thread)

            logger.debug(f"Worker pool started with {self._max_workers} workers")

    def submit(
        self,
        plan: SolutionPlan,
        on_complete: Callable[[SolutionResult], None] | None = None,
    ) -> bool:
        """Submit a plan to the pool.

        Blocks while the queue is full.

        Args:
            plan: The solution plan to execute.
            on_complete: Callback receiving the result.

        Returns:
            True if the task was queued, False if the pool is not running
            or the run was cancelled while waiting.
        """
        if self._pool_state != PoolState.RUNNING:
            logger.warning("Cannot submit task: pool not running")
            return False

        task = WorkerTask(plan=plan, on_complete=on_complete)
        while not self._cancel_event.is_set():
            try:
                self._task_queue.put(task, timeout=_POLL_INTERVAL)
            except queue.Full:
                continue
            logger.debug(f"Task submitted: {plan.solution.display_name}")
            return True
        return False

    def wait(self) -> None:
        """Block until every queued task has been processed."""
        self._task_queue.join()

    def stop(self, timeout: float = 10.0) -> None:
        """Stop the worker pool.

        Queued tasks are processed (or reported cancelled) first.

        Args:
            timeout: Maximum time to wait for workers to finish.
        """
        with self._lock:
            if self._pool_state == PoolState.STOPPED:
                return
            self._pool_state = PoolState.STOPPING
            workers = list(self._workers)

        # Poison pills, one per worker
        for _ in workers:
            self._task_queue.put(None)

        for worker in workers:
            worker.join(timeout=timeout / len(workers))

        with self._lock:
            self._pool_state = PoolState.STOPPED
            self._workers.clear()
            logger.debug(
                f"Worker pool stopped: {self._completed_count} completed, "
                f"{self._error_count} failed, {self._cancelled_count} cancelled"
            )

    def _worker_loop(self) -> None:
        """Main loop for worker threads."""
        while True:
            try:
                task = self._task_queue.get(timeout=1.0)
            except queue.Empty:
                if self._pool_state != PoolState.RUNNING:
                    break
                continue

            try:
                if task is None:
                    # Poison pill - stop worker
                    break
                self._process_task(task)
            except Exception:
                logger.exception("Unexpected error in worker loop")
            finally:
                self._task_queue.task_done()

    def _process_task(self, task: WorkerTask) -> None:
        """Execute one plan and hand its result to the callback.

        Args:
            task: The task to process.
        """
        result = SolutionResult(plan=task.plan, dry_run=self._dry_run)

        if self._cancel_event.is_set():
            result.cancelled = True
            with self._lock:
                self._cancelled_count += 1
        else:
            with self._lock:
                self._active_count += 1
                self._peak_active_count = max(self._peak_active_count, self._active_count)
            try:
                worker = self._create_worker()
                worker_result = worker.execute(
                    task.plan,
                    result,
                    cancel_check=self._cancel_event.is_set,
                )
            finally:
                with self._lock:
                    self._active_count -= 1

            if worker_result.cancelled:
                result.cancelled = True
            elif worker_result.error is not None:
                result.errors.append(worker_result.error)

            with self._lock:
                if result.cancelled:
                    self._cancelled_count += 1
                elif result.failed:
                    self._error_count += 1
                else:
                    self._completed_count += 1

        if task.on_complete:
            task.on_complete(result)

    def _create_worker(self) -> BaseWorker:
        """Create a worker for one plan."""
        return SolutionBackupWorker(
            client=self._client,
            writer=self._writer,
            dry_run=self._dry_run,
        )
