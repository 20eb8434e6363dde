"""Workers for concurrent backup operations.

This package provides interruptible workers for solution backups:
- BaseWorker: Abstract base class with cancellation support
- SolutionBackupWorker: Executes the plan of one solution
- WorkerPool: Manages concurrent worker threads

Usage:
    from auxiliaire.client.backup.workers import WorkerPool

    pool = WorkerPool(client, writer, max_workers=4)
    pool.start()
    pool.submit(plan, on_complete=summary.add)
    pool.wait()
    pool.stop()
"""

from auxiliaire.client.backup.workers.base import (
    BaseWorker,
    CancelledException,
    WorkerContext,
    WorkerResult,
)
from auxiliaire.client.backup.workers.pool import PoolState, WorkerPool, WorkerTask
from auxiliaire.client.backup.workers.solution_worker import SolutionBackupWorker

__all__ = [
    # Base
    "BaseWorker",
    "CancelledException",
    "WorkerContext",
    "WorkerResult",
    # Workers
    "SolutionBackupWorker",
    # Pool
    "PoolState",
    "WorkerPool",
    "WorkerTask",
]
