"""Base worker class with cancellation support.

This module provides:
- WorkerResult: How a worker execution ended
- WorkerContext: What a worker gets to do its job
- BaseWorker: Abstract base class for interruptible workers
- CancelledException: Raised at a step boundary once cancelled
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from auxiliaire.client.backup.types import SolutionPlan, SolutionResult

logger = logging.getLogger(__name__)


@dataclass
class WorkerResult:
    """How a worker execution ended.

    Attributes:
        result: Value returned by the work (type depends on worker).
        error: Exception that stopped the work, if any.
        cancelled: Whether the work stopped because of cancellation.
    """

    result: Any = None
    error: Exception | None = None
    cancelled: bool = False


@dataclass
class WorkerContext:
    """Context passed to worker execution.

    Attributes:
        plan: The solution plan being executed.
        result: Result to fill in as steps complete; survives cancellation
            and failures so partial progress is still reported.
        cancel_check: Function to check if cancellation was requested.
    """

    plan: SolutionPlan
    result: SolutionResult
    cancel_check: Callable[[], bool] = field(default=lambda: False)


class BaseWorker(ABC):
    """Abstract base class for interruptible workers.

    A worker executes one solution plan. Cancellation is cooperative:
    the work polls ``ctx.cancel_check()`` between I/O steps and raises
    CancelledException, which execute() reports as a cancelled result.

    Subclasses must implement:
    - _do_work(): The actual work logic
    - worker_type: Property returning the worker type name
    """

    @property
    @abstractmethod
    def worker_type(self) -> str:
        """Return the worker type name (e.g., 'solution')."""
        ...

    def execute(
        self,
        plan: SolutionPlan,
        result: SolutionResult,
        cancel_check: Callable[[], bool] | None = None,
    ) -> WorkerResult:
        """Execute the worker operation.

        Args:
            plan: The solution plan to execute.
            result: Result object filled in by the work.
            cancel_check: Optional external cancellation check function.

        Returns:
            WorkerResult describing how the execution ended.
        """
        ctx = WorkerContext(plan=plan, result=result, cancel_check=cancel_check or (lambda: False))
        start_time = time.monotonic()

        try:
            return WorkerResult(result=self._do_work(ctx))
        except CancelledException:
            elapsed = time.monotonic() - start_time
            logger.info(
                f"{self.worker_type} worker: {plan.solution.display_name} "
                f"cancelled after {elapsed:.2f}s"
            )
            return WorkerResult(cancelled=True)
        except Exception as e:
            logger.error(f"{self.worker_type} worker failed: {e}")
            return WorkerResult(error=e)

    @abstractmethod
    def _do_work(self, ctx: WorkerContext) -> Any:
        """Perform the actual work.

        The implementation should check ctx.cancel_check() before each I/O
        step and raise CancelledException if True, recording progress on
        ctx.result as steps complete.

        Args:
            ctx: Worker context with plan, result and cancel check.

        Returns:
            The result of the operation.
        """
        ...


class CancelledException(Exception):
    """Raised when a worker operation is cancelled."""
