"""Shared types for auxiliaire.

This module defines the enums used by the planner, the engine and the CLI.
"""

from __future__ import annotations

from enum import Enum


class SolutionStatus(str, Enum):
    """Submission status of a solution, ordered by increasing completeness.

    Comparison operators follow the completeness order rather than the
    string values, so ``SolutionStatus.PUBLISHED > SolutionStatus.STARTED``.
    """

    STARTED = "started"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    PUBLISHED = "published"

    @property
    def rank(self) -> int:
        """Position of this status in the completeness order."""
        return _STATUS_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SolutionStatus):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SolutionStatus):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SolutionStatus):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SolutionStatus):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def from_api(cls, value: str) -> SolutionStatus | None:
        """Map a status reported by the platform API.

        Args:
            value: Raw status string (e.g. "iterated").

        Returns:
            The matching status, or None for statuses we do not know about.
        """
        return _API_STATUSES.get(value)


_STATUS_ORDER: tuple[SolutionStatus, ...] = (
    SolutionStatus.STARTED,
    SolutionStatus.SUBMITTED,
    SolutionStatus.COMPLETED,
    SolutionStatus.PUBLISHED,
)

_API_STATUSES: dict[str, SolutionStatus] = {
    "started": SolutionStatus.STARTED,
    "iterated": SolutionStatus.SUBMITTED,
    "submitted": SolutionStatus.SUBMITTED,
    "completed": SolutionStatus.COMPLETED,
    "published": SolutionStatus.PUBLISHED,
}


class OverwritePolicy(str, Enum):
    """What to do with a solution that was already backed up."""

    ALWAYS = "always"  # Re-fetch every time
    IF_NEWER = "if-newer"  # Re-fetch when the remote moved forward
    NEVER = "never"  # Keep whatever is on disk


class IterationSyncPolicy(str, Enum):
    """Whether and how to back up a solution's iterations."""

    DO_NOT_SYNC = "do-not-sync"
    NEW = "new"  # Fetch iterations we don't have yet
    FULL_SYNC = "full-sync"  # Same as NEW, keeps iterations gone remotely
    CLEAN_UP = "clean-up"  # Same as NEW, deletes iterations gone remotely

    @property
    def syncs(self) -> bool:
        """Whether this policy touches iterations at all."""
        return self != IterationSyncPolicy.DO_NOT_SYNC
