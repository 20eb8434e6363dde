"""Test helpers for backup engine tests.

This module provides an in-memory catalogue client standing in for the
Exercism API, plus factories for solutions and iterations.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from auxiliaire.client.api import APIError, Exercise, Iteration, Solution, Track
from auxiliaire.core.types import SolutionStatus

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_solution(
    track: str = "python",
    exercise: str = "hello-world",
    uuid: str | None = None,
    status: SolutionStatus | None = SolutionStatus.COMPLETED,
    num_iterations: int = 1,
    updated_at: datetime | None = BASE_TIME,
) -> Solution:
    """Create a Solution for testing."""
    return Solution(
        uuid=uuid or f"uuid-{track}-{exercise}",
        track=Track(slug=track, title=track.title()),
        exercise=Exercise(slug=exercise, title=exercise.replace("-", " ").title()),
        status=status,
        num_iterations=num_iterations,
        updated_at=updated_at,
    )


def make_iteration(
    idx: int,
    is_published: bool = True,
    status: str = "no_automated_feedback",
) -> Iteration:
    """Create an Iteration for testing."""
    return Iteration(
        idx=idx,
        uuid=f"iteration-{idx}",
        submission_uuid=f"submission-{idx}",
        created_at=BASE_TIME + timedelta(days=idx),
        is_published=is_published,
        status=status,
    )


@dataclass
class FakeCatalogueClient:
    """In-memory stand-in for ExercismClient.

    Attributes:
        solutions: Solutions listed by list_solutions().
        iterations: Iterations by solution uuid.
        files: Main files by solution uuid.
        iteration_files: Iteration files by (solution uuid, idx).
        failing_files: Solution uuids whose main files can't be fetched.
        failing_iterations: (uuid, idx) pairs whose files can't be fetched.
        failing_listings: Solution uuids whose iterations can't be listed.
        catalogue_error: Error raised by list_solutions(), if any.
        fetch_delay: Seconds each fetch_files() call takes.
        on_fetch: Called at the start of each fetch_files() call.
    """

    solutions: list[Solution] = field(default_factory=list)
    iterations: dict[str, list[Iteration]] = field(default_factory=dict)
    files: dict[str, dict[str, bytes]] = field(default_factory=dict)
    iteration_files: dict[tuple[str, int], dict[str, bytes]] = field(default_factory=dict)
    failing_files: set[str] = field(default_factory=set)
    failing_iterations: set[tuple[str, int]] = field(default_factory=set)
    failing_listings: set[str] = field(default_factory=set)
    catalogue_error: APIError | None = None
    fetch_delay: float = 0.0
    on_fetch: Callable[[Solution, Iteration | None], None] | None = None
    calls: list[tuple[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._lock = threading.Lock()
        self._active_fetches = 0
        self.peak_fetches = 0

    def add(
        self,
        solution: Solution,
        files: dict[str, bytes] | None = None,
        iterations: list[Iteration] | None = None,
    ) -> Solution:
        """Register a solution with its files and iterations."""
        self.solutions.append(solution)
        self.files[solution.uuid] = files if files is not None else {"main.py": b"print('hi')\n"}
        for iteration in iterations or []:
            self.iterations.setdefault(solution.uuid, []).append(iteration)
            self.iteration_files[(solution.uuid, iteration.idx)] = {
                "main.py": f"# iteration {iteration.idx}\n".encode(),
            }
        return solution

    def _record(self, name: str, arg: Any) -> None:
        with self._lock:
            self.calls.append((name, arg))

    def calls_to(self, name: str) -> list[Any]:
        """Arguments of every call to the given method."""
        with self._lock:
            return [arg for call, arg in self.calls if call == name]

    def list_tracks(self) -> list[Track]:
        self._record("list_tracks", None)
        return sorted({s.track for s in self.solutions}, key=lambda t: t.slug)

    def list_solutions(
        self,
        track: str | None = None,
        status: SolutionStatus | None = None,
    ) -> list[Solution]:
        self._record("list_solutions", track)
        if self.catalogue_error is not None:
            raise self.catalogue_error
        return [s for s in self.solutions if track is None or s.track.slug == track]

    def list_iterations(self, solution: Solution) -> list[Iteration]:
        self._record("list_iterations", solution.uuid)
        if solution.uuid in self.failing_listings:
            raise APIError("Service unavailable", 503)
        return sorted(self.iterations.get(solution.uuid, []), key=lambda i: i.idx)

    def fetch_files(
        self,
        solution: Solution,
        iteration: Iteration | None = None,
    ) -> dict[str, bytes]:
        key = (solution.uuid, iteration.idx if iteration else None)
        self._record("fetch_files", key)
        if self.on_fetch is not None:
            self.on_fetch(solution, iteration)

        with self._lock:
            self._active_fetches += 1
            self.peak_fetches = max(self.peak_fetches, self._active_fetches)
        try:
            if self.fetch_delay:
                time.sleep(self.fetch_delay)
            if iteration is None:
                if solution.uuid in self.failing_files:
                    raise APIError("Internal server error", 500)
                return dict(self.files[solution.uuid])
            if (solution.uuid, iteration.idx) in self.failing_iterations:
                raise APIError("Internal server error", 500)
            return dict(self.iteration_files[(solution.uuid, iteration.idx)])
        finally:
            with self._lock:
                self._active_fetches -= 1
