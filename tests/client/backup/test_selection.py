"""Tests for solution and iteration selection."""

from __future__ import annotations

from auxiliaire.client.backup.selection import (
    iteration_matches,
    select_solutions,
    solution_matches,
)
from auxiliaire.client.backup.types import BackupFilters
from auxiliaire.core.types import SolutionStatus
from tests.client.backup.fixtures import make_iteration, make_solution


class TestSolutionMatches:
    """Tests for solution_matches()."""

    def test_empty_filters_match_everything(self) -> None:
        """Should match any known status without filters."""
        assert solution_matches(make_solution(status=SolutionStatus.STARTED), BackupFilters())

    def test_track_filter(self) -> None:
        """Should keep only the requested tracks."""
        filters = BackupFilters.create(tracks=["rust"])
        assert solution_matches(make_solution(track="rust"), filters)
        assert not solution_matches(make_solution(track="python"), filters)

    def test_exercise_filter(self) -> None:
        """Should keep only the requested exercises."""
        filters = BackupFilters.create(exercises=["clock", "anagram"])
        assert solution_matches(make_solution(exercise="clock"), filters)
        assert not solution_matches(make_solution(exercise="bob"), filters)

    def test_status_threshold(self) -> None:
        """Should keep solutions at or above the minimum status."""
        filters = BackupFilters.create(status=SolutionStatus.COMPLETED)
        assert not solution_matches(make_solution(status=SolutionStatus.SUBMITTED), filters)
        assert solution_matches(make_solution(status=SolutionStatus.COMPLETED), filters)
        assert solution_matches(make_solution(status=SolutionStatus.PUBLISHED), filters)

    def test_unknown_status_never_matches(self) -> None:
        """Should skip solutions with a status we don't know."""
        assert not solution_matches(make_solution(status=None), BackupFilters())


class TestSelectSolutions:
    """Tests for select_solutions()."""

    def test_catalogue_order(self) -> None:
        """Should sort by track, exercise, then uuid."""
        solutions = [
            make_solution(track="rust", exercise="clock"),
            make_solution(track="go", exercise="two-fer"),
            make_solution(track="go", exercise="bob", uuid="b"),
            make_solution(track="go", exercise="bob", uuid="a"),
        ]

        selected = select_solutions(solutions, BackupFilters())

        assert [(s.track.slug, s.exercise.slug, s.uuid) for s in selected] == [
            ("go", "bob", "a"),
            ("go", "bob", "b"),
            ("go", "two-fer", "uuid-go-two-fer"),
            ("rust", "clock", "uuid-rust-clock"),
        ]

    def test_deterministic(self) -> None:
        """Should give the same output whatever the input order."""
        solutions = [make_solution(track=t, exercise=e) for t in ("a", "b") for e in ("x", "y")]
        filters = BackupFilters.create(exercises=["x"])
        assert select_solutions(solutions, filters) == select_solutions(
            list(reversed(solutions)), filters
        )

    def test_combined_filters(self) -> None:
        """Should apply every filter at once."""
        solutions = [
            make_solution(track="rust", exercise="clock", status=SolutionStatus.PUBLISHED),
            make_solution(track="rust", exercise="bob", status=SolutionStatus.PUBLISHED),
            make_solution(track="go", exercise="clock", status=SolutionStatus.PUBLISHED),
            make_solution(track="rust", exercise="clock", uuid="x", status=SolutionStatus.STARTED),
        ]
        filters = BackupFilters.create(
            tracks=["rust"], exercises=["clock"], status=SolutionStatus.COMPLETED
        )

        selected = select_solutions(solutions, filters)

        assert [s.uuid for s in selected] == ["uuid-rust-clock"]


class TestIterationMatches:
    """Tests for iteration_matches()."""

    def test_deleted_never_matches(self) -> None:
        """Should never fetch deleted iterations."""
        assert not iteration_matches(make_iteration(1, status="deleted"), SolutionStatus.STARTED)

    def test_unpublished_below_published_threshold(self) -> None:
        """Should fetch unpublished iterations unless only published ones are wanted."""
        iteration = make_iteration(1, is_published=False)
        assert iteration_matches(iteration, SolutionStatus.COMPLETED)
        assert not iteration_matches(iteration, SolutionStatus.PUBLISHED)

    def test_published_always_matches(self) -> None:
        """Should fetch published iterations at any threshold."""
        assert iteration_matches(make_iteration(1, is_published=True), SolutionStatus.PUBLISHED)
