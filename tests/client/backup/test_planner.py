"""Tests for the reconciliation planner."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from pathlib import Path

import pytest

from auxiliaire.client.backup.planner import (
    check_record,
    decide_solution_action,
    is_remote_newer,
    plan_iterations,
    plan_solution,
    solution_dir_for,
)
from auxiliaire.client.backup.types import (
    BackupOptions,
    IterationAction,
    SolutionAction,
)
from auxiliaire.client.errors import StateMismatchError
from auxiliaire.client.state import BackupRecord
from auxiliaire.core.types import IterationSyncPolicy, OverwritePolicy, SolutionStatus
from tests.client.backup.fixtures import BASE_TIME, make_iteration, make_solution


def actions(steps: list) -> list[tuple[int, IterationAction]]:
    """Flatten iteration steps for comparison."""
    return [(s.idx, s.action) for s in steps]


FETCH = IterationAction.FETCH_ITERATION
SKIP = IterationAction.SKIP_ITERATION
DELETE = IterationAction.DELETE_ITERATION


class TestSolutionDir:
    """Tests for solution_dir_for()."""

    def test_layout(self, tmp_path: Path) -> None:
        """Should place solutions under <track>/<exercise>."""
        solution = make_solution(track="rust", exercise="clock")
        assert solution_dir_for(tmp_path, solution) == tmp_path / "rust" / "clock"


class TestIsRemoteNewer:
    """Tests for is_remote_newer()."""

    def test_compares_timestamps(self) -> None:
        """Should compare last-updated timestamps when both are known."""
        solution = make_solution(updated_at=BASE_TIME)
        assert not is_remote_newer(solution, BackupRecord(uuid=solution.uuid, last_updated=BASE_TIME))
        assert is_remote_newer(
            solution,
            BackupRecord(uuid=solution.uuid, last_updated=BASE_TIME - timedelta(seconds=1)),
        )

    def test_falls_back_to_iteration_count(self) -> None:
        """Should compare iteration counts for records without timestamp."""
        solution = make_solution(num_iterations=3)
        assert is_remote_newer(solution, BackupRecord(uuid=solution.uuid, num_iterations=2))
        assert not is_remote_newer(solution, BackupRecord(uuid=solution.uuid, num_iterations=3))

    def test_prefers_last_iterated_at(self) -> None:
        """Should not refetch when only updated_at moved past the recorded timestamps."""
        solution = replace(
            make_solution(updated_at=BASE_TIME + timedelta(days=2)),
            last_iterated_at=BASE_TIME,
        )
        record = BackupRecord(
            uuid=solution.uuid,
            last_updated=BASE_TIME - timedelta(days=1),
            last_iterated_at=BASE_TIME,
        )
        assert not is_remote_newer(solution, record)
        assert is_remote_newer(
            replace(solution, last_iterated_at=BASE_TIME + timedelta(hours=1)), record
        )

    def test_nothing_to_compare(self) -> None:
        """Should assume the remote is newer with nothing to compare."""
        solution = make_solution()
        assert is_remote_newer(solution, BackupRecord(uuid=solution.uuid))


class TestCheckRecord:
    """Tests for check_record()."""

    def test_consistent_record(self) -> None:
        """Should accept a record of the same solution."""
        solution = make_solution(num_iterations=2)
        record = BackupRecord(uuid=solution.uuid, last_updated=BASE_TIME, num_iterations=2)
        assert check_record(solution, record) is None

    def test_uuid_mismatch(self) -> None:
        """Should refuse a record of another solution."""
        error = check_record(make_solution(uuid="remote"), BackupRecord(uuid="local"))
        assert isinstance(error, StateMismatchError)
        assert "belongs to local" in str(error)

    def test_lost_last_iterated_at(self) -> None:
        """Should refuse a solution that no longer has a last-iterated timestamp."""
        solution = make_solution()
        record = BackupRecord(uuid=solution.uuid, last_iterated_at=BASE_TIME)

        error = check_record(solution, record)

        assert isinstance(error, StateMismatchError)
        assert "no longer has one" in str(error)

    def test_fewer_iterations(self) -> None:
        """Should refuse a count-based record with more iterations than remote."""
        solution = make_solution(num_iterations=2)
        record = BackupRecord(uuid=solution.uuid, num_iterations=3)

        error = check_record(solution, record)

        assert isinstance(error, StateMismatchError)
        assert "fewer iterations (2)" in str(error)

    def test_fewer_iterations_with_timestamps(self) -> None:
        """Should trust timestamps over counts when the solution has them."""
        solution = replace(make_solution(num_iterations=1), last_iterated_at=BASE_TIME)
        record = BackupRecord(uuid=solution.uuid, last_iterated_at=BASE_TIME, num_iterations=3)
        assert check_record(solution, record) is None


class TestDecideSolutionAction:
    """Tests for the overwrite policy."""

    @pytest.mark.parametrize("policy", list(OverwritePolicy))
    def test_no_record_always_fetches(self, policy: OverwritePolicy) -> None:
        """Should fetch solutions never backed up, whatever the policy."""
        assert decide_solution_action(make_solution(), None, policy) == SolutionAction.FETCH_NEW

    @pytest.mark.parametrize(
        ("policy", "remote_moved", "expected"),
        [
            (OverwritePolicy.ALWAYS, False, SolutionAction.FETCH_UPDATE),
            (OverwritePolicy.ALWAYS, True, SolutionAction.FETCH_UPDATE),
            (OverwritePolicy.IF_NEWER, False, SolutionAction.SKIP),
            (OverwritePolicy.IF_NEWER, True, SolutionAction.FETCH_UPDATE),
            (OverwritePolicy.NEVER, False, SolutionAction.SKIP),
            (OverwritePolicy.NEVER, True, SolutionAction.SKIP),
        ],
    )
    def test_existing_record(
        self,
        policy: OverwritePolicy,
        remote_moved: bool,
        expected: SolutionAction,
    ) -> None:
        """Should apply the overwrite policy to backed-up solutions."""
        remote_time = BASE_TIME + timedelta(days=1) if remote_moved else BASE_TIME
        solution = make_solution(updated_at=remote_time)
        record = BackupRecord(uuid=solution.uuid, last_updated=BASE_TIME)

        assert decide_solution_action(solution, record, policy) == expected


class TestPlanIterations:
    """Tests for the iteration sync policy."""

    def test_do_not_sync(self) -> None:
        """Should plan nothing."""
        steps = plan_iterations(
            [make_iteration(1)], None, IterationSyncPolicy.DO_NOT_SYNC, SolutionStatus.STARTED
        )
        assert steps == []

    def test_new_fetches_missing(self) -> None:
        """Should fetch iterations not recorded yet, oldest first."""
        record = BackupRecord(uuid="u", iterations=[1])
        remote = [make_iteration(3), make_iteration(1), make_iteration(2)]

        steps = plan_iterations(remote, record, IterationSyncPolicy.NEW, SolutionStatus.STARTED)

        assert actions(steps) == [(1, SKIP), (2, FETCH), (3, FETCH)]

    @pytest.mark.parametrize("policy", [IterationSyncPolicy.NEW, IterationSyncPolicy.FULL_SYNC])
    def test_keeps_iterations_gone_remotely(self, policy: IterationSyncPolicy) -> None:
        """Should never delete outside CLEAN_UP."""
        record = BackupRecord(uuid="u", iterations=[1, 2, 3])
        remote = [make_iteration(2), make_iteration(3)]

        steps = plan_iterations(remote, record, policy, SolutionStatus.STARTED)

        assert actions(steps) == [(2, SKIP), (3, SKIP)]

    def test_clean_up_deletes_absent(self) -> None:
        """Should delete recorded iterations no longer listed remotely."""
        record = BackupRecord(uuid="u", iterations=[1, 2, 3])
        remote = [make_iteration(2), make_iteration(3)]

        steps = plan_iterations(remote, record, IterationSyncPolicy.CLEAN_UP, SolutionStatus.STARTED)

        assert actions(steps) == [(2, SKIP), (3, SKIP), (1, DELETE)]

    def test_clean_up_deleted_status_counts_as_absent(self) -> None:
        """Should delete iterations deleted remotely."""
        record = BackupRecord(uuid="u", iterations=[1, 2])
        remote = [make_iteration(1, status="deleted"), make_iteration(2), make_iteration(3)]

        steps = plan_iterations(remote, record, IterationSyncPolicy.CLEAN_UP, SolutionStatus.STARTED)

        assert actions(steps) == [(2, SKIP), (3, FETCH), (1, DELETE)]

    def test_deletions_after_fetches_in_id_order(self) -> None:
        """Should put deletions last, ordered by index."""
        record = BackupRecord(uuid="u", iterations=[5, 2])
        remote = [make_iteration(6)]

        steps = plan_iterations(remote, record, IterationSyncPolicy.CLEAN_UP, SolutionStatus.STARTED)

        assert actions(steps) == [(6, FETCH), (2, DELETE), (5, DELETE)]

    def test_published_threshold_only_fetches_published(self) -> None:
        """Should only fetch published iterations for published-only runs."""
        remote = [make_iteration(1, is_published=False), make_iteration(2, is_published=True)]

        steps = plan_iterations(remote, None, IterationSyncPolicy.NEW, SolutionStatus.PUBLISHED)

        assert actions(steps) == [(2, FETCH)]

    def test_unpublished_iteration_is_not_deleted(self) -> None:
        """Should keep an iteration that was unpublished but still exists."""
        record = BackupRecord(uuid="u", iterations=[1, 2])
        remote = [make_iteration(1, is_published=False), make_iteration(2)]

        steps = plan_iterations(
            remote, record, IterationSyncPolicy.CLEAN_UP, SolutionStatus.PUBLISHED
        )

        assert DELETE not in [s.action for s in steps]
        assert actions(steps) == [(1, SKIP), (2, SKIP)]


class TestPlanSolution:
    """Tests for plan_solution()."""

    def test_full_plan(self, tmp_path: Path) -> None:
        """Should combine the main-file action with iteration steps."""
        solution = make_solution(updated_at=BASE_TIME + timedelta(hours=1))
        record = BackupRecord(uuid=solution.uuid, last_updated=BASE_TIME, iterations=[1])
        options = BackupOptions(iteration_policy=IterationSyncPolicy.NEW)

        plan = plan_solution(
            solution, tmp_path, record, [make_iteration(1), make_iteration(2)], options, position=7
        )

        assert plan.action == SolutionAction.FETCH_UPDATE
        assert actions(plan.iteration_steps) == [(1, SKIP), (2, FETCH)]
        assert plan.position == 7
        assert plan.error is None
        assert plan.has_work

    def test_nothing_to_do(self, tmp_path: Path) -> None:
        """Should produce a plan without work for an up-to-date solution."""
        solution = make_solution()
        record = BackupRecord(uuid=solution.uuid, last_updated=BASE_TIME)

        plan = plan_solution(solution, tmp_path, record, [], BackupOptions())

        assert plan.action == SolutionAction.SKIP
        assert not plan.has_work

    def test_uuid_mismatch(self, tmp_path: Path) -> None:
        """Should refuse to touch a folder holding another solution."""
        solution = make_solution(uuid="remote-uuid")
        record = BackupRecord(uuid="local-uuid")
        options = BackupOptions(
            overwrite_policy=OverwritePolicy.ALWAYS,
            iteration_policy=IterationSyncPolicy.CLEAN_UP,
        )

        plan = plan_solution(solution, tmp_path, record, [make_iteration(1)], options)

        assert plan.action == SolutionAction.SKIP
        assert plan.iteration_steps == []
        assert isinstance(plan.error, StateMismatchError)
        assert "wrong output directory" in str(plan.error)
        assert not plan.has_work

    def test_fewer_iterations_than_recorded(self, tmp_path: Path) -> None:
        """Should leave alone a folder recording more iterations than remote has."""
        solution = make_solution(num_iterations=1, updated_at=BASE_TIME + timedelta(days=1))
        record = BackupRecord(uuid=solution.uuid, num_iterations=4, iterations=[1, 2, 3, 4])
        options = BackupOptions(
            overwrite_policy=OverwritePolicy.ALWAYS,
            iteration_policy=IterationSyncPolicy.CLEAN_UP,
        )

        plan = plan_solution(solution, tmp_path, record, [make_iteration(1)], options)

        assert plan.action == SolutionAction.SKIP
        assert plan.iteration_steps == []
        assert isinstance(plan.error, StateMismatchError)
        assert "fewer iterations" in str(plan.error)
