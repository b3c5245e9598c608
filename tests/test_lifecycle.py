"""
Tests for the sprint lifecycle guard.
"""

from datetime import date, datetime

import pytest

from sprint_planner.models import Sprint
from sprint_planner.services.exceptions import LockViolationError, LOCKED_SPRINT_MESSAGE
from sprint_planner.services.lifecycle import (
    SprintLifecycleGuard,
    SprintState,
    fixed_clock,
    local_clock,
)


def make_sprint(end_date: date, completed_velocity=None) -> Sprint:
    return Sprint(
        id=1,
        name="Sprint 1",
        start_date=date(2024, 1, 1),
        end_date=end_date,
        completed_velocity=completed_velocity,
    )


class TestSprintState:

    def test_past_sprint_with_recorded_velocity_is_completed(self):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 2, 1)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=30)

        assert guard.state(sprint) is SprintState.COMPLETED
        assert guard.is_completed(sprint)
        assert not guard.can_edit(sprint)

    def test_past_sprint_without_recorded_velocity_is_open(self):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 2, 1)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=None)

        assert guard.state(sprint) is SprintState.OPEN

    def test_recorded_zero_velocity_still_locks(self):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 2, 1)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=0)

        assert guard.is_completed(sprint)

    @pytest.mark.parametrize("completed_velocity", [None, 0, 25])
    def test_future_sprint_never_locks(self, completed_velocity):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 1, 10)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=completed_velocity)

        assert guard.state(sprint) is SprintState.OPEN

    def test_sprint_is_open_through_its_last_day(self):
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=30)

        last_moment = SprintLifecycleGuard(fixed_clock(datetime(2024, 1, 14, 23, 59, 59, 999000)))
        after_end = SprintLifecycleGuard(fixed_clock(datetime(2024, 1, 14, 23, 59, 59, 999500)))
        next_day = SprintLifecycleGuard(fixed_clock(datetime(2024, 1, 15, 0, 0)))

        assert not last_moment.is_completed(sprint)
        assert after_end.is_completed(sprint)
        assert next_day.is_completed(sprint)


class TestEditGuards:

    def test_ensure_editable_raises_on_completed_sprint(self):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 2, 1)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=30)

        with pytest.raises(LockViolationError) as exc_info:
            guard.ensure_editable(sprint)

        assert exc_info.value.sprint_id == 1
        assert str(exc_info.value) == LOCKED_SPRINT_MESSAGE

    @pytest.mark.parametrize("fields", [
        {"velocity_commitment"},
        {"completed_velocity"},
        {"name", "velocity_commitment"},
    ])
    def test_velocity_updates_rejected_on_completed_sprint(self, fields):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 2, 1)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=30)

        with pytest.raises(LockViolationError):
            guard.ensure_update_allowed(sprint, fields)

    def test_metadata_updates_allowed_on_completed_sprint(self):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 2, 1)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=30)

        guard.ensure_update_allowed(sprint, {"name", "start_date", "end_date", "team_id"})

    def test_velocity_updates_allowed_on_open_sprint(self):
        guard = SprintLifecycleGuard(fixed_clock(datetime(2024, 1, 5)))
        sprint = make_sprint(date(2024, 1, 14), completed_velocity=30)

        guard.ensure_update_allowed(sprint, {"velocity_commitment", "completed_velocity"})


class TestClocks:

    def test_local_clock_returns_naive_datetime(self):
        now = local_clock("UTC")()
        assert now.tzinfo is None

    def test_guard_exposes_clock(self):
        moment = datetime(2024, 3, 1, 8, 0)
        assert SprintLifecycleGuard(fixed_clock(moment)).now() == moment
