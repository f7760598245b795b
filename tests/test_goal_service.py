"""Tests for savings goals through the orchestrator."""

import pytest
from datetime import date, datetime
from decimal import Decimal

from allowance_tracker.calculations import AlreadyAchievableError, recompute
from allowance_tracker.models.goal import GoalState, ProjectionFailureReason
from allowance_tracker.models.ledger import Transaction
from allowance_tracker.orchestrator import GoalService
from allowance_tracker.services.storage import (
    CsvAllowanceScheduleStorage,
    CsvDataClient,
    CsvGoalStorage,
    CsvTransactionStorage,
    NotFoundError,
)
from allowance_tracker.validation import (
    ActiveGoalExistsError,
    InvalidTargetAmountError,
    NoActiveGoalError,
)

from conftest import EST


@pytest.fixture
def funded(tracker, child):
    """Alex has 15.50 and 5.00 every Friday."""
    tracker.profiles.update_allowance_schedule(child, "5", day_of_week=4)
    tracker.add_transaction(child, "15.50", "Savings")
    return child


class TestCreateGoal:
    """Tests for goal creation."""

    def test_projection_on_create(self, tracker, funded):
        """Test target 40.00 from 15.50 at 5.00 weekly."""
        status = tracker.create_goal(funded, "New bike", "40")

        assert status.goal.state == GoalState.ACTIVE
        assert status.current_balance == Decimal("15.50")
        assert status.has_projection
        assert status.projection.amount_needed == Decimal("24.50")
        assert status.projection.cycles_needed == 5
        assert status.projection.projected_completion_date == date(2025, 2, 21)

    def test_zero_horizon_is_honoured(self, tmp_path, clock, funded):
        """Test an explicit zero-day horizon flags any future date."""
        client = CsvDataClient(tmp_path)
        service = GoalService(
            goal_storage=CsvGoalStorage(client),
            transaction_storage=CsvTransactionStorage(client),
            schedule_storage=CsvAllowanceScheduleStorage(client),
            clock=clock,
            horizon_days=0,
        )
        status = service.create_goal(funded, "New bike", "40")
        assert status.projection.projected_completion_date == date(2025, 2, 21)
        assert status.projection.exceeds_horizon is True

    def test_second_active_goal_rejected(self, tracker, funded):
        """Test only one goal may be Active."""
        tracker.create_goal(funded, "New bike", "40")
        with pytest.raises(ActiveGoalExistsError):
            tracker.create_goal(funded, "Skateboard", "60")
        assert len(tracker.goals.goal_history(funded)) == 1

    def test_already_achievable_creates_nothing(self, tracker, child, tmp_path):
        """Test a covered target is rejected before anything is written."""
        tracker.add_transaction(child, "15", "Savings")
        with pytest.raises(AlreadyAchievableError):
            tracker.create_goal(child, "Comic", "10")

        assert not (tmp_path / child.directory / "goals.csv").exists()
        with pytest.raises(NotFoundError):
            tracker.get_current_goal_with_projection(child)

    def test_without_schedule_goal_still_created(self, tracker, child):
        """Test a missing schedule is reported, not fatal."""
        status = tracker.create_goal(child, "New bike", "40")
        assert not status.has_projection
        assert status.projection_failure == ProjectionFailureReason.NO_SCHEDULE_CONFIGURED
        assert tracker.goals.goal_history(child)[0].id == status.goal.id

    def test_zero_allowance_reported(self, tracker, child):
        """Test a zero allowance gives an invalid schedule reason."""
        tracker.profiles.update_allowance_schedule(child, "0", day_of_week=4)
        status = tracker.create_goal(child, "New bike", "40")
        assert status.projection_failure == ProjectionFailureReason.INVALID_SCHEDULE

    @pytest.mark.parametrize("target", ["0", "-5", "lots", "1e30"])
    def test_bad_target(self, tracker, child, target):
        """Test targets must be positive numbers."""
        with pytest.raises(InvalidTargetAmountError):
            tracker.create_goal(child, "New bike", target)


class TestGoalLifecycle:
    """Tests for edits and transitions."""

    def test_cancel_then_new_goal(self, tracker, funded):
        """Test a cancelled goal frees the slot and keeps its history."""
        first = tracker.create_goal(funded, "New bike", "40").goal
        cancelled = tracker.cancel_goal(funded)
        assert cancelled.id == first.id
        assert cancelled.state == GoalState.CANCELLED

        second = tracker.create_goal(funded, "Skateboard", "60").goal
        assert second.id != first.id

        history = tracker.goals.goal_history(funded)
        assert [(g.id, g.state) for g in history] == [
            (second.id, GoalState.ACTIVE),
            (first.id, GoalState.CANCELLED),
            (first.id, GoalState.ACTIVE),
        ]

    def test_cancel_without_goal(self, tracker, child):
        """Test cancelling nothing is an error."""
        with pytest.raises(NoActiveGoalError):
            tracker.cancel_goal(child)

    def test_update_target(self, tracker, funded):
        """Test an edit appends a row and re-projects."""
        tracker.create_goal(funded, "New bike", "40")
        status = tracker.goals.update_goal(funded, target_amount="50")

        assert status.goal.target_amount == Decimal("50.00")
        assert status.projection.cycles_needed == 7
        assert status.projection.projected_completion_date == date(2025, 3, 7)
        assert len(tracker.goals.goal_history(funded)) == 2

    def test_update_to_covered_target_rejected(self, tracker, funded):
        """Test an edit that the balance already covers writes nothing."""
        tracker.create_goal(funded, "New bike", "40")
        with pytest.raises(AlreadyAchievableError):
            tracker.goals.update_goal(funded, target_amount="10")
        assert len(tracker.goals.goal_history(funded)) == 1

    def test_deposit_completes_goal(self, tracker, funded):
        """Test reaching the target completes the goal."""
        goal = tracker.create_goal(funded, "New bike", "40").goal
        tracker.add_transaction(funded, "30", "Birthday money")

        latest = tracker.goals.goal_history(funded)[0]
        assert latest.id == goal.id
        assert latest.state == GoalState.COMPLETED
        with pytest.raises(NotFoundError):
            tracker.get_current_goal_with_projection(funded)

    def test_read_completes_goal_reached_elsewhere(self, tracker, funded, tmp_path):
        """Test a goal already reached on disk is completed when read."""
        tracker.create_goal(funded, "New bike", "40")
        storage = CsvTransactionStorage(CsvDataClient(tmp_path))
        ledger = storage.list_all(funded)
        ledger.append(Transaction(
            id="in-1737400000000-abcd",
            child_id=funded.id,
            amount=Decimal("100"),
            description="Lottery",
            occurred_at=datetime(2025, 1, 20, 11, 0, 0, tzinfo=EST),
        ))
        storage.replace_all(funded, recompute(ledger), "external edit")

        status = tracker.get_current_goal_with_projection(funded)
        assert status.goal.state == GoalState.COMPLETED
        assert status.projection_failure == ProjectionFailureReason.ALREADY_ACHIEVABLE
        assert status.current_balance == Decimal("115.50")

    def test_history_never_shrinks(self, tracker, funded, clock):
        """Test every goal operation only appends rows."""
        counts = []

        def record():
            counts.append(len(tracker.goals.goal_history(funded)))

        tracker.create_goal(funded, "New bike", "40")
        record()
        clock.advance(hours=1)
        tracker.goals.update_goal(funded, description="Red bike")
        record()
        tracker.cancel_goal(funded)
        record()
        tracker.create_goal(funded, "Helmet", "20")
        record()
        tracker.add_transaction(funded, "10", "Chores")
        record()

        assert counts == sorted(counts)
        assert counts[-1] == 5

    def test_projection_status(self, tracker, funded):
        """Test reading the Active goal re-projects from today."""
        tracker.create_goal(funded, "New bike", "40")
        status = tracker.get_current_goal_with_projection(funded)
        assert status.goal.state == GoalState.ACTIVE
        assert status.projection.cycles_needed == 5


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
