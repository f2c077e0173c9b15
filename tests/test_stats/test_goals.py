"""Tests for reading goals."""

from datetime import datetime, timezone

import pytest

from shelfpace.tracker.stats.goals import GoalsManager
from shelfpace.tracker.stats.schemas import (
    GoalPeriod,
    GoalType,
    ReadingGoalCreate,
    ReadingGoalUpdate,
)


def goal_data(**overrides) -> ReadingGoalCreate:
    data = {
        "title": "Read 24 books",
        "goal_type": GoalType.BOOKS,
        "target": 24,
        "period": GoalPeriod.YEARLY,
        "start_date": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "end_date": datetime(2025, 12, 31, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return ReadingGoalCreate(**data)


@pytest.fixture
def goals(services) -> GoalsManager:
    """Get the goals manager of the test services."""
    return services.goals


class TestGoalType:
    """Tests for goal enums."""

    def test_values(self):
        """Test enum values used in JSON."""
        assert GoalType("pages") == GoalType.PAGES
        assert GoalPeriod("weekly") == GoalPeriod.WEEKLY


class TestGoalsManager:
    """Tests for GoalsManager."""

    def test_create_goal(self, goals: GoalsManager, clock):
        """Test creating a goal stamps both timestamps."""
        goal = goals.create_goal(goal_data())

        assert goal.id
        assert goal.current == 0
        assert goal.is_active is True
        assert goal.created_at == goal.updated_at == clock.now
        assert goals.get_goal(goal.id) == goal

    def test_list_newest_first(self, goals: GoalsManager, clock):
        """Test goals are listed newest first."""
        first = goals.create_goal(goal_data())
        clock.advance(minutes=1)
        second = goals.create_goal(goal_data(title="Pages", goal_type=GoalType.PAGES, target=5000))

        assert [g.id for g in goals.list_goals()] == [second.id, first.id]

    def test_list_active_only(self, goals: GoalsManager, clock):
        """Test inactive goals can be filtered out."""
        active = goals.create_goal(goal_data())
        clock.advance(minutes=1)
        goals.create_goal(goal_data(title="Old", is_active=False))

        assert [g.id for g in goals.list_goals(active_only=True)] == [active.id]

    def test_update_goal(self, goals: GoalsManager, clock):
        """Test updating a goal stamps updated_at."""
        goal = goals.create_goal(goal_data())
        clock.advance(hours=1)

        updated = goals.update_goal(goal.id, ReadingGoalUpdate(current=3))

        assert updated.current == 3
        assert updated.target == 24
        assert updated.created_at == goal.created_at
        assert updated.updated_at == clock.now

    def test_update_cannot_invert_dates(self, goals: GoalsManager):
        """Test the date order is checked on update too."""
        goal = goals.create_goal(goal_data())

        with pytest.raises(ValueError):
            goals.update_goal(
                goal.id, ReadingGoalUpdate(end_date=datetime(2024, 1, 1, tzinfo=timezone.utc))
            )

    def test_update_missing(self, goals: GoalsManager):
        """Test updating an unknown goal returns None."""
        assert goals.update_goal("missing", ReadingGoalUpdate(current=1)) is None

    def test_delete_goal(self, goals: GoalsManager):
        """Test deleting a goal."""
        goal = goals.create_goal(goal_data())

        assert goals.delete_goal(goal.id) is True
        assert goals.get_goal(goal.id) is None
        assert goals.delete_goal(goal.id) is False
