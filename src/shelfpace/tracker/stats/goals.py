"""Reading goal management."""

from datetime import datetime
from typing import Callable, Optional

import structlog

from ...utils import utc_now
from ..db.storage import Storage, get_storage
from .schemas import ReadingGoal, ReadingGoalCreate, ReadingGoalUpdate

logger = structlog.get_logger(__name__)


class GoalsManager:
    """Creates, updates and removes reading goals."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize goals manager.

        Args:
            storage: Storage backend
            clock: Returns the current UTC time
        """
        self.storage = storage or get_storage()
        self.clock = clock or utc_now

    def list_goals(self, active_only: bool = False) -> list[ReadingGoal]:
        """List goals, newest first."""
        goals = self.storage.list_goals()
        if active_only:
            goals = [g for g in goals if g.is_active]
        return goals

    def get_goal(self, goal_id: str) -> Optional[ReadingGoal]:
        """Get a goal by ID, None if not found."""
        return self.storage.get_goal(goal_id)

    def create_goal(self, data: ReadingGoalCreate) -> ReadingGoal:
        """Create a reading goal.

        Args:
            data: Goal creation data

        Returns:
            Created goal
        """
        now = self.clock()
        goal = self.storage.save_goal(
            ReadingGoal(**data.model_dump(), created_at=now, updated_at=now)
        )
        logger.info(
            "goal_created",
            goal_id=goal.id,
            goal_type=goal.goal_type.value,
            target=goal.target,
        )
        return goal

    def update_goal(self, goal_id: str, data: ReadingGoalUpdate) -> Optional[ReadingGoal]:
        """Update a goal and stamp updated_at.

        Returns:
            Updated goal or None if not found
        """
        goal = self.storage.get_goal(goal_id)
        if not goal:
            return None

        updated = ReadingGoal.model_validate(
            {
                **goal.model_dump(),
                **data.model_dump(exclude_unset=True),
                "updated_at": self.clock(),
            }
        )
        return self.storage.save_goal(updated)

    def delete_goal(self, goal_id: str) -> bool:
        """Delete a goal.

        Returns:
            True if deleted
        """
        deleted = self.storage.delete_goal(goal_id)
        if deleted:
            logger.info("goal_deleted", goal_id=goal_id)
        return deleted
