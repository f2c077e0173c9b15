"""Pydantic schemas for daily rollups, reading goals and statistics."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from ...utils import generate_uuid, utc_now
from ..db.schemas import CamelModel


# ============================================================================
# Daily Rollups
# ============================================================================


class DailyTotals(CamelModel):
    """Pages, minutes and sessions summed over one UTC day."""

    date: str = Field(..., description="ISO date YYYY-MM-DD")
    pages: int = 0
    minutes: int = 0
    sessions: int = 0

    def remove(self, pages: int = 0, minutes: int = 0, sessions: int = 1) -> None:
        """Take reading back out of the totals, never going below zero."""
        self.pages = max(0, self.pages - pages)
        self.minutes = max(0, self.minutes - minutes)
        self.sessions = max(0, self.sessions - sessions)


class DailyBookTotals(DailyTotals):
    """Daily totals restricted to one book."""

    book_id: str


# ============================================================================
# Reading Goals
# ============================================================================


class GoalType(str, Enum):
    """What a goal counts."""

    BOOKS = "books"
    PAGES = "pages"
    MINUTES = "minutes"


class GoalPeriod(str, Enum):
    """How often a goal resets."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ReadingGoalBase(CamelModel):
    """Shared reading goal fields."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    goal_type: GoalType
    target: int = Field(..., gt=0)
    current: int = Field(0, ge=0)
    period: GoalPeriod
    start_date: datetime
    end_date: datetime
    is_active: bool = True

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class ReadingGoalCreate(ReadingGoalBase):
    """Schema for creating a goal."""

    pass


class ReadingGoal(ReadingGoalBase):
    """A stored goal."""

    id: str = Field(default_factory=generate_uuid)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ReadingGoalUpdate(CamelModel):
    """Schema for updating a goal."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    goal_type: Optional[GoalType] = None
    target: Optional[int] = Field(None, gt=0)
    current: Optional[int] = Field(None, ge=0)
    period: Optional[GoalPeriod] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_active: Optional[bool] = None


# ============================================================================
# Statistics
# ============================================================================


class ReadingStats(CamelModel):
    """Totals over every completed session of one book."""

    total_sessions: int = 0
    total_minutes: int = 0
    total_pages: int = 0
    average_pages_per_hour: float = 0.0
    last_session_date: Optional[datetime] = None


class DailyReadingStats(CamelModel):
    """Completed sessions on one UTC day."""

    date: date
    sessions_count: int = 0
    total_minutes: int = 0
    total_pages: int = 0
    books_read: list[str] = Field(default_factory=list)


class OverviewTotals(CamelModel):
    pages: int = 0
    minutes: int = 0
    sessions: int = 0


class OverviewGoals(CamelModel):
    """Targets extrapolated from the pace over the range."""

    target_pages: int = 0  # 30 days at the range's pages/day
    target_minutes: int = 0
    bite_target_per_day: int = 1


class Streak(CamelModel):
    current: int = 0
    best: int = 0


class FinishedBook(CamelModel):
    id: str
    title: str
    days_to_finish: int = 0
    avg_pph: float = 0.0


class ActiveEta(CamelModel):
    book_id: str
    title: str
    progress_pct: int = 0
    eta_date: Optional[str] = None
    bite_pages: int = 1


class SparkPoint(CamelModel):
    date: str
    pages: int = 0


class HeatmapDay(CamelModel):
    date: str
    pages: int = 0
    minutes: int = 0


class DateRange(CamelModel):
    range_from: str = Field(..., serialization_alias="from")
    range_to: str = Field(..., serialization_alias="to")


class StatsOverview(CamelModel):
    """Everything the stats dashboard shows for a date range."""

    totals: OverviewTotals
    goals: OverviewGoals
    streak: Streak
    finished_books: list[FinishedBook] = Field(default_factory=list)
    active_etas: list[ActiveEta] = Field(default_factory=list)
    sparkline: list[SparkPoint] = Field(default_factory=list)
    heatmap: list[HeatmapDay] = Field(default_factory=list)
    range: DateRange
