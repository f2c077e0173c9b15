"""Reading analytics.

Per-book totals, per-day session summaries and the stats overview built
from the daily rollups.
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from ...utils import date_range, parse_iso_date, round_half_up, utc_now
from ..db.schemas import BookStatus, SessionState
from ..db.storage import Storage, get_storage
from ..exceptions import ValidationError
from ..reading.progress import ProgressTracker
from .schemas import (
    ActiveEta,
    DailyReadingStats,
    DailyTotals,
    DateRange,
    FinishedBook,
    HeatmapDay,
    OverviewGoals,
    OverviewTotals,
    ReadingStats,
    SparkPoint,
    StatsOverview,
    Streak,
)

logger = structlog.get_logger(__name__)

# Default overview range, in days before today
DEFAULT_RANGE_DAYS = 30

# How far back the current streak is counted
STREAK_LOOKBACK_DAYS = 365

# A day counts towards a streak with at least this much reading
STREAK_MIN_PAGES = 1
STREAK_MIN_MINUTES = 5


def parse_range_date(value: Optional[str]) -> Optional[date]:
    """Parse an optional YYYY-MM-DD query value.

    Raises:
        ValidationError: If a value is given but is not a real date
    """
    if value is None or value == "":
        return None
    parsed = parse_iso_date(value)
    if parsed is None:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")
    return parsed


def is_read_day(day: DailyTotals) -> bool:
    """Whether a day had enough reading to keep a streak alive."""
    return day.pages >= STREAK_MIN_PAGES or day.minutes >= STREAK_MIN_MINUTES


class ReadingAnalytics:
    """Computes reading statistics."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        progress: Optional[ProgressTracker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize analytics.

        Args:
            storage: Storage backend
            progress: Progress tracker used for active book forecasts
            clock: Returns the current UTC time
        """
        self.storage = storage or get_storage()
        self.clock = clock or utc_now
        self.progress = progress or ProgressTracker(self.storage, clock=self.clock)

    def today(self) -> date:
        """Current UTC date."""
        return self.clock().astimezone(timezone.utc).date()

    def get_reading_stats(self, book_id: str) -> ReadingStats:
        """Totals over a book's completed sessions.

        The last session date considers sessions in any state.
        """
        sessions = self.storage.list_sessions(book_id)
        completed = [s for s in sessions if s.state == SessionState.COMPLETED]

        total_minutes = sum(s.duration or 0 for s in completed)
        total_pages = sum(s.pages_read or 0 for s in completed)

        return ReadingStats(
            total_sessions=len(completed),
            total_minutes=total_minutes,
            total_pages=total_pages,
            average_pages_per_hour=total_pages / total_minutes * 60 if total_minutes else 0.0,
            last_session_date=sessions[0].session_date if sessions else None,
        )

    def get_daily_reading_stats(self, day: date) -> DailyReadingStats:
        """Summarize the completed sessions dated on one UTC day."""
        sessions = [
            s
            for s in self.storage.list_sessions()
            if s.state == SessionState.COMPLETED
            and s.session_date.astimezone(timezone.utc).date() == day
        ]
        return DailyReadingStats(
            date=day,
            sessions_count=len(sessions),
            total_minutes=sum(s.duration or 0 for s in sessions),
            total_pages=sum(s.pages_read or 0 for s in sessions),
            books_read=list(dict.fromkeys(s.book_id for s in sessions)),
        )

    def _zero_filled(self, start: date, end: date) -> list[DailyTotals]:
        """Daily totals for every day in the range, missing days as zeros."""
        by_day = {t.date: t for t in self.storage.list_daily_totals(start, end)}
        return [
            by_day.get(d.isoformat()) or DailyTotals(date=d.isoformat())
            for d in date_range(start, end)
        ]

    def _streaks(self, days: list[DailyTotals], end: date) -> Streak:
        # Current streak counts back from the end of the range
        current = 0
        lookback = self._zero_filled(end - timedelta(days=STREAK_LOOKBACK_DAYS), end)
        for day in reversed(lookback):
            if not is_read_day(day):
                break
            current += 1

        best = run = 0
        for day in days:
            run = run + 1 if is_read_day(day) else 0
            best = max(best, run)

        return Streak(current=current, best=best)

    def _finished_books(self, start: date, end: date) -> list[FinishedBook]:
        finished = []
        for book in self.storage.list_books():
            if book.status != BookStatus.FINISHED or book.completed_at is None:
                continue
            completed_day = book.completed_at.astimezone(timezone.utc).date()
            if not start <= completed_day <= end:
                continue

            days_to_finish = 0
            if book.started_at:
                elapsed = book.completed_at - book.started_at
                days_to_finish = math.ceil(elapsed.total_seconds() / 86400)

            finished.append(
                (
                    book.completed_at,
                    FinishedBook(
                        id=book.id,
                        title=book.title,
                        days_to_finish=days_to_finish,
                        avg_pph=self.get_reading_stats(book.id).average_pages_per_hour,
                    ),
                )
            )

        finished.sort(key=lambda pair: pair[0], reverse=True)
        return [item for _, item in finished]

    def _active_etas(self) -> list[ActiveEta]:
        etas = []
        for book in self.storage.list_books():
            if book.status != BookStatus.READING:
                continue
            forecast = self.progress.calculate_progress(book.id)
            progress_pct = 0
            if book.total_pages:
                progress_pct = round_half_up((book.current_page or 0) / book.total_pages * 100)
            etas.append(
                ActiveEta(
                    book_id=book.id,
                    title=book.title,
                    progress_pct=progress_pct,
                    eta_date=forecast.eta.date().isoformat() if forecast.eta else None,
                    bite_pages=forecast.daily_target or 1,
                )
            )
        return etas

    def get_overview(
        self, range_from: Optional[date] = None, range_to: Optional[date] = None
    ) -> StatsOverview:
        """Build the stats overview for a date range.

        Args:
            range_from: First day (default: 30 days before today)
            range_to: Last day (default and maximum: today)

        Returns:
            StatsOverview with totals, streaks, goals, daily series,
            finished books and active book forecasts

        Raises:
            ValidationError: If range_from is after the (clamped) range_to
        """
        today = self.today()
        start = range_from or today - timedelta(days=DEFAULT_RANGE_DAYS)
        end = min(range_to or today, today)
        if start > end:
            raise ValidationError("From date must be before or equal to to date.")

        days = self._zero_filled(start, end)
        totals = OverviewTotals(
            pages=sum(d.pages for d in days),
            minutes=sum(d.minutes for d in days),
            sessions=sum(d.sessions for d in days),
        )

        avg_pages_per_day = totals.pages / max(1, len(days))
        avg_minutes_per_day = totals.minutes / max(1, len(days))
        goals = OverviewGoals(
            target_pages=round_half_up(avg_pages_per_day * 30),
            target_minutes=round_half_up(avg_minutes_per_day * 30),
            bite_target_per_day=max(1, round_half_up(avg_pages_per_day)),
        )

        overview = StatsOverview(
            totals=totals,
            goals=goals,
            streak=self._streaks(days, end),
            finished_books=self._finished_books(start, end),
            active_etas=self._active_etas(),
            sparkline=[SparkPoint(date=d.date, pages=d.pages) for d in days],
            heatmap=[HeatmapDay(date=d.date, pages=d.pages, minutes=d.minutes) for d in days],
            range=DateRange(range_from=start.isoformat(), range_to=end.isoformat()),
        )
        logger.debug(
            "stats_overview_built",
            range_from=start.isoformat(),
            range_to=end.isoformat(),
            pages=totals.pages,
        )
        return overview
