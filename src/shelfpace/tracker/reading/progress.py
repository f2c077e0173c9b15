"""Reading progress tracking and forecasting.

Updates a book's page/percent progress, turns recent sessions into a
reading pace with an ETA and a daily page target, and keeps the daily
rollups used by the stats overview.
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

import structlog

from ...utils import round_half_up, utc_now
from ..db.schemas import Book, BookStatus, ProgressForecast
from ..db.storage import Storage, get_storage
from ..exceptions import BookNotFoundError
from ..stats.schemas import DailyBookTotals, DailyTotals
from .state import ReadingStateCache

logger = structlog.get_logger(__name__)

# Number of most recent sessions the pace is computed from
FORECAST_WINDOW = 5

# Share of an hour the daily target assumes (30 minutes of reading)
DAILY_TARGET_HOURS = 0.5


class ProgressTracker:
    """Tracks and forecasts reading progress."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        state_cache: Optional[ReadingStateCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize progress tracker.

        Args:
            storage: Storage backend
            state_cache: Reading state cache (built on storage if omitted)
            clock: Returns the current UTC time
        """
        self.storage = storage or get_storage()
        self.state_cache = state_cache or ReadingStateCache(self.storage)
        self.clock = clock or utc_now

    def _get_book(self, book_id: str) -> Book:
        book = self.storage.get_book(book_id)
        if not book:
            raise BookNotFoundError(book_id)
        return book

    def update_book_progress(
        self,
        book_id: str,
        current_page: Optional[int] = None,
        progress_percent: Optional[float] = None,
    ) -> Book:
        """Set a book's current page and/or progress fraction.

        A current page is converted to a fraction of total_pages when the
        book has a page count. An explicit progress_percent wins over the
        page-derived value. Reaching 1.0 marks the book finished; nothing
        here ever moves a finished book back.

        Args:
            book_id: Book ID
            current_page: Page the reader is now on
            progress_percent: Progress as a fraction between 0 and 1

        Returns:
            The updated book

        Raises:
            BookNotFoundError: If the book does not exist
        """
        book = self._get_book(book_id)
        now = self.clock()

        if current_page is not None:
            book.current_page = current_page
            if book.total_pages and book.total_pages > 0:
                book.progress = min(1.0, current_page / book.total_pages)

        if progress_percent is not None:
            book.progress = progress_percent

        if book.progress >= 1:
            if book.status != BookStatus.FINISHED or book.completed_at is None:
                book.completed_at = now
            book.status = BookStatus.FINISHED
            logger.info("book_finished", book_id=book_id, title=book.title)

        book.last_read_at = now
        return self.storage.save_book(book)

    def calculate_progress(self, book_id: str) -> ProgressForecast:
        """Forecast pace, finish date and daily target from recent sessions.

        Looks at the FORECAST_WINDOW most recent sessions of the book and
        keeps those with a positive duration and pages read. The results
        are also written to the book's reading state.

        Args:
            book_id: Book ID

        Returns:
            ProgressForecast with average pages/hour, ETA (or None) and a
            daily page target of at least 1

        Raises:
            BookNotFoundError: If the book does not exist
        """
        book = self._get_book(book_id)
        now = self.clock()

        recent = self.storage.list_sessions(book_id)[:FORECAST_WINDOW]
        valid = [s for s in recent if s.duration and s.duration > 0 and s.pages_read]

        average_pph = 0.0
        if valid:
            total_pages = sum(s.pages_read for s in valid)
            total_hours = sum(s.duration for s in valid) / 60
            average_pph = total_pages / total_hours if total_hours > 0 else 0.0

        eta = None
        if book.total_pages and book.current_page and average_pph > 0:
            remaining_pages = max(0, book.total_pages - book.current_page)
            eta = now + timedelta(hours=remaining_pages / average_pph)

        daily_target = max(1, round_half_up(average_pph * DAILY_TARGET_HOURS))

        self.state_cache.update(
            book_id,
            average_pages_per_hour=average_pph,
            recent_sessions_count=len(valid),
            estimated_finish_date=eta,
            daily_page_target=daily_target,
            last_calculated_at=now,
        )
        logger.debug(
            "progress_calculated",
            book_id=book_id,
            average_pph=round(average_pph, 2),
            valid_sessions=len(valid),
            daily_target=daily_target,
        )
        return ProgressForecast(average_pph=average_pph, eta=eta, daily_target=daily_target)

    def record_daily_totals(
        self, book_id: str, day: date, pages: int = 0, minutes: int = 0
    ) -> None:
        """Add one session's pages and minutes to the daily rollups.

        Args:
            book_id: Book the session belongs to
            day: UTC date the session ended on
            pages: Pages read in the session
            minutes: Minutes read in the session
        """
        key = day.isoformat()

        totals = self.storage.get_daily_totals(key) or DailyTotals(date=key)
        totals.pages += pages
        totals.minutes += minutes
        totals.sessions += 1
        self.storage.save_daily_totals(totals)

        book_totals = self.storage.get_daily_book_totals(key, book_id) or DailyBookTotals(
            date=key, book_id=book_id
        )
        book_totals.pages += pages
        book_totals.minutes += minutes
        book_totals.sessions += 1
        self.storage.save_daily_book_totals(book_totals)

    def remove_daily_totals(
        self, book_id: str, day: date, pages: int = 0, minutes: int = 0
    ) -> None:
        """Take one deleted session back out of the daily rollups."""
        key = day.isoformat()

        totals = self.storage.get_daily_totals(key)
        if totals:
            totals.remove(pages, minutes)
            self.storage.save_daily_totals(totals)

        book_totals = self.storage.get_daily_book_totals(key, book_id)
        if book_totals:
            book_totals.remove(pages, minutes)
            self.storage.save_daily_book_totals(book_totals)
