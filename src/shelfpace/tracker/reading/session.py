"""Reading session management.

Handles starting, pausing, resuming and stopping timed reading sessions,
plus quick page logging without a timer.

Session lifecycle::

    (none) --start--> active --pause--> paused --resume--> active
    active/paused --stop--> completed
    (none) --quick add--> completed

Only one pause interval is tracked: pausing again overwrites paused_at.
"""

import threading
import weakref
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from ...utils import round_half_up, utc_now
from ..db.schemas import (
    BookStatus,
    ReadingSession,
    ReadingSessionUpdate,
    SessionState,
    SessionType,
)
from ..db.storage import Storage, get_storage
from ..exceptions import BookNotFoundError, ConflictError, SessionNotFoundError
from .progress import ProgressTracker
from .state import ReadingStateCache

logger = structlog.get_logger(__name__)

ACTIVE_SESSION_CONFLICT = "Book already has an active session"


def session_duration_minutes(session: ReadingSession, now: datetime) -> int:
    """Minutes of actual reading in a session stopped at ``now``.

    A completed pause interval (resumed after paused) is subtracted. A
    pause that was never resumed ends the reading at paused_at.

    Example:
        Started 10:00, paused 10:10, resumed 10:15, stopped 10:20 -> 20 - 5 = 15
    """
    end = now
    paused_seconds = 0.0

    if session.paused_at is not None:
        if session.resumed_at is not None and session.resumed_at >= session.paused_at:
            paused_seconds = (session.resumed_at - session.paused_at).total_seconds()
        else:
            end = session.paused_at

    seconds = (end - session.started_at).total_seconds() - paused_seconds
    return max(0, round_half_up(seconds / 60))


class SessionManager:
    """Manages the reading session state machine."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        progress: Optional[ProgressTracker] = None,
        state_cache: Optional[ReadingStateCache] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize session manager.

        Args:
            storage: Storage backend
            progress: Progress tracker used after stops and quick adds
            state_cache: Reading state cache
            clock: Returns the current UTC time
        """
        self.storage = storage or get_storage()
        self.clock = clock or utc_now
        self.state_cache = state_cache or ReadingStateCache(self.storage)
        self.progress = progress or ProgressTracker(
            self.storage, state_cache=self.state_cache, clock=self.clock
        )
        # Held only while a start is in progress, then dropped
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _book_lock(self, book_id: str) -> threading.Lock:
        """Get the lock serializing session starts for one book."""
        with self._locks_guard:
            lock = self._locks.get(book_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[book_id] = lock
            return lock

    def _require_session(self, session_id: str, states: tuple, message: str) -> ReadingSession:
        session = self.storage.get_session(session_id)
        if not session or session.state not in states:
            raise SessionNotFoundError(session_id, message=message)
        return session

    # ========================================================================
    # State Machine
    # ========================================================================

    def start_session(
        self,
        book_id: str,
        start_page: Optional[int] = None,
        pomodoro_minutes: Optional[int] = None,
    ) -> ReadingSession:
        """Start a timed reading session.

        Args:
            book_id: ID of the book being read
            start_page: Page starting from. Defaults to the end page of the
                book's last session, then the book's current page.
            pomodoro_minutes: Optional focus timer length (5-120)

        Returns:
            The new active session

        Raises:
            BookNotFoundError: If the book does not exist
            ConflictError: If the book already has an active or paused session
        """
        with self._book_lock(book_id):
            book = self.storage.get_book(book_id)
            if not book:
                raise BookNotFoundError(book_id)

            if self.storage.find_open_session(book_id):
                logger.warning("session_start_conflict", book_id=book_id)
                raise ConflictError(ACTIVE_SESSION_CONFLICT)

            now = self.clock()

            if start_page is None:
                previous = self.storage.list_sessions(book_id)
                if previous and previous[0].end_page is not None:
                    start_page = previous[0].end_page
                else:
                    start_page = book.current_page or 0

            session = self.storage.save_session(
                ReadingSession(
                    book_id=book_id,
                    started_at=now,
                    start_page=start_page,
                    pages_read=0,
                    state=SessionState.ACTIVE,
                    session_type=SessionType.TIMED,
                    pomodoro_minutes=pomodoro_minutes,
                    session_date=now,
                )
            )

            book.status = BookStatus.READING
            book.last_read_at = now
            if book.started_at is None:
                book.started_at = now
            self.storage.save_book(book)

            self.state_cache.update(book_id, active_session_id=session.id, last_session_at=now)

        logger.info(
            "session_started", session_id=session.id, book_id=book_id, start_page=start_page
        )
        return session

    def pause_session(self, session_id: str) -> ReadingSession:
        """Pause an active session.

        Raises:
            SessionNotFoundError: If the session is missing or not active
        """
        session = self._require_session(
            session_id, (SessionState.ACTIVE,), "Session not found or not active"
        )
        session.state = SessionState.PAUSED
        session.paused_at = self.clock()
        session = self.storage.save_session(session)
        logger.info("session_paused", session_id=session_id, book_id=session.book_id)
        return session

    def resume_session(self, session_id: str) -> ReadingSession:
        """Resume a paused session.

        Raises:
            SessionNotFoundError: If the session is missing or not paused
        """
        session = self._require_session(
            session_id, (SessionState.PAUSED,), "Session not found or not paused"
        )
        session.state = SessionState.ACTIVE
        session.resumed_at = self.clock()
        session = self.storage.save_session(session)
        logger.info("session_resumed", session_id=session_id, book_id=session.book_id)
        return session

    def stop_session(
        self,
        session_id: str,
        end_page: Optional[int] = None,
        session_notes: Optional[str] = None,
    ) -> ReadingSession:
        """Stop an active or paused session.

        Computes duration and pages read, moves the book's progress to
        end_page, clears the active session pointer, adds the session to
        the daily rollups and refreshes the book's forecast.

        Args:
            session_id: Session ID
            end_page: Page the reader stopped on
            session_notes: Notes for the session

        Returns:
            The completed session

        Raises:
            SessionNotFoundError: If the session is missing or already completed
        """
        session = self._require_session(
            session_id,
            (SessionState.ACTIVE, SessionState.PAUSED),
            "Session not found or not active/paused",
        )
        now = self.clock()

        pages_read = 0
        if end_page is not None and session.start_page is not None:
            pages_read = max(0, end_page - session.start_page)

        session.state = SessionState.COMPLETED
        session.ended_at = now
        session.duration = session_duration_minutes(session, now)
        session.end_page = end_page
        session.pages_read = pages_read
        if session_notes is not None:
            session.session_notes = session_notes
        session = self.storage.save_session(session)

        book_id = session.book_id
        if end_page is not None:
            self.progress.update_book_progress(book_id, current_page=end_page)

        self.state_cache.update(book_id, active_session_id=None, last_session_at=now)
        self.progress.record_daily_totals(
            book_id,
            now.astimezone(timezone.utc).date(),
            pages=pages_read,
            minutes=session.duration,
        )
        self.progress.calculate_progress(book_id)

        logger.info(
            "session_stopped",
            session_id=session_id,
            book_id=book_id,
            pages_read=pages_read,
            duration=session.duration,
        )
        return session

    def quick_add_pages(
        self, book_id: str, pages_read: int, session_notes: Optional[str] = None
    ) -> ReadingSession:
        """Log pages read without a timer.

        Does not look at (or stop) an active timed session of the same book.

        Args:
            book_id: ID of the book read
            pages_read: Pages read since the book's current page
            session_notes: Optional notes

        Returns:
            The completed quick session

        Raises:
            BookNotFoundError: If the book does not exist
        """
        book = self.storage.get_book(book_id)
        if not book:
            raise BookNotFoundError(book_id)

        now = self.clock()
        start_page = book.current_page or 0
        end_page = start_page + pages_read

        session = self.storage.save_session(
            ReadingSession(
                book_id=book_id,
                started_at=now,
                ended_at=now,
                start_page=start_page,
                end_page=end_page,
                pages_read=pages_read,
                state=SessionState.COMPLETED,
                session_type=SessionType.QUICK,
                session_date=now,
                session_notes=session_notes,
            )
        )

        self.progress.update_book_progress(book_id, current_page=end_page)
        self.state_cache.update(book_id, last_session_at=now)
        self.progress.record_daily_totals(
            book_id, now.astimezone(timezone.utc).date(), pages=pages_read
        )

        logger.info("pages_quick_added", session_id=session.id, book_id=book_id, pages=pages_read)
        return session

    # ========================================================================
    # Queries and Plumbing
    # ========================================================================

    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        """Get a session by ID, None if not found."""
        return self.storage.get_session(session_id)

    def list_book_sessions(
        self,
        book_id: str,
        state: Optional[SessionState] = None,
        session_type: Optional[SessionType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[ReadingSession]:
        """List a book's sessions, newest first.

        Args:
            book_id: Book ID
            state: Only sessions in this state
            session_type: Only timed or only quick sessions
            start: Only sessions dated at or after this time
            end: Only sessions dated at or before this time
            limit: Maximum results to return
        """
        sessions = self.storage.list_sessions(book_id)
        if state is not None:
            sessions = [s for s in sessions if s.state == state]
        if session_type is not None:
            sessions = [s for s in sessions if s.session_type == session_type]
        if start is not None:
            sessions = [s for s in sessions if s.session_date >= start]
        if end is not None:
            sessions = [s for s in sessions if s.session_date <= end]
        if limit is not None:
            sessions = sessions[:limit]
        return sessions

    def recent_sessions(self, limit: int = 10) -> list[ReadingSession]:
        """Most recent sessions across all books."""
        return self.storage.list_sessions()[:limit]

    def get_active_session(self, book_id: str) -> Optional[ReadingSession]:
        """Get the active or paused session of a book, if any."""
        return self.storage.find_open_session(book_id)

    def active_sessions(self) -> list[ReadingSession]:
        """All active or paused sessions."""
        return [s for s in self.storage.list_sessions() if s.is_open]

    def update_session(
        self, session_id: str, update: ReadingSessionUpdate
    ) -> Optional[ReadingSession]:
        """Edit a session's pages, duration or notes.

        State and timing fields are not editable here.

        Returns:
            Updated session or None if not found
        """
        session = self.storage.get_session(session_id)
        if not session:
            return None

        changes = update.model_dump(exclude_unset=True)
        updated = ReadingSession.model_validate({**session.model_dump(), **changes})
        logger.info("session_updated", session_id=session_id, fields=sorted(changes))
        return self.storage.save_session(updated)

    def delete_session(self, session_id: str) -> bool:
        """Delete a session.

        Deleting a book's open session also clears its active session pointer.
        A completed session is taken back out of the daily rollups of the
        day it ended on.

        Returns:
            True if deleted, False if not found
        """
        session = self.storage.get_session(session_id)
        if not session:
            return False

        self.storage.delete_session(session_id)
        if session.state == SessionState.COMPLETED and session.ended_at is not None:
            self.progress.remove_daily_totals(
                session.book_id,
                session.ended_at.astimezone(timezone.utc).date(),
                pages=session.pages_read,
                minutes=session.duration or 0,
            )
        state = self.state_cache.get(session.book_id)
        if state and state.active_session_id == session_id:
            self.state_cache.update(session.book_id, active_session_id=None)

        logger.info("session_deleted", session_id=session_id, book_id=session.book_id)
        return True
