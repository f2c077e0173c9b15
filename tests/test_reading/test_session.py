"""Tests for reading session management."""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from shelfpace.tracker.db.schemas import (
    Book,
    BookCreate,
    BookGenre,
    BookStatus,
    BookUpdate,
    ReadingSession,
    ReadingSessionUpdate,
    SessionState,
    SessionType,
)
from shelfpace.tracker.exceptions import BookNotFoundError, ConflictError, SessionNotFoundError
from shelfpace.tracker.reading.session import SessionManager, session_duration_minutes
from shelfpace.tracker.web.helpers import Services

START = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


class TestSessionDuration:
    """Tests for session_duration_minutes."""

    def test_no_pause(self):
        """Test duration of an uninterrupted session."""
        session = ReadingSession(book_id="b", started_at=START)
        assert session_duration_minutes(session, START + timedelta(minutes=25)) == 25

    def test_completed_pause_is_subtracted(self):
        """Test a paused-then-resumed interval is not counted."""
        session = ReadingSession(
            book_id="b",
            started_at=START,
            paused_at=START + timedelta(minutes=10),
            resumed_at=START + timedelta(minutes=15),
        )
        assert session_duration_minutes(session, START + timedelta(minutes=20)) == 15

    def test_unresumed_pause_truncates(self):
        """Test a session paused and never resumed stops counting at the pause."""
        session = ReadingSession(
            book_id="b",
            started_at=START,
            paused_at=START + timedelta(minutes=10),
        )
        assert session_duration_minutes(session, START + timedelta(hours=2)) == 10

    def test_rounds_half_up(self):
        """Test 90 seconds rounds to 2 minutes."""
        session = ReadingSession(book_id="b", started_at=START)
        assert session_duration_minutes(session, START + timedelta(seconds=90)) == 2

    def test_never_negative(self):
        """Test a clock before the start gives zero."""
        session = ReadingSession(book_id="b", started_at=START)
        assert session_duration_minutes(session, START - timedelta(minutes=5)) == 0


class TestStartSession:
    """Tests for SessionManager.start_session."""

    def test_start_uses_current_page(self, services: Services, book: Book):
        """Test a first session starts from the book's current page."""
        session = services.sessions.start_session(book.id)

        assert session.state == SessionState.ACTIVE
        assert session.session_type == SessionType.TIMED
        assert session.start_page == 50
        assert session.started_at == START
        assert session.pages_read == 0

    def test_start_with_explicit_page(self, services: Services, book: Book):
        """Test an explicit start page wins."""
        session = services.sessions.start_session(book.id, start_page=120, pomodoro_minutes=25)
        assert session.start_page == 120
        assert session.pomodoro_minutes == 25

    def test_start_resumes_from_last_end_page(
        self, services: Services, book: Book, clock
    ):
        """Test the last session's end page wins over the book's current page."""
        first = services.sessions.start_session(book.id)
        clock.advance(minutes=20)
        services.sessions.stop_session(first.id, end_page=80)
        services.library.update_book(book.id, BookUpdate(current_page=100))

        clock.advance(hours=1)
        second = services.sessions.start_session(book.id)
        assert second.start_page == 80

    def test_start_falls_back_when_last_end_page_missing(
        self, services: Services, book: Book, clock
    ):
        """Test a last session without end page falls back to the current page."""
        first = services.sessions.start_session(book.id)
        clock.advance(minutes=20)
        services.sessions.stop_session(first.id)

        clock.advance(minutes=1)
        second = services.sessions.start_session(book.id)
        assert second.start_page == 50

    def test_start_defaults_to_zero(self, services: Services):
        """Test a book without a current page starts at page 0."""
        book = services.library.create_book(
            BookCreate(title="Audio", author="Someone", genre=BookGenre.FICTION)
        )
        assert services.sessions.start_session(book.id).start_page == 0

    def test_start_updates_book_and_state(self, services: Services, book: Book):
        """Test starting marks the book as reading and sets the active pointer."""
        session = services.sessions.start_session(book.id)

        updated = services.library.get_book(book.id)
        assert updated.status == BookStatus.READING
        assert updated.last_read_at == START
        assert updated.started_at == START

        state = services.state_cache.get(book.id)
        assert state.active_session_id == session.id
        assert state.last_session_at == START

    def test_start_keeps_original_started_at(
        self, services: Services, book: Book, clock
    ):
        """Test started_at is only set by the first session."""
        first = services.sessions.start_session(book.id)
        clock.advance(minutes=30)
        services.sessions.stop_session(first.id, end_page=60)
        clock.advance(days=1)
        services.sessions.start_session(book.id)

        assert services.library.get_book(book.id).started_at == START

    def test_start_missing_book(self, services: Services):
        """Test starting a session for an unknown book."""
        with pytest.raises(BookNotFoundError) as exc_info:
            services.sessions.start_session("missing")
        assert exc_info.value.status_code == 404

    def test_conflicting_start(self, services: Services, book: Book):
        """Test a second start fails and creates no second session."""
        services.sessions.start_session(book.id)

        with pytest.raises(ConflictError) as exc_info:
            services.sessions.start_session(book.id)

        assert exc_info.value.message == "Book already has an active session"
        assert exc_info.value.status_code == 409
        assert len(services.sessions.list_book_sessions(book.id)) == 1

    def test_paused_session_also_conflicts(self, services: Services, book: Book):
        """Test a paused session still blocks a new start."""
        session = services.sessions.start_session(book.id)
        services.sessions.pause_session(session.id)

        with pytest.raises(ConflictError):
            services.sessions.start_session(book.id)

    def test_other_books_do_not_conflict(self, services: Services, multiple_books: list[Book]):
        """Test each book has its own active session."""
        for b in multiple_books:
            services.sessions.start_session(b.id)
        assert len(services.sessions.active_sessions()) == 3

    def test_concurrent_starts_allow_one(self, services: Services, book: Book):
        """Test simultaneous starts on one book yield exactly one session."""
        results = []
        barrier = threading.Barrier(5)

        def attempt():
            barrier.wait()
            try:
                services.sessions.start_session(book.id)
                results.append("ok")
            except ConflictError:
                results.append("conflict")

        threads = [threading.Thread(target=attempt) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count("ok") == 1
        assert results.count("conflict") == 4
        assert len(services.sessions.list_book_sessions(book.id)) == 1

    def test_start_after_same_instant_quick_adds(self, services: Services, book: Book):
        """Test a start follows the latest of sessions logged at the same instant."""
        services.sessions.quick_add_pages(book.id, 10)
        services.sessions.quick_add_pages(book.id, 10)

        session = services.sessions.start_session(book.id)

        assert services.library.get_book(book.id).current_page == 70
        assert session.start_page == 70

    def test_book_locks_are_released(self, services: Services, book: Book):
        """Test no per-book lock is kept once a start has finished."""
        services.sessions.start_session(book.id)

        assert book.id not in services.sessions._locks


class TestPauseResume:
    """Tests for pausing and resuming sessions."""

    def test_pause(self, services: Services, book: Book, clock):
        """Test pausing an active session."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=10)

        paused = services.sessions.pause_session(session.id)
        assert paused.state == SessionState.PAUSED
        assert paused.paused_at == START + timedelta(minutes=10)

    def test_pause_twice_fails(self, services: Services, book: Book):
        """Test pausing an already paused session is a not-found failure."""
        session = services.sessions.start_session(book.id)
        services.sessions.pause_session(session.id)

        with pytest.raises(SessionNotFoundError) as exc_info:
            services.sessions.pause_session(session.id)

        assert exc_info.value.message == "Session not found or not active"
        assert services.sessions.get_session(session.id).state == SessionState.PAUSED

    def test_pause_missing_session(self, services: Services):
        """Test pausing an unknown session."""
        with pytest.raises(SessionNotFoundError):
            services.sessions.pause_session("missing")

    def test_resume(self, services: Services, book: Book, clock):
        """Test resuming a paused session."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=10)
        services.sessions.pause_session(session.id)
        clock.advance(minutes=5)

        resumed = services.sessions.resume_session(session.id)
        assert resumed.state == SessionState.ACTIVE
        assert resumed.resumed_at == START + timedelta(minutes=15)

    def test_resume_active_fails(self, services: Services, book: Book):
        """Test resuming a session that is not paused."""
        session = services.sessions.start_session(book.id)

        with pytest.raises(SessionNotFoundError) as exc_info:
            services.sessions.resume_session(session.id)
        assert exc_info.value.message == "Session not found or not paused"

    def test_completed_session_cannot_be_paused(
        self, services: Services, book: Book, clock
    ):
        """Test completed is terminal."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=5)
        services.sessions.stop_session(session.id, end_page=55)

        with pytest.raises(SessionNotFoundError):
            services.sessions.pause_session(session.id)
        with pytest.raises(SessionNotFoundError):
            services.sessions.resume_session(session.id)


class TestStopSession:
    """Tests for SessionManager.stop_session."""

    def test_start_stop_round_trip(self, services: Services, book: Book, clock):
        """Test stopping moves the book to the end page and keeps it reading."""
        session = services.sessions.start_session(book.id)
        assert session.start_page == 50

        clock.advance(minutes=30)
        stopped = services.sessions.stop_session(session.id, end_page=80, session_notes="Good")

        assert stopped.state == SessionState.COMPLETED
        assert stopped.pages_read == 30
        assert stopped.end_page == 80
        assert stopped.duration == 30
        assert stopped.ended_at == START + timedelta(minutes=30)
        assert stopped.session_notes == "Good"

        updated = services.library.get_book(book.id)
        assert updated.current_page == 80
        assert updated.progress == pytest.approx(0.267, abs=1e-3)
        assert updated.status == BookStatus.READING

    def test_pause_resume_duration(self, services: Services, book: Book, clock):
        """Test 20 elapsed minutes with a 5 minute pause count 15 minutes."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=10)
        services.sessions.pause_session(session.id)
        clock.advance(minutes=5)
        services.sessions.resume_session(session.id)
        clock.advance(minutes=5)

        stopped = services.sessions.stop_session(session.id, end_page=70)

        assert stopped.duration == 15
        elapsed = (stopped.ended_at - stopped.started_at).total_seconds() / 60
        assert stopped.duration <= elapsed

    def test_stop_while_paused(self, services: Services, book: Book, clock):
        """Test stopping a paused session counts time up to the pause."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=12)
        services.sessions.pause_session(session.id)
        clock.advance(hours=3)

        stopped = services.sessions.stop_session(session.id, end_page=60)
        assert stopped.duration == 12

    def test_second_pause_overwrites_first(
        self, services: Services, book: Book, clock
    ):
        """Test only the latest pause is tracked."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=5)
        services.sessions.pause_session(session.id)
        clock.advance(minutes=5)
        services.sessions.resume_session(session.id)
        clock.advance(minutes=10)
        services.sessions.pause_session(session.id)
        clock.advance(minutes=20)

        # Reading ends at the second pause, the first pause is forgotten
        stopped = services.sessions.stop_session(session.id)
        assert stopped.duration == 20

    def test_pages_read_never_negative(self, services: Services, book: Book, clock):
        """Test an end page before the start page reads zero pages."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=10)

        stopped = services.sessions.stop_session(session.id, end_page=40)
        assert stopped.pages_read == 0
        assert services.library.get_book(book.id).current_page == 40

    def test_stop_without_end_page(self, services: Services, book: Book, clock):
        """Test a session completes with no progress when no end page is given."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=10)

        stopped = services.sessions.stop_session(session.id)

        assert stopped.state == SessionState.COMPLETED
        assert stopped.pages_read == 0
        assert stopped.end_page is None
        assert services.library.get_book(book.id).current_page == 50

    def test_stop_twice_fails(self, services: Services, book: Book, clock):
        """Test stopping a completed session."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=10)
        services.sessions.stop_session(session.id, end_page=60)

        with pytest.raises(SessionNotFoundError) as exc_info:
            services.sessions.stop_session(session.id, end_page=70)
        assert exc_info.value.message == "Session not found or not active/paused"

    def test_stop_updates_state_and_forecast(
        self, services: Services, book: Book, clock
    ):
        """Test stopping clears the pointer and refreshes the forecast."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=30)
        services.sessions.stop_session(session.id, end_page=80)

        state = services.state_cache.get(book.id)
        assert state.active_session_id is None
        assert state.last_session_at == START + timedelta(minutes=30)
        assert state.average_pages_per_hour == pytest.approx(60.0)
        assert state.recent_sessions_count == 1
        assert state.daily_page_target == 30
        assert state.estimated_finish_date == clock.now + timedelta(hours=220 / 60)

    def test_stop_records_daily_totals(
        self, services: Services, book: Book, clock, storage
    ):
        """Test a stopped session is added to the daily rollups."""
        session = services.sessions.start_session(book.id)
        clock.advance(minutes=30)
        services.sessions.stop_session(session.id, end_page=80)

        totals = storage.get_daily_totals("2025-01-15")
        assert (totals.pages, totals.minutes, totals.sessions) == (30, 30, 1)
        book_totals = storage.get_daily_book_totals("2025-01-15", book.id)
        assert (book_totals.pages, book_totals.minutes, book_totals.sessions) == (30, 30, 1)

    def test_stop_to_last_page_finishes_book(
        self, services: Services, book: Book, clock
    ):
        """Test reaching the last page marks the book finished."""
        session = services.sessions.start_session(book.id)
        clock.advance(hours=2)
        services.sessions.stop_session(session.id, end_page=300)

        updated = services.library.get_book(book.id)
        assert updated.status == BookStatus.FINISHED
        assert updated.completed_at == clock.now

    def test_single_active_session_invariant(
        self, services: Services, book: Book, clock
    ):
        """Test repeated start/stop cycles never leave two open sessions."""
        page = 50
        for _ in range(4):
            session = services.sessions.start_session(book.id)
            with pytest.raises(ConflictError):
                services.sessions.start_session(book.id)
            assert len([s for s in services.sessions.active_sessions() if s.book_id == book.id]) == 1

            clock.advance(minutes=15)
            page += 10
            services.sessions.stop_session(session.id, end_page=page)
            assert services.sessions.get_active_session(book.id) is None
            clock.advance(minutes=1)

        assert len(services.sessions.list_book_sessions(book.id)) == 4


class TestQuickAdd:
    """Tests for SessionManager.quick_add_pages."""

    def test_quick_add(self, services: Services, book: Book):
        """Test logging pages without a timer."""
        session = services.sessions.quick_add_pages(book.id, 12, session_notes="Commute")

        assert session.state == SessionState.COMPLETED
        assert session.session_type == SessionType.QUICK
        assert session.start_page == 50
        assert session.end_page == 62
        assert session.pages_read == 12
        assert session.duration is None
        assert session.session_notes == "Commute"

        assert services.library.get_book(book.id).current_page == 62
        assert services.state_cache.get(book.id).last_session_at == START

    def test_quick_add_finishes_book(self, services: Services):
        """Test quick-adding the last page finishes the book."""
        book = services.library.create_book(
            BookCreate(
                title="Almost Done",
                author="Writer",
                genre=BookGenre.FICTION,
                current_page=299,
                total_pages=300,
                status=BookStatus.READING,
            )
        )

        session = services.sessions.quick_add_pages(book.id, 1)

        updated = services.library.get_book(book.id)
        assert session.pages_read == 1
        assert updated.current_page == 300
        assert updated.progress == 1.0
        assert updated.status == BookStatus.FINISHED
        assert updated.completed_at == START

    def test_quick_add_ignores_active_session(
        self, services: Services, book: Book, clock
    ):
        """Test quick add neither checks nor stops an open timed session."""
        active = services.sessions.start_session(book.id)
        clock.advance(minutes=1)

        services.sessions.quick_add_pages(book.id, 5)

        assert services.sessions.get_session(active.id).state == SessionState.ACTIVE
        assert services.state_cache.get(book.id).active_session_id == active.id
        assert len(services.sessions.list_book_sessions(book.id)) == 2

    def test_quick_add_records_pages_only(self, services: Services, book: Book, storage):
        """Test quick adds count pages and a session but no minutes."""
        services.sessions.quick_add_pages(book.id, 7)

        totals = storage.get_daily_totals("2025-01-15")
        assert (totals.pages, totals.minutes, totals.sessions) == (7, 0, 1)

    def test_quick_add_missing_book(self, services: Services):
        """Test quick add on an unknown book."""
        with pytest.raises(BookNotFoundError):
            services.sessions.quick_add_pages("missing", 5)


class TestSessionQueries:
    """Tests for session listing, editing and deletion."""

    @pytest.fixture
    def history(self, services: Services, book: Book, clock) -> list[ReadingSession]:
        """Create a timed and a quick session a day apart, plus an open one."""
        timed = services.sessions.start_session(book.id)
        clock.advance(minutes=30)
        timed = services.sessions.stop_session(timed.id, end_page=80)

        clock.advance(days=1)
        quick = services.sessions.quick_add_pages(book.id, 10)

        clock.advance(hours=1)
        open_session = services.sessions.start_session(book.id)
        return [timed, quick, open_session]

    def test_list_newest_first(self, services: Services, book: Book, history):
        """Test sessions are listed by date, newest first."""
        sessions = services.sessions.list_book_sessions(book.id)
        assert [s.id for s in sessions] == [s.id for s in reversed(history)]

    def test_list_filters(self, services: Services, book: Book, history):
        """Test filtering by state, type, date and limit."""
        sessions = services.sessions
        assert len(sessions.list_book_sessions(book.id, state=SessionState.COMPLETED)) == 2
        assert len(sessions.list_book_sessions(book.id, session_type=SessionType.QUICK)) == 1
        assert len(sessions.list_book_sessions(book.id, start=START + timedelta(hours=12))) == 2
        assert len(sessions.list_book_sessions(book.id, end=START + timedelta(hours=12))) == 1
        assert len(sessions.list_book_sessions(book.id, limit=1)) == 1

    def test_recent_and_active(self, services: Services, history):
        """Test recent and active session queries."""
        assert [s.id for s in services.sessions.recent_sessions(limit=2)] == [
            history[2].id,
            history[1].id,
        ]
        assert [s.id for s in services.sessions.active_sessions()] == [history[2].id]

    def test_update_session(self, services: Services, history):
        """Test editing a session's pages and notes."""
        updated = services.sessions.update_session(
            history[0].id, ReadingSessionUpdate(pages_read=25, session_notes="Edited")
        )
        assert updated.pages_read == 25
        assert updated.session_notes == "Edited"
        assert updated.state == SessionState.COMPLETED

    def test_update_missing_session(self, services: Services):
        """Test editing an unknown session returns None."""
        assert services.sessions.update_session("missing", ReadingSessionUpdate()) is None

    def test_delete_open_session_clears_pointer(self, services: Services, book: Book, history):
        """Test deleting the open session frees the book for a new start."""
        assert services.sessions.delete_session(history[2].id) is True

        assert services.state_cache.get(book.id).active_session_id is None
        assert services.sessions.get_active_session(book.id) is None
        services.sessions.start_session(book.id)

    def test_delete_missing_session(self, services: Services):
        """Test deleting an unknown session returns False."""
        assert services.sessions.delete_session("missing") is False

    def test_delete_completed_session_updates_rollups(
        self, services: Services, book: Book, storage, clock
    ):
        """Test a deleted session no longer counts in the daily totals."""
        timed = services.sessions.start_session(book.id)
        clock.advance(minutes=30)
        services.sessions.stop_session(timed.id, end_page=80)
        quick = services.sessions.quick_add_pages(book.id, 5)

        services.sessions.delete_session(timed.id)

        totals = storage.get_daily_totals("2025-01-15")
        assert (totals.pages, totals.minutes, totals.sessions) == (5, 0, 1)
        book_totals = storage.get_daily_book_totals("2025-01-15", book.id)
        assert (book_totals.pages, book_totals.minutes, book_totals.sessions) == (5, 0, 1)

        services.sessions.delete_session(quick.id)
        assert services.analytics.get_overview().totals.pages == 0

    def test_delete_open_session_leaves_rollups(
        self, services: Services, book: Book, storage
    ):
        """Test deleting a session that never completed changes no totals."""
        services.sessions.quick_add_pages(book.id, 5)
        active = services.sessions.start_session(book.id)

        services.sessions.delete_session(active.id)

        assert storage.get_daily_totals("2025-01-15").sessions == 1


class TestManagerDefaults:
    """Tests for SessionManager wiring."""

    def test_builds_collaborators_on_storage(self, storage, clock):
        """Test a manager built from storage alone shares it with its helpers."""
        manager = SessionManager(storage, clock=clock)
        assert manager.progress.storage is storage
        assert manager.state_cache.storage is storage
        assert manager.clock is clock
