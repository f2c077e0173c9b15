"""Tests for the per-book reading state cache."""

from datetime import datetime, timezone

from shelfpace.tracker.db.schemas import Book
from shelfpace.tracker.reading.state import ReadingStateCache


class TestReadingStateCache:
    """Tests for ReadingStateCache."""

    def test_get_unknown(self, storage):
        """Test a book never written has no state."""
        assert ReadingStateCache(storage).get("book-1") is None

    def test_get_or_default(self, storage):
        """Test the default state is not saved."""
        cache = ReadingStateCache(storage)

        state = cache.get_or_default("book-1")
        assert state.book_id == "book-1"
        assert state.active_session_id is None
        assert state.recent_sessions_count == 0
        assert storage.get_reading_state("book-1") is None

    def test_update_merges(self, storage):
        """Test updates only touch the given fields."""
        cache = ReadingStateCache(storage)
        when = datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)

        cache.update("book-1", active_session_id="s-1", last_session_at=when)
        state = cache.update("book-1", daily_page_target=12)

        assert state.active_session_id == "s-1"
        assert state.last_session_at == when
        assert state.daily_page_target == 12
        assert cache.get("book-1") == state

    def test_update_with_none_clears(self, storage):
        """Test passing None explicitly clears a field."""
        cache = ReadingStateCache(storage)
        cache.update("book-1", active_session_id="s-1")

        assert cache.update("book-1", active_session_id=None).active_session_id is None

    def test_returned_state_is_a_copy(self, storage):
        """Test mutating a returned state does not change storage."""
        cache = ReadingStateCache(storage)
        state = cache.update("book-1", daily_page_target=5)

        state.daily_page_target = 50
        assert cache.get("book-1").daily_page_target == 5

    def test_removed_with_book(self, services, book: Book):
        """Test deleting a book drops its reading state."""
        services.state_cache.update(book.id, daily_page_target=20)
        services.library.delete_book(book.id)

        assert services.state_cache.get(book.id) is None
