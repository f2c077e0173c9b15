"""Storage backends for the reading tracker.

Every manager talks to a ``Storage`` instance instead of a concrete
database. Three implementations exist:

- ``MemoryStorage``: dictionaries in process memory, lost on restart.
- ``FileStorage``: the memory backend plus a single JSON document that is
  rewritten (temp file then rename) after every mutation.
- ``SqliteStorage`` (``sqlite.py``): SQLAlchemy ORM over a SQLite file.

Entities go in and come out as copies, so callers can never mutate stored
state without calling a ``save_*`` method.
"""

import json
import os
from abc import ABC, abstractmethod
from datetime import date
from pathlib import Path
from typing import Optional, TypeVar, Union

import structlog
from pydantic import BaseModel

from ..notes.schemas import BookNote
from ..stats.schemas import DailyBookTotals, DailyTotals, ReadingGoal
from .schemas import Book, BookReadingState, ReadingSession

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _copy(item: Optional[M]) -> Optional[M]:
    return item.model_copy(deep=True) if item is not None else None


def _book_day_key(day: str, book_id: str) -> str:
    return f"{day}:{book_id}"


class Storage(ABC):
    """Repository interface shared by all backends."""

    # ========================================================================
    # Books
    # ========================================================================

    @abstractmethod
    def get_book(self, book_id: str) -> Optional[Book]:
        """Get a book by ID, None if missing."""

    @abstractmethod
    def list_books(self) -> list[Book]:
        """List every book in insertion order."""

    @abstractmethod
    def save_book(self, book: Book) -> Book:
        """Insert or replace a book."""

    @abstractmethod
    def delete_book(self, book_id: str) -> bool:
        """Delete a book with its sessions, notes, reading state and daily book totals.

        Returns:
            True if the book existed
        """

    # ========================================================================
    # Reading Sessions
    # ========================================================================

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        """Get a session by ID, None if missing."""

    @abstractmethod
    def list_sessions(self, book_id: Optional[str] = None) -> list[ReadingSession]:
        """List sessions, optionally for one book, newest session_date first."""

    @abstractmethod
    def find_open_session(self, book_id: str) -> Optional[ReadingSession]:
        """Get the active or paused session of a book, if any."""

    @abstractmethod
    def save_session(self, session: ReadingSession) -> ReadingSession:
        """Insert or replace a session."""

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        """Delete a session. Returns True if it existed."""

    # ========================================================================
    # Notes
    # ========================================================================

    @abstractmethod
    def get_note(self, note_id: str) -> Optional[BookNote]:
        """Get a note by ID, None if missing."""

    @abstractmethod
    def list_notes(
        self, book_id: Optional[str] = None, session_id: Optional[str] = None
    ) -> list[BookNote]:
        """List notes, newest first, filtered by book and/or session."""

    @abstractmethod
    def save_note(self, note: BookNote) -> BookNote:
        """Insert or replace a note."""

    @abstractmethod
    def delete_note(self, note_id: str) -> bool:
        """Delete a note. Returns True if it existed."""

    # ========================================================================
    # Reading State
    # ========================================================================

    @abstractmethod
    def get_reading_state(self, book_id: str) -> Optional[BookReadingState]:
        """Get the reading state of a book, None if never written."""

    @abstractmethod
    def save_reading_state(self, state: BookReadingState) -> BookReadingState:
        """Insert or replace the reading state of a book."""

    # ========================================================================
    # Daily Rollups
    # ========================================================================

    @abstractmethod
    def get_daily_totals(self, day: str) -> Optional[DailyTotals]:
        """Get totals for an ISO date."""

    @abstractmethod
    def save_daily_totals(self, totals: DailyTotals) -> DailyTotals:
        """Insert or replace totals for a date."""

    @abstractmethod
    def list_daily_totals(self, start: date, end: date) -> list[DailyTotals]:
        """List totals between two dates inclusive, oldest first."""

    @abstractmethod
    def get_daily_book_totals(self, day: str, book_id: str) -> Optional[DailyBookTotals]:
        """Get one book's totals for an ISO date."""

    @abstractmethod
    def save_daily_book_totals(self, totals: DailyBookTotals) -> DailyBookTotals:
        """Insert or replace one book's totals for a date."""

    @abstractmethod
    def list_daily_book_totals(
        self, start: date, end: date, book_id: Optional[str] = None
    ) -> list[DailyBookTotals]:
        """List per-book totals between two dates inclusive, oldest first."""

    # ========================================================================
    # Reading Goals
    # ========================================================================

    @abstractmethod
    def get_goal(self, goal_id: str) -> Optional[ReadingGoal]:
        """Get a goal by ID, None if missing."""

    @abstractmethod
    def list_goals(self) -> list[ReadingGoal]:
        """List goals, newest first."""

    @abstractmethod
    def save_goal(self, goal: ReadingGoal) -> ReadingGoal:
        """Insert or replace a goal."""

    @abstractmethod
    def delete_goal(self, goal_id: str) -> bool:
        """Delete a goal. Returns True if it existed."""


class MemoryStorage(Storage):
    """Storage kept in plain dictionaries."""

    def __init__(self) -> None:
        self._books: dict[str, Book] = {}
        self._sessions: dict[str, ReadingSession] = {}
        self._notes: dict[str, BookNote] = {}
        self._reading_states: dict[str, BookReadingState] = {}
        self._daily_totals: dict[str, DailyTotals] = {}
        self._daily_book_totals: dict[str, DailyBookTotals] = {}
        self._goals: dict[str, ReadingGoal] = {}

    def _changed(self) -> None:
        """Hook called after every mutation."""

    # Books

    def get_book(self, book_id: str) -> Optional[Book]:
        return _copy(self._books.get(book_id))

    def list_books(self) -> list[Book]:
        return [_copy(b) for b in self._books.values()]

    def save_book(self, book: Book) -> Book:
        self._books[book.id] = _copy(book)
        self._changed()
        return _copy(book)

    def delete_book(self, book_id: str) -> bool:
        if book_id not in self._books:
            return False
        del self._books[book_id]

        # The book's reading leaves the overall daily totals with it
        for book_totals in self._daily_book_totals.values():
            totals = self._daily_totals.get(book_totals.date)
            if book_totals.book_id == book_id and totals is not None:
                totals.remove(book_totals.pages, book_totals.minutes, book_totals.sessions)

        # Cascade to everything owned by the book
        self._sessions = {k: s for k, s in self._sessions.items() if s.book_id != book_id}
        self._notes = {k: n for k, n in self._notes.items() if n.book_id != book_id}
        self._reading_states.pop(book_id, None)
        self._daily_book_totals = {
            k: t for k, t in self._daily_book_totals.items() if t.book_id != book_id
        }
        self._changed()
        return True

    # Sessions

    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        return _copy(self._sessions.get(session_id))

    def list_sessions(self, book_id: Optional[str] = None) -> list[ReadingSession]:
        # Newest insertion first; the stable sort keeps that order for equal dates
        sessions = [
            s
            for s in reversed(list(self._sessions.values()))
            if book_id is None or s.book_id == book_id
        ]
        sessions.sort(key=lambda s: s.session_date, reverse=True)
        return [_copy(s) for s in sessions]

    def find_open_session(self, book_id: str) -> Optional[ReadingSession]:
        for session in self._sessions.values():
            if session.book_id == book_id and session.is_open:
                return _copy(session)
        return None

    def save_session(self, session: ReadingSession) -> ReadingSession:
        self._sessions[session.id] = _copy(session)
        self._changed()
        return _copy(session)

    def delete_session(self, session_id: str) -> bool:
        if self._sessions.pop(session_id, None) is None:
            return False
        self._changed()
        return True

    # Notes

    def get_note(self, note_id: str) -> Optional[BookNote]:
        return _copy(self._notes.get(note_id))

    def list_notes(
        self, book_id: Optional[str] = None, session_id: Optional[str] = None
    ) -> list[BookNote]:
        notes = [
            n
            for n in self._notes.values()
            if (book_id is None or n.book_id == book_id)
            and (session_id is None or n.session_id == session_id)
        ]
        notes.sort(key=lambda n: n.created_at, reverse=True)
        return [_copy(n) for n in notes]

    def save_note(self, note: BookNote) -> BookNote:
        self._notes[note.id] = _copy(note)
        self._changed()
        return _copy(note)

    def delete_note(self, note_id: str) -> bool:
        if self._notes.pop(note_id, None) is None:
            return False
        self._changed()
        return True

    # Reading state

    def get_reading_state(self, book_id: str) -> Optional[BookReadingState]:
        return _copy(self._reading_states.get(book_id))

    def save_reading_state(self, state: BookReadingState) -> BookReadingState:
        self._reading_states[state.book_id] = _copy(state)
        self._changed()
        return _copy(state)

    # Daily rollups

    def get_daily_totals(self, day: str) -> Optional[DailyTotals]:
        return _copy(self._daily_totals.get(day))

    def save_daily_totals(self, totals: DailyTotals) -> DailyTotals:
        self._daily_totals[totals.date] = _copy(totals)
        self._changed()
        return _copy(totals)

    def list_daily_totals(self, start: date, end: date) -> list[DailyTotals]:
        lo, hi = start.isoformat(), end.isoformat()
        return [
            _copy(t)
            for day, t in sorted(self._daily_totals.items())
            if lo <= day <= hi
        ]

    def get_daily_book_totals(self, day: str, book_id: str) -> Optional[DailyBookTotals]:
        return _copy(self._daily_book_totals.get(_book_day_key(day, book_id)))

    def save_daily_book_totals(self, totals: DailyBookTotals) -> DailyBookTotals:
        self._daily_book_totals[_book_day_key(totals.date, totals.book_id)] = _copy(totals)
        self._changed()
        return _copy(totals)

    def list_daily_book_totals(
        self, start: date, end: date, book_id: Optional[str] = None
    ) -> list[DailyBookTotals]:
        lo, hi = start.isoformat(), end.isoformat()
        return [
            _copy(t)
            for _, t in sorted(self._daily_book_totals.items())
            if lo <= t.date <= hi and (book_id is None or t.book_id == book_id)
        ]

    # Goals

    def get_goal(self, goal_id: str) -> Optional[ReadingGoal]:
        return _copy(self._goals.get(goal_id))

    def list_goals(self) -> list[ReadingGoal]:
        goals = sorted(self._goals.values(), key=lambda g: g.created_at, reverse=True)
        return [_copy(g) for g in goals]

    def save_goal(self, goal: ReadingGoal) -> ReadingGoal:
        self._goals[goal.id] = _copy(goal)
        self._changed()
        return _copy(goal)

    def delete_goal(self, goal_id: str) -> bool:
        if self._goals.pop(goal_id, None) is None:
            return False
        self._changed()
        return True


# Document key -> (attribute, model)
_DOCUMENT_SECTIONS = {
    "books": ("_books", Book),
    "sessions": ("_sessions", ReadingSession),
    "notes": ("_notes", BookNote),
    "readingStates": ("_reading_states", BookReadingState),
    "dailyTotals": ("_daily_totals", DailyTotals),
    "dailyBookTotals": ("_daily_book_totals", DailyBookTotals),
    "readingGoals": ("_goals", ReadingGoal),
}


class FileStorage(MemoryStorage):
    """Memory storage mirrored to one JSON document on disk.

    The document is read once at startup and rewritten in full after every
    mutation. Writes go to a sibling temp file that then replaces the real
    one, so a crash mid-write leaves the previous version intact. A write
    that fails reloads the document, dropping the change from memory too.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._load()

    def _load(self) -> None:
        """Load the document if it exists, replacing everything in memory."""
        for attr, _ in _DOCUMENT_SECTIONS.values():
            setattr(self, attr, {})

        if not self.path.exists():
            logger.info("storage_file_missing", path=str(self.path))
            return

        with open(self.path, "r", encoding="utf-8") as f:
            document = json.load(f)

        for key, (attr, model) in _DOCUMENT_SECTIONS.items():
            section = document.get(key) or {}
            setattr(
                self,
                attr,
                {item_key: model.model_validate(data) for item_key, data in section.items()},
            )
        logger.info(
            "storage_file_loaded",
            path=str(self.path),
            books=len(self._books),
            sessions=len(self._sessions),
        )

    def _changed(self) -> None:
        try:
            self._write()
        except OSError:
            # Memory already holds the change; go back to what is on disk
            logger.error("storage_file_write_failed", path=str(self.path))
            self._load()
            raise

    def _write(self) -> None:
        """Write the whole document atomically."""
        document = {
            key: {
                item_key: item.model_dump(mode="json", by_alias=True)
                for item_key, item in getattr(self, attr).items()
            }
            for key, (attr, _) in _DOCUMENT_SECTIONS.items()
        }

        tmp_path = self.path.with_name(f"{self.path.name}.{os.getpid()}.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            tmp_path.replace(self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise


# Global storage instance
_storage: Optional[Storage] = None


def create_storage(
    backend: str, data_path: Optional[Path] = None, db_path: Optional[Path] = None
) -> Storage:
    """Build a storage backend by name.

    Args:
        backend: memory, file or sqlite
        data_path: JSON document for the file backend
        db_path: database file for the sqlite backend

    Returns:
        A ready-to-use Storage

    Raises:
        ValueError: If the backend name is unknown
    """
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(data_path or Path("./data/store.json"))
    if backend == "sqlite":
        from .sqlite import SqliteStorage

        return SqliteStorage(str(db_path) if db_path else None)
    raise ValueError(f"Unknown storage backend: {backend}")


def get_storage() -> Storage:
    """Get or create the global storage instance from configuration."""
    global _storage
    if _storage is None:
        from ..config import get_config

        config = get_config()
        _storage = create_storage(config.storage_backend, config.data_path, config.db_path)
        logger.info("storage_initialized", backend=config.storage_backend)
    return _storage


def reset_storage() -> None:
    """Reset the global storage instance. Used for testing."""
    global _storage
    _storage = None
