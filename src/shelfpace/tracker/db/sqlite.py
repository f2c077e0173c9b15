"""SQLite storage backend.

Handles database connection, session management, and mapping between the
pydantic entities and their ORM rows.
"""

import json
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Generator, Optional, TypeVar

import structlog
from pydantic import BaseModel
from sqlalchemy import create_engine, literal_column, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..notes.schemas import BookNote
from ..stats.schemas import DailyBookTotals, DailyTotals, ReadingGoal
from .models import (
    Base,
    BookModel,
    BookNoteModel,
    DailyBookTotalsModel,
    DailyTotalsModel,
    ReadingGoalModel,
    ReadingSessionModel,
    ReadingStateModel,
)
from .schemas import OPEN_SESSION_STATES, Book, BookReadingState, ReadingSession
from .storage import Storage

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

# Columns holding JSON arrays
JSON_LIST_COLUMNS = ("tags", "topics")


def to_row(row_cls: type[Base], item: BaseModel) -> Base:
    """Build an ORM row from a pydantic entity."""
    data = item.model_dump(mode="json")
    for column in JSON_LIST_COLUMNS:
        if column in data:
            data[column] = json.dumps(data[column]) if data[column] else None
    return row_cls(**data)


def from_row(schema: type[M], row: Base) -> M:
    """Build a pydantic entity from an ORM row."""
    data = {column.key: getattr(row, column.key) for column in row.__table__.columns}
    for column in JSON_LIST_COLUMNS:
        if column in data:
            data[column] = json.loads(data[column]) if data[column] else []
    return schema.model_validate(data)


class Database:
    """Database connection manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
                     Defaults to ./data/shelfpace.db.
        """
        if db_path is None:
            db_path = "./data/shelfpace.db"

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # so all sessions share one database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class SqliteStorage(Storage):
    """Storage backed by SQLAlchemy over SQLite.

    Each call opens its own session, so every operation commits or rolls
    back on its own.
    """

    def __init__(self, db_path: Optional[str] = None, db: Optional[Database] = None):
        """Initialize storage.

        Args:
            db_path: Path to the SQLite file (ignored when db is given)
            db: Existing Database instance
        """
        self.db = db or Database(db_path)
        self.db.create_tables()
        logger.debug("sqlite_storage_ready", path=str(self.db.db_path))

    def _get(self, row_cls: type[Base], schema: type[M], key) -> Optional[M]:
        with self.db.get_session() as s:
            row = s.get(row_cls, key)
            return from_row(schema, row) if row else None

    def _save(self, row_cls: type[Base], item: M) -> M:
        with self.db.get_session() as s:
            s.merge(to_row(row_cls, item))
        return item.model_copy(deep=True)

    def _delete(self, row_cls: type[Base], key) -> bool:
        with self.db.get_session() as s:
            row = s.get(row_cls, key)
            if not row:
                return False
            s.delete(row)
            return True

    # ========================================================================
    # Books
    # ========================================================================

    def get_book(self, book_id: str) -> Optional[Book]:
        return self._get(BookModel, Book, book_id)

    def list_books(self) -> list[Book]:
        with self.db.get_session() as s:
            books = [from_row(Book, row) for row in s.execute(select(BookModel)).scalars()]
        books.sort(key=lambda book: book.added_at)
        return books

    def save_book(self, book: Book) -> Book:
        return self._save(BookModel, book)

    def delete_book(self, book_id: str) -> bool:
        with self.db.get_session() as s:
            book = s.get(BookModel, book_id)
            if not book:
                return False

            # The book's reading leaves the overall daily totals with it
            for book_totals in book.daily_totals:
                totals = s.get(DailyTotalsModel, book_totals.date)
                if totals is not None:
                    totals.pages = max(0, totals.pages - book_totals.pages)
                    totals.minutes = max(0, totals.minutes - book_totals.minutes)
                    totals.sessions = max(0, totals.sessions - book_totals.sessions)

            # Sessions, notes, reading state and daily book totals follow via ORM cascade
            s.delete(book)
            return True

    # ========================================================================
    # Reading Sessions
    # ========================================================================

    def get_session(self, session_id: str) -> Optional[ReadingSession]:
        return self._get(ReadingSessionModel, ReadingSession, session_id)

    def list_sessions(self, book_id: Optional[str] = None) -> list[ReadingSession]:
        with self.db.get_session() as s:
            stmt = select(ReadingSessionModel).order_by(literal_column("rowid").desc())
            if book_id is not None:
                stmt = stmt.where(ReadingSessionModel.book_id == book_id)
            sessions = [from_row(ReadingSession, row) for row in s.execute(stmt).scalars()]
        # ISO strings with and without fractions do not sort lexically. The
        # stable sort keeps equal dates newest row first.
        sessions.sort(key=lambda session: session.session_date, reverse=True)
        return sessions

    def find_open_session(self, book_id: str) -> Optional[ReadingSession]:
        with self.db.get_session() as s:
            stmt = select(ReadingSessionModel).where(
                ReadingSessionModel.book_id == book_id,
                ReadingSessionModel.state.in_([state.value for state in OPEN_SESSION_STATES]),
            )
            row = s.execute(stmt).scalars().first()
            return from_row(ReadingSession, row) if row else None

    def save_session(self, session: ReadingSession) -> ReadingSession:
        return self._save(ReadingSessionModel, session)

    def delete_session(self, session_id: str) -> bool:
        return self._delete(ReadingSessionModel, session_id)

    # ========================================================================
    # Notes
    # ========================================================================

    def get_note(self, note_id: str) -> Optional[BookNote]:
        return self._get(BookNoteModel, BookNote, note_id)

    def list_notes(
        self, book_id: Optional[str] = None, session_id: Optional[str] = None
    ) -> list[BookNote]:
        with self.db.get_session() as s:
            stmt = select(BookNoteModel)
            if book_id is not None:
                stmt = stmt.where(BookNoteModel.book_id == book_id)
            if session_id is not None:
                stmt = stmt.where(BookNoteModel.session_id == session_id)
            notes = [from_row(BookNote, row) for row in s.execute(stmt).scalars()]
        notes.sort(key=lambda note: note.created_at, reverse=True)
        return notes

    def save_note(self, note: BookNote) -> BookNote:
        return self._save(BookNoteModel, note)

    def delete_note(self, note_id: str) -> bool:
        return self._delete(BookNoteModel, note_id)

    # ========================================================================
    # Reading State
    # ========================================================================

    def get_reading_state(self, book_id: str) -> Optional[BookReadingState]:
        return self._get(ReadingStateModel, BookReadingState, book_id)

    def save_reading_state(self, state: BookReadingState) -> BookReadingState:
        return self._save(ReadingStateModel, state)

    # ========================================================================
    # Daily Rollups
    # ========================================================================

    def get_daily_totals(self, day: str) -> Optional[DailyTotals]:
        return self._get(DailyTotalsModel, DailyTotals, day)

    def save_daily_totals(self, totals: DailyTotals) -> DailyTotals:
        return self._save(DailyTotalsModel, totals)

    def list_daily_totals(self, start: date, end: date) -> list[DailyTotals]:
        with self.db.get_session() as s:
            stmt = (
                select(DailyTotalsModel)
                .where(
                    DailyTotalsModel.date >= start.isoformat(),
                    DailyTotalsModel.date <= end.isoformat(),
                )
                .order_by(DailyTotalsModel.date)
            )
            return [from_row(DailyTotals, row) for row in s.execute(stmt).scalars()]

    def get_daily_book_totals(self, day: str, book_id: str) -> Optional[DailyBookTotals]:
        return self._get(DailyBookTotalsModel, DailyBookTotals, (day, book_id))

    def save_daily_book_totals(self, totals: DailyBookTotals) -> DailyBookTotals:
        return self._save(DailyBookTotalsModel, totals)

    def list_daily_book_totals(
        self, start: date, end: date, book_id: Optional[str] = None
    ) -> list[DailyBookTotals]:
        with self.db.get_session() as s:
            stmt = select(DailyBookTotalsModel).where(
                DailyBookTotalsModel.date >= start.isoformat(),
                DailyBookTotalsModel.date <= end.isoformat(),
            )
            if book_id is not None:
                stmt = stmt.where(DailyBookTotalsModel.book_id == book_id)
            stmt = stmt.order_by(DailyBookTotalsModel.date, DailyBookTotalsModel.book_id)
            return [from_row(DailyBookTotals, row) for row in s.execute(stmt).scalars()]

    # ========================================================================
    # Reading Goals
    # ========================================================================

    def get_goal(self, goal_id: str) -> Optional[ReadingGoal]:
        return self._get(ReadingGoalModel, ReadingGoal, goal_id)

    def list_goals(self) -> list[ReadingGoal]:
        with self.db.get_session() as s:
            rows = s.execute(select(ReadingGoalModel)).scalars()
            goals = [from_row(ReadingGoal, row) for row in rows]
        goals.sort(key=lambda goal: goal.created_at, reverse=True)
        return goals

    def save_goal(self, goal: ReadingGoal) -> ReadingGoal:
        return self._save(ReadingGoalModel, goal)

    def delete_goal(self, goal_id: str) -> bool:
        return self._delete(ReadingGoalModel, goal_id)
