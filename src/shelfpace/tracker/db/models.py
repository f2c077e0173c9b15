"""SQLAlchemy ORM models for the SQLite backend.

Tables:
- books: Book records
- reading_sessions: Timed and quick reading sessions
- book_notes: Notes, quotes and highlights
- reading_states: Per-book cached pace and forecast
- daily_totals / daily_book_totals: Daily rollups for the stats overview
- reading_goals: Reading goals

Timestamps are stored as ISO 8601 strings and lists as JSON arrays, the
same shapes the JSON file backend writes.
"""

from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class BookModel(Base):
    """Book row."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Core fields
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    genre: Mapped[str] = mapped_column(String(50), nullable=False)
    format: Mapped[str] = mapped_column(String(10), default="paper")
    status: Mapped[str] = mapped_column(String(20), default="toRead", index=True)

    # Progress
    current_page: Mapped[int] = mapped_column(Integer, default=0)
    total_pages: Mapped[Optional[int]] = mapped_column(Integer)
    progress: Mapped[float] = mapped_column(Float, default=0.0)

    # Metadata
    priority: Mapped[int] = mapped_column(Integer, default=3)
    tags: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    topics: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    language: Mapped[str] = mapped_column(String(50), default="English")
    usefulness: Mapped[Optional[str]] = mapped_column(Text)
    cover_url: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    added_at: Mapped[str] = mapped_column(String(32), nullable=False)
    last_read_at: Mapped[Optional[str]] = mapped_column(String(32))
    started_at: Mapped[Optional[str]] = mapped_column(String(32))
    completed_at: Mapped[Optional[str]] = mapped_column(String(32))

    # Relationships
    sessions: Mapped[list["ReadingSessionModel"]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )
    notes: Mapped[list["BookNoteModel"]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )
    reading_state: Mapped[Optional["ReadingStateModel"]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )
    daily_totals: Mapped[list["DailyBookTotalsModel"]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<BookModel(id={self.id}, title='{self.title}', author='{self.author}')>"


class ReadingSessionModel(Base):
    """Reading session row."""

    __tablename__ = "reading_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Timing
    started_at: Mapped[str] = mapped_column(String(32), nullable=False)
    paused_at: Mapped[Optional[str]] = mapped_column(String(32))
    resumed_at: Mapped[Optional[str]] = mapped_column(String(32))
    ended_at: Mapped[Optional[str]] = mapped_column(String(32))
    duration: Mapped[Optional[int]] = mapped_column(Integer)

    # Progress
    start_page: Mapped[Optional[int]] = mapped_column(Integer)
    end_page: Mapped[Optional[int]] = mapped_column(Integer)
    pages_read: Mapped[int] = mapped_column(Integer, default=0)
    progress_percent: Mapped[Optional[float]] = mapped_column(Float)

    # State
    state: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    session_type: Mapped[str] = mapped_column(String(10), nullable=False)
    pomodoro_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    session_date: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    time_zone: Mapped[str] = mapped_column(String(64), default="UTC")
    session_notes: Mapped[Optional[str]] = mapped_column(Text)

    book: Mapped["BookModel"] = relationship(back_populates="sessions")

    def __repr__(self) -> str:
        return f"<ReadingSessionModel(id={self.id}, book_id={self.book_id}, state={self.state})>"


class BookNoteModel(Base):
    """Book note row."""

    __tablename__ = "book_notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True
    )
    session_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    note_type: Mapped[str] = mapped_column(String(20), default="note")
    page: Mapped[Optional[int]] = mapped_column(Integer)
    chapter: Mapped[Optional[str]] = mapped_column(String(200))
    position: Mapped[Optional[str]] = mapped_column(String(100))
    tags: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    is_private: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[str] = mapped_column(String(32), nullable=False)

    book: Mapped["BookModel"] = relationship(back_populates="notes")


class ReadingStateModel(Base):
    """Per-book reading state row."""

    __tablename__ = "reading_states"

    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), primary_key=True
    )
    active_session_id: Mapped[Optional[str]] = mapped_column(String(36))
    last_session_at: Mapped[Optional[str]] = mapped_column(String(32))
    average_pages_per_hour: Mapped[Optional[float]] = mapped_column(Float)
    recent_sessions_count: Mapped[int] = mapped_column(Integer, default=0)
    last_calculated_at: Mapped[Optional[str]] = mapped_column(String(32))
    daily_page_target: Mapped[Optional[int]] = mapped_column(Integer)
    target_deadline: Mapped[Optional[str]] = mapped_column(String(32))
    estimated_finish_date: Mapped[Optional[str]] = mapped_column(String(32))

    book: Mapped["BookModel"] = relationship(back_populates="reading_state")


class DailyTotalsModel(Base):
    """Reading totals for one day across all books."""

    __tablename__ = "daily_totals"

    date: Mapped[str] = mapped_column(String(10), primary_key=True)  # ISO date
    pages: Mapped[int] = mapped_column(Integer, default=0)
    minutes: Mapped[int] = mapped_column(Integer, default=0)
    sessions: Mapped[int] = mapped_column(Integer, default=0)


class DailyBookTotalsModel(Base):
    """Reading totals for one day and one book."""

    __tablename__ = "daily_book_totals"

    date: Mapped[str] = mapped_column(String(10), primary_key=True)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id", ondelete="CASCADE"), primary_key=True
    )
    pages: Mapped[int] = mapped_column(Integer, default=0)
    minutes: Mapped[int] = mapped_column(Integer, default=0)
    sessions: Mapped[int] = mapped_column(Integer, default=0)

    book: Mapped["BookModel"] = relationship(back_populates="daily_totals")


class ReadingGoalModel(Base):
    """Reading goal row."""

    __tablename__ = "reading_goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    goal_type: Mapped[str] = mapped_column(String(10), nullable=False)
    target: Mapped[int] = mapped_column(Integer, nullable=False)
    current: Mapped[int] = mapped_column(Integer, default=0)
    period: Mapped[str] = mapped_column(String(10), nullable=False)
    start_date: Mapped[str] = mapped_column(String(32), nullable=False)
    end_date: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[str] = mapped_column(String(32), nullable=False)
    updated_at: Mapped[str] = mapped_column(String(32), nullable=False)
