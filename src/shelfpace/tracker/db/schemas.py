"""Pydantic schemas for books, reading sessions and per-book reading state.

These models are both the stored entities and the validation layer for
incoming requests. JSON uses camelCase keys; Python code uses snake_case
attribute names (``populate_by_name`` accepts either on input).
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ...utils import generate_uuid, utc_now


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        """Dump to a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class BookStatus(str, Enum):
    """Where a book sits on the reader's shelves."""

    TO_READ = "toRead"
    READING = "reading"
    ON_HOLD = "onHold"
    DNF = "dnf"  # Did not finish
    FINISHED = "finished"


class BookFormat(str, Enum):
    """Physical or digital format of a book."""

    PAPER = "paper"
    EBOOK = "ebook"
    AUDIO = "audio"


class BookGenre(str, Enum):
    """Genres a book can be filed under."""

    FICTION = "Fiction"
    PERSONAL_DEVELOPMENT = "Personal Development"
    BUSINESS_FINANCE = "Business / Finance"
    PHILOSOPHY_SPIRITUALITY = "Philosophy / Spirituality"
    PSYCHOLOGY_SELF_IMPROVEMENT = "Psychology / Self-Improvement"
    HISTORY_CULTURE = "History / Culture"
    SCIENCE_TECHNOLOGY = "Science / Technology"
    GENERAL_NON_FICTION = "General Non-Fiction"
    BIOGRAPHY_MEMOIR = "Biography/Memoir"


class SessionState(str, Enum):
    """Lifecycle state of a reading session."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class SessionType(str, Enum):
    """How a session was recorded."""

    TIMED = "timed"  # start/stop with a running clock
    QUICK = "quick"  # pages logged without timing


OPEN_SESSION_STATES = (SessionState.ACTIVE, SessionState.PAUSED)


# ============================================================================
# Book Schemas
# ============================================================================


class BookBase(CamelModel):
    """Book fields a reader can set."""

    title: str = Field(..., min_length=1, description="Book title")
    author: str = Field(..., min_length=1, description="Primary author")
    genre: BookGenre
    format: BookFormat = BookFormat.PAPER
    status: BookStatus = BookStatus.TO_READ
    current_page: int = Field(0, ge=0)
    total_pages: Optional[int] = Field(None, ge=0)
    progress: float = Field(0.0, ge=0, le=1, description="0-1, authoritative for ebook/audio")
    priority: int = Field(3, ge=1, le=5)
    tags: list[str] = Field(default_factory=list, max_length=15)
    topics: list[str] = Field(default_factory=list, max_length=20)
    language: str = "English"
    usefulness: Optional[str] = Field(None, description="How the book might be useful")
    cover_url: Optional[str] = None
    last_read_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class BookCreate(BookBase):
    """Schema for creating a new book."""

    pass


class Book(BookBase):
    """A stored book."""

    id: str = Field(default_factory=generate_uuid)
    added_at: datetime = Field(default_factory=utc_now)


class BookUpdate(CamelModel):
    """Schema for updating an existing book. All fields optional."""

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    genre: Optional[BookGenre] = None
    format: Optional[BookFormat] = None
    status: Optional[BookStatus] = None
    current_page: Optional[int] = Field(None, ge=0)
    total_pages: Optional[int] = Field(None, ge=0)
    progress: Optional[float] = Field(None, ge=0, le=1)
    priority: Optional[int] = Field(None, ge=1, le=5)
    tags: Optional[list[str]] = Field(None, max_length=15)
    topics: Optional[list[str]] = Field(None, max_length=20)
    language: Optional[str] = None
    usefulness: Optional[str] = None
    cover_url: Optional[str] = None
    last_read_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


# ============================================================================
# Reading Session Schemas
# ============================================================================


class ReadingSession(CamelModel):
    """One attempt at reading a book, timed or quick."""

    id: str = Field(default_factory=generate_uuid)
    book_id: str

    # Timing
    started_at: datetime
    paused_at: Optional[datetime] = None
    resumed_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=0, description="Reading time in minutes")

    # Progress
    start_page: Optional[int] = Field(None, ge=0)
    end_page: Optional[int] = Field(None, ge=0)
    pages_read: int = Field(0, ge=0)
    progress_percent: Optional[float] = Field(None, ge=0, le=1)

    # State and context
    state: SessionState = SessionState.COMPLETED
    session_type: SessionType = SessionType.TIMED
    pomodoro_minutes: Optional[int] = Field(None, ge=5, le=120)
    session_date: datetime = Field(default_factory=utc_now)
    time_zone: str = "UTC"
    session_notes: Optional[str] = None

    @property
    def is_open(self) -> bool:
        """Whether the session is active or paused."""
        return self.state in OPEN_SESSION_STATES


class ReadingSessionUpdate(CamelModel):
    """Editable session fields. State changes go through the state machine."""

    start_page: Optional[int] = Field(None, ge=0)
    end_page: Optional[int] = Field(None, ge=0)
    pages_read: Optional[int] = Field(None, ge=0)
    duration: Optional[int] = Field(None, ge=0)
    progress_percent: Optional[float] = Field(None, ge=0, le=1)
    pomodoro_minutes: Optional[int] = Field(None, ge=5, le=120)
    session_notes: Optional[str] = Field(None, max_length=1000)


class StartSessionRequest(CamelModel):
    """Request to start a timed session."""

    book_id: str = Field(..., min_length=1)
    start_page: Optional[int] = Field(None, ge=0)
    pomodoro_minutes: Optional[int] = Field(None, ge=5, le=120)


class StopSessionRequest(CamelModel):
    """Request to stop an active or paused session."""

    end_page: Optional[int] = Field(None, ge=0)
    session_notes: Optional[str] = Field(None, max_length=1000)


class QuickAddPagesRequest(CamelModel):
    """Request to log pages without a timer."""

    book_id: str = Field(..., min_length=1)
    pages_read: int = Field(..., ge=1, le=100)
    session_notes: Optional[str] = Field(None, max_length=500)


class ProgressUpdateRequest(CamelModel):
    """Request to set a book's progress directly."""

    current_page: Optional[int] = Field(None, ge=0)
    progress_percent: Optional[float] = Field(None, ge=0, le=1)

    @model_validator(mode="after")
    def require_one_field(self) -> "ProgressUpdateRequest":
        """At least one of currentPage/progressPercent must be given."""
        if self.current_page is None and self.progress_percent is None:
            raise ValueError("Either currentPage or progressPercent must be provided")
        return self


# ============================================================================
# Reading State Schemas
# ============================================================================


class BookReadingState(CamelModel):
    """Per-book cache of session pointers and forecast results.

    Holds nothing that cannot be recomputed from the session history.
    """

    book_id: str

    # Current session info
    active_session_id: Optional[str] = None
    last_session_at: Optional[datetime] = None

    # Pace and forecasting
    average_pages_per_hour: Optional[float] = Field(None, ge=0)
    recent_sessions_count: int = Field(0, ge=0)
    last_calculated_at: Optional[datetime] = None

    # Daily targets
    daily_page_target: Optional[int] = Field(None, ge=1)
    target_deadline: Optional[datetime] = None
    estimated_finish_date: Optional[datetime] = None


class ReadingStateUpdate(CamelModel):
    """Fields a reader may set on the reading state."""

    daily_page_target: Optional[int] = Field(None, ge=1)
    target_deadline: Optional[datetime] = None


class ProgressForecast(CamelModel):
    """Pace, ETA and daily target derived from recent sessions."""

    average_pph: float = 0.0
    eta: Optional[datetime] = None
    daily_target: int = 1
