"""Pydantic schemas for book notes."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from ...utils import generate_uuid, utc_now
from ..db.schemas import CamelModel


class NoteType(str, Enum):
    """Kind of note attached to a book."""

    NOTE = "note"
    QUOTE = "quote"
    HIGHLIGHT = "highlight"
    SUMMARY = "summary"
    ACTION = "action"  # something to do after reading


class BookNoteBase(CamelModel):
    """Shared note fields."""

    content: str = Field(..., min_length=1, max_length=5000)
    note_type: NoteType = NoteType.NOTE
    page: Optional[int] = Field(None, ge=1)
    chapter: Optional[str] = None
    position: Optional[str] = Field(None, description="Location marker for ebooks")
    tags: list[str] = Field(default_factory=list, max_length=10)
    is_private: bool = False


class BookNoteCreate(BookNoteBase):
    """Schema for creating a note."""

    book_id: str = Field(..., min_length=1)
    session_id: Optional[str] = None


class BookNote(BookNoteBase):
    """A stored note."""

    id: str = Field(default_factory=generate_uuid)
    book_id: str
    session_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class BookNoteUpdate(CamelModel):
    """Schema for updating a note."""

    content: Optional[str] = Field(None, min_length=1, max_length=5000)
    note_type: Optional[NoteType] = None
    page: Optional[int] = Field(None, ge=1)
    chapter: Optional[str] = None
    position: Optional[str] = None
    tags: Optional[list[str]] = Field(None, max_length=10)
    is_private: Optional[bool] = None
