"""Notes manager for book notes, quotes and highlights."""

from datetime import datetime
from typing import Callable, Optional

import structlog

from ...utils import utc_now
from ..db.storage import Storage, get_storage
from ..exceptions import BookNotFoundError, SessionNotFoundError
from .schemas import BookNote, BookNoteCreate, BookNoteUpdate

logger = structlog.get_logger(__name__)


class NotesManager:
    """Manages notes attached to books and, optionally, reading sessions."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize notes manager.

        Args:
            storage: Storage backend
            clock: Returns the current UTC time
        """
        self.storage = storage or get_storage()
        self.clock = clock or utc_now

    def create_note(self, data: BookNoteCreate) -> BookNote:
        """Create a new note.

        Args:
            data: Note creation data

        Returns:
            Created note

        Raises:
            BookNotFoundError: If the book does not exist
            SessionNotFoundError: If a session_id is given that does not exist
        """
        if not self.storage.get_book(data.book_id):
            raise BookNotFoundError(data.book_id)
        if data.session_id and not self.storage.get_session(data.session_id):
            raise SessionNotFoundError(data.session_id)

        note = self.storage.save_note(BookNote(**data.model_dump(), created_at=self.clock()))
        logger.info(
            "note_created",
            note_id=note.id,
            book_id=note.book_id,
            note_type=note.note_type.value,
        )
        return note

    def get_note(self, note_id: str) -> Optional[BookNote]:
        """Get a note by ID, None if not found."""
        return self.storage.get_note(note_id)

    def list_book_notes(self, book_id: str) -> list[BookNote]:
        """Notes of a book, newest first."""
        return self.storage.list_notes(book_id=book_id)

    def list_session_notes(self, session_id: str) -> list[BookNote]:
        """Notes taken during a session, newest first."""
        return self.storage.list_notes(session_id=session_id)

    def update_note(self, note_id: str, data: BookNoteUpdate) -> Optional[BookNote]:
        """Update a note.

        Args:
            note_id: Note ID
            data: Update data

        Returns:
            Updated note or None
        """
        note = self.storage.get_note(note_id)
        if not note:
            return None

        updated = BookNote.model_validate(
            {**note.model_dump(), **data.model_dump(exclude_unset=True)}
        )
        return self.storage.save_note(updated)

    def delete_note(self, note_id: str) -> bool:
        """Delete a note.

        Returns:
            True if deleted
        """
        deleted = self.storage.delete_note(note_id)
        if deleted:
            logger.info("note_deleted", note_id=note_id)
        return deleted
