"""Per-book reading state cache.

Stores the active session pointer and the last forecast results for each
book. Every value here can be rebuilt from the session history.
"""

from typing import Optional

import structlog

from ..db.schemas import BookReadingState
from ..db.storage import Storage, get_storage

logger = structlog.get_logger(__name__)


class ReadingStateCache:
    """Reads and merges updates into BookReadingState records."""

    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or get_storage()

    def get(self, book_id: str) -> Optional[BookReadingState]:
        """Get the reading state of a book, None if never written."""
        return self.storage.get_reading_state(book_id)

    def get_or_default(self, book_id: str) -> BookReadingState:
        """Get the reading state of a book, or an unsaved default one."""
        return self.get(book_id) or BookReadingState(book_id=book_id)

    def update(self, book_id: str, **changes) -> BookReadingState:
        """Merge changes over the existing state (or defaults) and save.

        Args:
            book_id: Book ID
            **changes: BookReadingState fields to overwrite. None values
                are written as None, so pass only what should change.

        Returns:
            The saved state
        """
        current = self.get_or_default(book_id)
        merged = BookReadingState.model_validate(
            {**current.model_dump(), **changes, "book_id": book_id}
        )
        logger.debug("reading_state_updated", book_id=book_id, fields=sorted(changes))
        return self.storage.save_reading_state(merged)
