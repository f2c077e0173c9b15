"""Book library management.

CRUD for books plus filtering, sorting and bulk status/tag/delete
operations.
"""

from datetime import datetime
from typing import Callable, Optional

import structlog

from ...utils import utc_now
from ..db.schemas import Book, BookCreate, BookStatus, BookUpdate
from ..db.storage import Storage, get_storage
from .schemas import BookFilters, BookSort, SortOrder

logger = structlog.get_logger(__name__)


def _sort_key(sort: BookSort) -> Callable[[Book], object]:
    """Key function for a sort field. Missing values sort as lowest."""
    if sort == BookSort.PRIORITY:
        return lambda b: b.priority or 3
    if sort == BookSort.ADDED_AT:
        return lambda b: b.added_at.timestamp()
    if sort == BookSort.TITLE:
        return lambda b: b.title.lower()
    if sort == BookSort.AUTHOR:
        return lambda b: b.author.lower()
    if sort == BookSort.LAST_READ_AT:
        return lambda b: b.last_read_at.timestamp() if b.last_read_at else 0
    return lambda b: b.progress or 0


class LibraryManager:
    """Manages the book library."""

    def __init__(
        self,
        storage: Optional[Storage] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize library manager.

        Args:
            storage: Storage backend
            clock: Returns the current UTC time
        """
        self.storage = storage or get_storage()
        self.clock = clock or utc_now

    # -------------------------------------------------------------------------
    # Book CRUD
    # -------------------------------------------------------------------------

    def create_book(self, data: BookCreate) -> Book:
        """Add a book to the library.

        Args:
            data: Book creation data

        Returns:
            Created book
        """
        book = Book(**data.model_dump(), added_at=self.clock())
        book = self.storage.save_book(book)
        logger.info("book_created", book_id=book.id, title=book.title)
        return book

    def get_book(self, book_id: str) -> Optional[Book]:
        """Get a book by ID, None if not found."""
        return self.storage.get_book(book_id)

    def update_book(self, book_id: str, data: BookUpdate) -> Optional[Book]:
        """Update a book.

        Args:
            book_id: Book ID
            data: Fields to change

        Returns:
            Updated book or None if not found
        """
        book = self.storage.get_book(book_id)
        if not book:
            return None

        changes = data.model_dump(exclude_unset=True)
        updated = Book.model_validate({**book.model_dump(), **changes})
        logger.info("book_updated", book_id=book_id, fields=sorted(changes))
        return self.storage.save_book(updated)

    def delete_book(self, book_id: str) -> bool:
        """Delete a book with its sessions, notes and reading state.

        Returns:
            True if deleted
        """
        deleted = self.storage.delete_book(book_id)
        if deleted:
            logger.info("book_deleted", book_id=book_id)
        return deleted

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_books(self, filters: Optional[BookFilters] = None) -> list[Book]:
        """List books with optional filters and sorting.

        Search matches title, author, topics and tags, case-insensitively.
        A book matches the tags filter if it carries any of the given tags.

        Args:
            filters: Library filters

        Returns:
            Matching books
        """
        books = self.storage.list_books()
        if filters is None:
            return books

        if filters.search:
            needle = filters.search.lower()
            books = [
                b
                for b in books
                if needle in b.title.lower()
                or needle in b.author.lower()
                or any(needle in topic.lower() for topic in b.topics)
                or any(needle in tag.lower() for tag in b.tags)
            ]

        if filters.statuses:
            books = [b for b in books if b.status in filters.statuses]
        if filters.genres:
            books = [b for b in books if b.genre in filters.genres]
        if filters.tags:
            books = [b for b in books if any(tag in b.tags for tag in filters.tags)]
        if filters.formats:
            books = [b for b in books if b.format in filters.formats]
        if filters.languages:
            books = [b for b in books if b.language in filters.languages]

        if filters.sort:
            books.sort(
                key=_sort_key(filters.sort),
                reverse=filters.sort_order == SortOrder.DESC,
            )

        return books

    def currently_reading(self) -> list[Book]:
        """Books with status reading."""
        return self.by_status(BookStatus.READING)

    def by_status(self, status: BookStatus) -> list[Book]:
        """Books with the given status."""
        return [b for b in self.storage.list_books() if b.status == status]

    # -------------------------------------------------------------------------
    # Bulk Operations
    # -------------------------------------------------------------------------

    def bulk_update_status(self, book_ids: list[str], status: BookStatus) -> list[Book]:
        """Set the status of several books.

        Moving to reading stamps last_read_at. Moving to finished stamps
        completed_at; any other status clears it. Unknown ids are skipped.

        Returns:
            The books that were updated
        """
        now = self.clock()
        updated = []
        for book_id in book_ids:
            book = self.storage.get_book(book_id)
            if not book:
                continue
            book.status = status
            if status == BookStatus.READING:
                book.last_read_at = now
            book.completed_at = now if status == BookStatus.FINISHED else None
            updated.append(self.storage.save_book(book))

        logger.info("books_status_updated", status=status.value, count=len(updated))
        return updated

    def bulk_add_tags(self, book_ids: list[str], tags: list[str]) -> list[Book]:
        """Add tags to several books, keeping existing order and dropping duplicates.

        Returns:
            The books that were updated
        """
        updated = []
        for book_id in book_ids:
            book = self.storage.get_book(book_id)
            if not book:
                continue
            # Revalidate so the tag count limit still applies
            tagged = Book.model_validate(
                {**book.model_dump(), "tags": list(dict.fromkeys([*book.tags, *tags]))}
            )
            updated.append(self.storage.save_book(tagged))

        logger.info("books_tagged", tags=tags, count=len(updated))
        return updated

    def bulk_delete(self, book_ids: list[str]) -> bool:
        """Delete several books.

        Returns:
            True only if every id existed
        """
        all_deleted = True
        for book_id in book_ids:
            if not self.storage.delete_book(book_id):
                all_deleted = False

        logger.info("books_deleted", count=len(book_ids), all_deleted=all_deleted)
        return all_deleted
