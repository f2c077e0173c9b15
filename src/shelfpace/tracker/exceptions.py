"""Exception hierarchy for the reading tracker."""

from typing import Optional


class TrackerError(Exception):
    """Base exception for all tracker errors."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        """Initialize exception with message and optional status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(TrackerError):
    """Resource not found error."""

    def __init__(self, message: str) -> None:
        """Initialize with message and 404 status code."""
        super().__init__(message, status_code=404)


class BookNotFoundError(NotFoundError):
    """Book not found error."""

    def __init__(self, book_id: Optional[str] = None, *, message: Optional[str] = None) -> None:
        """Initialize with book ID or custom message."""
        self.book_id = book_id
        if message:
            super().__init__(message)
        elif book_id is not None:
            super().__init__(f"Book not found: {book_id}")
        else:
            super().__init__("Book not found")


class SessionNotFoundError(NotFoundError):
    """Reading session not found, or not in the state an operation needs.

    Pausing, resuming and stopping report a session in the wrong state the
    same way as a missing one.
    """

    def __init__(self, session_id: Optional[str] = None, *, message: Optional[str] = None) -> None:
        """Initialize with session ID or custom message."""
        self.session_id = session_id
        if message:
            super().__init__(message)
        elif session_id is not None:
            super().__init__(f"Session not found: {session_id}")
        else:
            super().__init__("Session not found")


class NoteNotFoundError(NotFoundError):
    """Book note not found error."""

    def __init__(self, note_id: Optional[str] = None) -> None:
        self.note_id = note_id
        super().__init__(f"Note not found: {note_id}" if note_id else "Note not found")


class GoalNotFoundError(NotFoundError):
    """Reading goal not found error."""

    def __init__(self, goal_id: Optional[str] = None) -> None:
        self.goal_id = goal_id
        super().__init__(
            f"Reading goal with id {goal_id} not found" if goal_id else "Reading goal not found"
        )


class ConflictError(TrackerError):
    """Operation conflicts with the current state, e.g. a second active session."""

    def __init__(self, message: str) -> None:
        """Initialize with message and 409 status code."""
        super().__init__(message, status_code=409)


class ValidationError(TrackerError):
    """Invalid input rejected before any write."""

    def __init__(self, message: str) -> None:
        """Initialize with message and 400 status code."""
        super().__init__(message, status_code=400)
