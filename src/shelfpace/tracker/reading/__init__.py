"""Reading session tracking and progress management."""

from .progress import ProgressTracker
from .session import SessionManager, session_duration_minutes
from .state import ReadingStateCache

__all__ = [
    "ProgressTracker",
    "SessionManager",
    "session_duration_minutes",
    "ReadingStateCache",
]
