"""Book library management."""

from .manager import LibraryManager
from .schemas import BookFilters, BookSort, SortOrder

__all__ = [
    "LibraryManager",
    "BookFilters",
    "BookSort",
    "SortOrder",
]
