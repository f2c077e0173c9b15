"""Schemas for library queries and bulk operations."""

from enum import Enum
from typing import Optional

from pydantic import Field

from ..db.schemas import BookFormat, BookGenre, BookStatus, CamelModel


class BookSort(str, Enum):
    """Fields the library can be sorted by."""

    PRIORITY = "priority"
    ADDED_AT = "addedAt"
    TITLE = "title"
    AUTHOR = "author"
    LAST_READ_AT = "lastReadAt"
    PROGRESS = "progress"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class BookFilters(CamelModel):
    """Library filters. Empty lists mean no filtering on that field."""

    search: Optional[str] = None
    statuses: list[BookStatus] = Field(default_factory=list)
    genres: list[BookGenre] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    formats: list[BookFormat] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    sort: Optional[BookSort] = None
    sort_order: SortOrder = SortOrder.DESC


class BulkStatusRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1)
    status: BookStatus


class BulkTagsRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1)
    tags: list[str] = Field(..., min_length=1)


class BulkDeleteRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1)
