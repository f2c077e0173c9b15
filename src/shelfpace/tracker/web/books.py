"""Book routes: library CRUD, bulk operations and per-book reading data."""

from datetime import date, datetime, time, timezone
from typing import Optional

from flask import Blueprint, request

from ...utils import parse_iso_date
from ..db.schemas import (
    BookCreate,
    BookStatus,
    BookUpdate,
    ProgressUpdateRequest,
    ReadingStateUpdate,
    SessionState,
    SessionType,
)
from ..exceptions import BookNotFoundError, NotFoundError, ValidationError
from ..library.schemas import BookFilters, BulkDeleteRequest, BulkStatusRequest, BulkTagsRequest
from .helpers import (
    int_arg,
    multi_value_arg,
    no_content,
    parse_body,
    services,
    to_json,
    to_json_list,
)

bp = Blueprint("books", __name__, url_prefix="/api/books")


def _enum_arg(enum_cls, name: str):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        raise ValidationError(f"Invalid {name}: {raw}") from None


def _date_arg(name: str) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return None
    day = parse_iso_date(raw)
    if day is None:
        raise ValidationError(f"Invalid {name}. Use YYYY-MM-DD.")
    return day


# ============================================================================
# Library
# ============================================================================


@bp.get("")
def list_books():
    """List books with filters and sorting."""
    filters = BookFilters.model_validate(
        {
            "search": request.args.get("search") or None,
            "statuses": multi_value_arg("statuses"),
            "genres": multi_value_arg("genres"),
            "tags": multi_value_arg("tags"),
            "formats": multi_value_arg("formats"),
            "languages": multi_value_arg("languages"),
            "sort": request.args.get("sort") or None,
            "sortOrder": request.args.get("sortOrder") or "desc",
        }
    )
    return to_json_list(services().library.list_books(filters))


@bp.get("/currently-reading")
def currently_reading():
    return to_json_list(services().library.currently_reading())


@bp.get("/status/<status>")
def books_by_status(status: str):
    try:
        book_status = BookStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status: {status}") from None
    return to_json_list(services().library.by_status(book_status))


@bp.post("")
def create_book():
    book = services().library.create_book(parse_body(BookCreate))
    return to_json(book, 201)


@bp.get("/<book_id>")
def get_book(book_id: str):
    book = services().library.get_book(book_id)
    if not book:
        raise BookNotFoundError(book_id)
    return to_json(book)


@bp.patch("/<book_id>")
def update_book(book_id: str):
    book = services().library.update_book(book_id, parse_body(BookUpdate))
    if not book:
        raise BookNotFoundError(book_id)
    return to_json(book)


@bp.delete("/<book_id>")
def delete_book(book_id: str):
    if not services().library.delete_book(book_id):
        raise BookNotFoundError(book_id)
    return no_content()


@bp.post("/bulk/status")
def bulk_status():
    data = parse_body(BulkStatusRequest)
    return to_json_list(services().library.bulk_update_status(data.ids, data.status))


@bp.post("/bulk/tags")
def bulk_tags():
    data = parse_body(BulkTagsRequest)
    return to_json_list(services().library.bulk_add_tags(data.ids, data.tags))


@bp.delete("/bulk")
def bulk_delete():
    data = parse_body(BulkDeleteRequest)
    if not services().library.bulk_delete(data.ids):
        raise NotFoundError("Some books not found")
    return no_content()


# ============================================================================
# Sessions, Progress and Reading State
# ============================================================================


@bp.get("/<book_id>/sessions")
def book_sessions(book_id: str):
    """List a book's sessions, newest first."""
    start_day = _date_arg("startDate")
    end_day = _date_arg("endDate")

    # Date filters cover whole UTC days
    sessions = services().sessions.list_book_sessions(
        book_id,
        state=_enum_arg(SessionState, "state"),
        session_type=_enum_arg(SessionType, "sessionType"),
        start=datetime.combine(start_day, time.min, timezone.utc) if start_day else None,
        end=datetime.combine(end_day, time.max, timezone.utc) if end_day else None,
        limit=int_arg("limit"),
    )
    return to_json_list(sessions)


@bp.get("/<book_id>/active-session")
def active_session(book_id: str):
    session = services().sessions.get_active_session(book_id)
    if not session:
        raise NotFoundError("No active session")
    return to_json(session)


@bp.post("/<book_id>/calculate-progress")
def calculate_progress(book_id: str):
    return to_json(services().progress.calculate_progress(book_id))


@bp.patch("/<book_id>/progress")
def update_progress(book_id: str):
    data = parse_body(ProgressUpdateRequest)
    book = services().progress.update_book_progress(
        book_id,
        current_page=data.current_page,
        progress_percent=data.progress_percent,
    )
    return to_json(book)


@bp.get("/<book_id>/reading-state")
def get_reading_state(book_id: str):
    if not services().library.get_book(book_id):
        raise BookNotFoundError(book_id)
    return to_json(services().state_cache.get_or_default(book_id))


@bp.patch("/<book_id>/reading-state")
def update_reading_state(book_id: str):
    if not services().library.get_book(book_id):
        raise BookNotFoundError(book_id)
    data = parse_body(ReadingStateUpdate)
    state = services().state_cache.update(book_id, **data.model_dump(exclude_unset=True))
    return to_json(state)


@bp.get("/<book_id>/notes")
def book_notes(book_id: str):
    return to_json_list(services().notes.list_book_notes(book_id))


@bp.get("/<book_id>/stats")
def book_stats(book_id: str):
    if not services().library.get_book(book_id):
        raise BookNotFoundError(book_id)
    return to_json(services().analytics.get_reading_stats(book_id))
