"""Reading session routes: the session state machine and session plumbing."""

from flask import Blueprint

from ..db.schemas import (
    QuickAddPagesRequest,
    ReadingSessionUpdate,
    StartSessionRequest,
    StopSessionRequest,
)
from ..exceptions import SessionNotFoundError
from .helpers import int_arg, no_content, parse_body, services, to_json, to_json_list

bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


@bp.post("/start")
def start_session():
    """Start a timed session. 409 if the book already has one open."""
    data = parse_body(StartSessionRequest)
    session = services().sessions.start_session(
        data.book_id,
        start_page=data.start_page,
        pomodoro_minutes=data.pomodoro_minutes,
    )
    return to_json(session, 201)


@bp.post("/<session_id>/pause")
def pause_session(session_id: str):
    return to_json(services().sessions.pause_session(session_id))


@bp.post("/<session_id>/resume")
def resume_session(session_id: str):
    return to_json(services().sessions.resume_session(session_id))


@bp.post("/<session_id>/stop")
def stop_session(session_id: str):
    data = parse_body(StopSessionRequest)
    session = services().sessions.stop_session(
        session_id, end_page=data.end_page, session_notes=data.session_notes
    )
    return to_json(session)


@bp.post("/quick-add")
def quick_add():
    data = parse_body(QuickAddPagesRequest)
    session = services().sessions.quick_add_pages(
        data.book_id, data.pages_read, session_notes=data.session_notes
    )
    return to_json(session, 201)


@bp.get("/recent")
def recent_sessions():
    return to_json_list(services().sessions.recent_sessions(limit=int_arg("limit", 10)))


@bp.get("/active")
def active_sessions():
    return to_json_list(services().sessions.active_sessions())


@bp.get("/<session_id>")
def get_session(session_id: str):
    session = services().sessions.get_session(session_id)
    if not session:
        raise SessionNotFoundError(session_id)
    return to_json(session)


@bp.patch("/<session_id>")
def update_session(session_id: str):
    session = services().sessions.update_session(session_id, parse_body(ReadingSessionUpdate))
    if not session:
        raise SessionNotFoundError(session_id)
    return to_json(session)


@bp.delete("/<session_id>")
def delete_session(session_id: str):
    if not services().sessions.delete_session(session_id):
        raise SessionNotFoundError(session_id)
    return no_content()


@bp.get("/<session_id>/notes")
def session_notes(session_id: str):
    return to_json_list(services().notes.list_session_notes(session_id))
