"""Book note routes."""

from flask import Blueprint

from ..exceptions import NoteNotFoundError
from ..notes.schemas import BookNoteCreate, BookNoteUpdate
from .helpers import no_content, parse_body, services, to_json

bp = Blueprint("notes", __name__, url_prefix="/api/notes")


@bp.post("")
def create_note():
    return to_json(services().notes.create_note(parse_body(BookNoteCreate)), 201)


@bp.get("/<note_id>")
def get_note(note_id: str):
    note = services().notes.get_note(note_id)
    if not note:
        raise NoteNotFoundError(note_id)
    return to_json(note)


@bp.patch("/<note_id>")
def update_note(note_id: str):
    note = services().notes.update_note(note_id, parse_body(BookNoteUpdate))
    if not note:
        raise NoteNotFoundError(note_id)
    return to_json(note)


@bp.delete("/<note_id>")
def delete_note(note_id: str):
    if not services().notes.delete_note(note_id):
        raise NoteNotFoundError(note_id)
    return no_content()
