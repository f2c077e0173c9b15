"""Request and response helpers shared by the API blueprints."""

from dataclasses import dataclass
from typing import Iterable, Optional, TypeVar

from flask import current_app, jsonify, request
from pydantic import BaseModel

from ..exceptions import ValidationError
from ..library.manager import LibraryManager
from ..notes.manager import NotesManager
from ..reading.progress import ProgressTracker
from ..reading.session import SessionManager
from ..reading.state import ReadingStateCache
from ..stats.analytics import ReadingAnalytics
from ..stats.goals import GoalsManager

M = TypeVar("M", bound=BaseModel)


@dataclass
class Services:
    """Managers shared by every request of one app."""

    library: LibraryManager
    sessions: SessionManager
    progress: ProgressTracker
    state_cache: ReadingStateCache
    notes: NotesManager
    goals: GoalsManager
    analytics: ReadingAnalytics


def services() -> Services:
    """Get the managers registered on the current app."""
    return current_app.extensions["shelfpace"]


def parse_body(model: type[M]) -> M:
    """Validate the JSON request body against a schema.

    A missing or non-JSON body validates as an empty object, so required
    fields still produce a 400.
    """
    return model.model_validate(request.get_json(silent=True) or {})


def multi_value_arg(name: str) -> list[str]:
    """Read a query parameter given repeatedly and/or comma-separated."""
    values = []
    for raw in request.args.getlist(name):
        values.extend(part.strip() for part in raw.split(",") if part.strip())
    return values


def int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    """Read a positive integer query parameter."""
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a positive integer") from None
    if value < 1:
        raise ValidationError(f"{name} must be a positive integer")
    return value


def to_json(item: BaseModel, status: int = 200):
    """JSON response for one model."""
    return jsonify(item.model_dump(mode="json", by_alias=True)), status


def to_json_list(items: Iterable[BaseModel]):
    """JSON response for a list of models."""
    return jsonify([item.model_dump(mode="json", by_alias=True) for item in items])


def no_content():
    return "", 204
