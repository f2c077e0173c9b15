"""Flask JSON API for the reading tracker."""

import json
from datetime import datetime
from typing import Callable, Optional

import pydantic
import structlog
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from ..config import Config, get_config
from ..db.storage import Storage, create_storage
from ..exceptions import TrackerError
from ..library.manager import LibraryManager
from ..notes.manager import NotesManager
from ..reading.progress import ProgressTracker
from ..reading.session import SessionManager
from ..reading.state import ReadingStateCache
from ..stats.analytics import ReadingAnalytics
from ..stats.goals import GoalsManager
from . import books, notes, sessions, stats
from .helpers import Services

logger = structlog.get_logger(__name__)


def build_services(
    storage: Storage, clock: Optional[Callable[[], datetime]] = None
) -> Services:
    """Wire every manager to one storage backend and clock."""
    state_cache = ReadingStateCache(storage)
    progress = ProgressTracker(storage, state_cache=state_cache, clock=clock)
    return Services(
        library=LibraryManager(storage, clock=clock),
        sessions=SessionManager(storage, progress=progress, state_cache=state_cache, clock=clock),
        progress=progress,
        state_cache=state_cache,
        notes=NotesManager(storage, clock=clock),
        goals=GoalsManager(storage, clock=clock),
        analytics=ReadingAnalytics(storage, progress=progress, clock=clock),
    )


def register_error_handlers(app: Flask) -> None:
    """Render errors as {"error": message} JSON."""

    @app.errorhandler(TrackerError)
    def handle_tracker_error(exc: TrackerError):
        if exc.status_code >= 500:
            logger.error("request_failed", error=exc.message, status_code=exc.status_code)
        return jsonify({"error": exc.message}), exc.status_code

    @app.errorhandler(pydantic.ValidationError)
    def handle_validation_error(exc: pydantic.ValidationError):
        details = json.loads(exc.json(include_url=False))
        message = details[0]["msg"] if details else "Invalid request data"
        # Custom validator messages come prefixed with "Value error, "
        message = message.removeprefix("Value error, ")
        return jsonify({"error": message, "details": details}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.exception("unhandled_error", error=str(exc))
        return jsonify({"error": "Internal server error"}), 500


def create_app(
    config: Optional[Config] = None,
    storage: Optional[Storage] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        config: Configuration (default: from environment)
        storage: Storage backend (default: built from config)
        clock: Returns the current UTC time (default: real clock)

    Returns:
        Configured Flask app
    """
    config = config or get_config()
    if storage is None:
        storage = create_storage(config.storage_backend, config.data_path, config.db_path)

    app = Flask(__name__)
    app.json.sort_keys = False
    app.extensions["shelfpace"] = build_services(storage, clock=clock)

    register_error_handlers(app)
    for module in (books, sessions, notes, stats):
        app.register_blueprint(module.bp)

    @app.get("/api/health")
    def health():
        """Liveness probe."""
        return jsonify({"status": "ok", "storage": config.storage_backend})

    logger.info("app_created", storage=type(storage).__name__)
    return app


def run_server(config: Optional[Config] = None, debug: Optional[bool] = None) -> None:
    """Run the development web server."""
    config = config or get_config()
    if debug is None:
        debug = config.environment == "development"
    app = create_app(config)
    logger.info("server_starting", host=config.host, port=config.port, debug=debug)
    app.run(host=config.host, port=config.port, debug=debug)
