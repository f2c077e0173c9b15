"""Pytest configuration and shared fixtures.

This module provides fixtures for testing shelfpace: a controllable clock,
in-memory storage, managers wired to both, sample books and a Flask test
client.
"""

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient

from shelfpace.tracker.config import reset_config
from shelfpace.tracker.db.schemas import Book, BookCreate, BookFormat, BookGenre, BookStatus
from shelfpace.tracker.db.storage import MemoryStorage, reset_storage
from shelfpace.tracker.web.app import build_services, create_app
from shelfpace.tracker.web.helpers import Services

# Fixed starting point for every test clock
START = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Clock returning a settable time."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        """Move the clock forward by timedelta(**kwargs)."""
        self.now += timedelta(**kwargs)
        return self.now


# ============================================================================
# Global State Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def reset_globals(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Start every test with default configuration and no cached storage."""
    for name in (
        "SHELFPACE_STORAGE",
        "SHELFPACE_DATA_PATH",
        "SHELFPACE_DB_PATH",
        "SHELFPACE_ENV",
        "SHELFPACE_LOG_LEVEL",
        "LOCAL_PERSIST",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    reset_storage()
    yield
    reset_config()
    reset_storage()


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock starting at START."""
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    """Create an empty in-memory storage."""
    return MemoryStorage()


@pytest.fixture
def services(storage: MemoryStorage, clock: FakeClock) -> Services:
    """Create managers sharing the test storage and clock."""
    return build_services(storage, clock=clock)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_book_data() -> BookCreate:
    """Create sample book data for testing."""
    return BookCreate(
        title="Deep Work",
        author="Cal Newport",
        genre=BookGenre.PERSONAL_DEVELOPMENT,
        total_pages=300,
        current_page=50,
        tags=["focus", "productivity"],
        topics=["attention"],
    )


@pytest.fixture
def book(services: Services, sample_book_data: BookCreate) -> Book:
    """Create and return a paper book on page 50 of 300."""
    return services.library.create_book(sample_book_data)


@pytest.fixture
def multiple_books(services: Services, clock: FakeClock) -> list[Book]:
    """Create several books added one minute apart."""
    books_data = [
        BookCreate(
            title="Dune",
            author="Frank Herbert",
            genre=BookGenre.FICTION,
            status=BookStatus.READING,
            total_pages=600,
            priority=5,
            tags=["sci-fi"],
        ),
        BookCreate(
            title="Sapiens",
            author="Yuval Noah Harari",
            genre=BookGenre.HISTORY_CULTURE,
            format=BookFormat.AUDIO,
            status=BookStatus.TO_READ,
            priority=2,
            topics=["evolution"],
        ),
        BookCreate(
            title="The Psychology of Money",
            author="Morgan Housel",
            genre=BookGenre.BUSINESS_FINANCE,
            format=BookFormat.EBOOK,
            status=BookStatus.FINISHED,
            priority=4,
            language="German",
            tags=["money"],
        ),
    ]
    books = []
    for data in books_data:
        books.append(services.library.create_book(data))
        clock.advance(minutes=1)
    return books


# ============================================================================
# Web Fixtures
# ============================================================================


@pytest.fixture
def app(storage: MemoryStorage, clock: FakeClock) -> Flask:
    """Create a Flask app on the test storage and clock."""
    flask_app = create_app(storage=storage, clock=clock)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    """Create a Flask test client."""
    return app.test_client()
