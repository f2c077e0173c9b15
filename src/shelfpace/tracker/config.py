"""Configuration management for the reading tracker.

Loads configuration from environment variables, provides defaults and
sets up structured logging.
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

import structlog
from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

STORAGE_BACKENDS = ("memory", "file", "sqlite")


@dataclass
class Config:
    """Application configuration."""

    # Storage
    storage_backend: str  # memory, file or sqlite
    data_path: Path  # JSON document for the file backend
    db_path: Path  # SQLite database for the sqlite backend

    # Web server
    host: str
    port: int

    # Logging
    environment: str  # development or production
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        backend = os.environ.get("SHELFPACE_STORAGE")
        if backend is None:
            # LOCAL_PERSIST=1 is the historical switch for file persistence
            backend = "file" if os.environ.get("LOCAL_PERSIST") == "1" else "memory"

        environment = os.environ.get("SHELFPACE_ENV", "development")

        return cls(
            storage_backend=backend.strip().lower(),
            data_path=Path(
                os.environ.get("SHELFPACE_DATA_PATH", "./data/store.json")
            ).expanduser(),
            db_path=Path(
                os.environ.get("SHELFPACE_DB_PATH", "./data/shelfpace.db")
            ).expanduser(),
            host=os.environ.get("SHELFPACE_HOST", "127.0.0.1"),
            port=int(os.environ.get("SHELFPACE_PORT", "5000")),
            environment=environment,
            log_level=os.environ.get(
                "SHELFPACE_LOG_LEVEL",
                "DEBUG" if environment == "development" else "INFO",
            ).upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if self.storage_backend not in STORAGE_BACKENDS:
            errors.append(
                f"Unknown storage backend '{self.storage_backend}' "
                f"(expected one of: {', '.join(STORAGE_BACKENDS)})"
            )

        if not 0 < self.port < 65536:
            errors.append(f"Invalid port: {self.port}")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Invalid log level: {self.log_level}")

        # Check the data directory is writable for persistent backends
        if self.storage_backend in ("file", "sqlite"):
            path = self.data_path if self.storage_backend == "file" else self.db_path
            if not path.parent.exists():
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                except PermissionError:
                    errors.append(f"Cannot create data directory: {path.parent}")

        return errors

    @property
    def is_persistent(self) -> bool:
        """Whether data survives a restart."""
        return self.storage_backend != "memory"


def configure_logging(environment: str = "development", level: Optional[str] = None) -> None:
    """Configure structured logging with structlog."""
    # JSON lines in production, colored console output otherwise
    use_json = environment == "production"

    if level is None:
        level = "DEBUG" if environment == "development" else "INFO"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
        force=True,
    )

    processors: list[Callable[..., Any]] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
