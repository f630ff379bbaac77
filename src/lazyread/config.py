"""Configuration module for the Lazy Read store."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config lives alongside the logs
_USER_ENV = Path.home() / ".lazyread" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

IN_MEMORY = ":memory:"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class StoreConfig(BaseModel):
    """Configuration for the Lazy Read store."""

    # Base directory that relative paths are resolved against
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("LAZYREAD_BASE_DIR", "."))
    )
    # Single store location, fixed for the application's lifetime.
    # ":memory:" keeps the store in RAM (tests, throwaway sessions).
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("LAZYREAD_DATABASE_PATH", "data/lazy_read.db")
        )
    )
    # Seconds a statement waits on a locked database before failing
    sqlite_timeout: float = Field(
        default_factory=lambda: float(os.getenv("LAZYREAD_SQLITE_TIMEOUT", "30"))
    )
    # Logging configuration
    log_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("LAZYREAD_LOG_DIR", str(Path.home() / ".lazyread" / "logs"))
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("LAZYREAD_LOG_LEVEL", "INFO").upper()
    )

    model_config = {"validate_assignment": True}

    @model_validator(mode="after")
    def _validate_store_config(self) -> "StoreConfig":
        """Reject settings that would make the store unusable."""
        if self.sqlite_timeout <= 0:
            raise ValueError("sqlite_timeout must be > 0")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
        return self

    @property
    def in_memory(self) -> bool:
        """Whether the store is an in-memory SQLite database."""
        return str(self.database_path) == IN_MEMORY

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        if self.in_memory:
            return "sqlite://"
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"


# Create a global config instance
config = StoreConfig()
