"""Store handle: lazily opened engine plus its one-time schema check.

A ``Database`` owns the single SQLAlchemy engine for one store location.
Nothing touches storage before ``open()`` has run the schema manager; the
``engine`` and ``session_factory`` properties open the store on first use.
Repositories receive the handle explicitly. ``get_database()`` keeps one
default handle per process for callers that do not manage their own.
"""
import logging
import sqlite3
import threading
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from lazyread.config import StoreConfig, config
from lazyread.exceptions import ErrorCode, InitializationError
from lazyread.models.db_models import create_store_engine
from lazyread.storage.migrations import SchemaManager, SchemaReport

logger = logging.getLogger(__name__)


class Database:
    """Lazily opened handle to one SQLite store."""

    def __init__(self, store_config: Optional[StoreConfig] = None, db_url: Optional[str] = None):
        """Initialize the handle without touching storage.

        Args:
            store_config: Store settings. If None, uses the global config.
            db_url: Explicit SQLAlchemy URL, overriding the configured path.
        """
        self.config = store_config or config
        self._db_url = db_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._schema_report: Optional[SchemaReport] = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        """The engine, opening the store first if needed."""
        self.open()
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        """Session factory bound to the store, opening it first if needed."""
        self.open()
        return self._session_factory

    @property
    def schema_report(self) -> Optional[SchemaReport]:
        """Report of the schema check run when the store was opened."""
        return self._schema_report

    def open(self) -> SchemaReport:
        """Open the store and bring its schema up to date, once.

        Raises:
            InitializationError: If the store cannot be opened or its base
                tables cannot be created.
        """
        with self._lock:
            if self._engine is not None:
                return self._schema_report

            try:
                db_url = self._db_url or self.config.get_db_url()
                engine = create_store_engine(db_url, timeout=self.config.sqlite_timeout)
            except (SQLAlchemyError, sqlite3.Error, OSError) as e:
                logger.error(f"Failed to open store: {e}")
                raise InitializationError(
                    "Could not open the store",
                    database_url=self._db_url,
                    code=ErrorCode.STORAGE_CONNECTION_FAILED,
                    original_error=e,
                ) from e

            try:
                report = SchemaManager(engine).ensure_schema()
            except InitializationError:
                engine.dispose()
                raise

            for failure in report.failed_steps:
                logger.error(f"Store opened with a pending migration: {failure}")

            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
            self._schema_report = report
            logger.info(f"Store opened: {engine.url}")
            return report

    def ensure_schema(self) -> SchemaReport:
        """Re-run the schema check against the open store.

        Idempotent: steps already applied are detected from the live
        column set and skipped.
        """
        self.open()
        report = SchemaManager(self._engine).ensure_schema()
        self._schema_report = report
        return report

    def close(self) -> None:
        """Dispose of the engine. Safe to call when the store was never opened."""
        with self._lock:
            if self._engine is None:
                return
            self._engine.dispose()
            logger.info(f"Store closed: {self._engine.url}")
            self._engine = None
            self._session_factory = None
            self._schema_report = None


_default_database: Optional[Database] = None
_default_lock = threading.Lock()


def get_database() -> Database:
    """Get the process-wide default handle, created from the global config."""
    global _default_database
    with _default_lock:
        if _default_database is None:
            _default_database = Database()
        return _default_database


def close_database() -> None:
    """Close and forget the process-wide default handle, if any."""
    global _default_database
    with _default_lock:
        if _default_database is not None:
            _default_database.close()
            _default_database = None
