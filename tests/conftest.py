"""Common test fixtures for the Lazy Read store."""

import logging
import sqlite3

import pytest

from lazyread import observability
from lazyread.config import StoreConfig
from lazyread.models.schema import Book, Note, NoteImage
from lazyread.observability import ROOT_LOGGER, MetricsCollector
from lazyread.storage.book_repository import BookRepository
from lazyread.storage.database import Database
from lazyread.storage.note_repository import NoteRepository
from lazyread.storage.stats_repository import StatsRepository
from lazyread.store import LazyReadStore

# Schema exactly as the first release of the app created it: no cover
# column and no explicit ordering on notes or entries.
LEGACY_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  author TEXT NOT NULL,
  description TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS notes (
  id TEXT PRIMARY KEY,
  book_id TEXT NOT NULL,
  title TEXT NOT NULL,
  page_number INTEGER NOT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  FOREIGN KEY (book_id) REFERENCES books (id) ON DELETE CASCADE
);
CREATE TABLE IF NOT EXISTS note_images (
  id TEXT PRIMARY KEY,
  note_id TEXT NOT NULL,
  uri TEXT NOT NULL,
  description TEXT NOT NULL,
  FOREIGN KEY (note_id) REFERENCES notes (id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_notes_book_id ON notes (book_id);
CREATE INDEX IF NOT EXISTS idx_notes_page_number ON notes (page_number);
CREATE INDEX IF NOT EXISTS idx_note_images_note_id ON note_images (note_id);
"""


@pytest.fixture(params=["asyncio"])
def anyio_backend(request):
    """Restrict anyio tests to asyncio only (trio is not installed)."""
    return request.param


@pytest.fixture(autouse=True)
def metrics_collector(monkeypatch):
    """Fresh operation metrics for every test."""
    collector = MetricsCollector()
    monkeypatch.setattr(observability, "metrics", collector)
    return collector


@pytest.fixture
def clean_logger():
    """Package logger whose handlers are restored after the test."""
    logger = logging.getLogger(ROOT_LOGGER)
    before = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers:
        if handler not in before:
            handler.close()
    logger.handlers = before
    logger.setLevel(level)


@pytest.fixture
def db_path(tmp_path):
    """Path of a not-yet-created store file."""
    return tmp_path / "db" / "lazy_read.db"


@pytest.fixture
def test_config(tmp_path, db_path):
    """Store config pointing at the temporary directory."""
    return StoreConfig(
        base_dir=tmp_path,
        database_path=db_path,
        log_dir=tmp_path / "logs",
        log_level="DEBUG",
    )


@pytest.fixture
def database(test_config):
    """An open store handle, closed after the test."""
    db = Database(test_config)
    db.open()
    yield db
    db.close()


@pytest.fixture
def book_repository(database):
    return BookRepository(database)


@pytest.fixture
def note_repository(database):
    return NoteRepository(database)


@pytest.fixture
def stats_repository(database):
    return StatsRepository(database)


@pytest.fixture
def store(database):
    """Async facade over the temporary store."""
    return LazyReadStore(database)


@pytest.fixture
def book(book_repository):
    """A stored book to hang notes on."""
    return book_repository.upsert(Book(id="b1", title="Dune", author="Herbert"))


@pytest.fixture
def make_note():
    """Build an unsaved note for the fixture book."""
    def _make(note_id, page_number=1, images=(), book_id="b1", **kwargs):
        return Note(
            id=note_id,
            book_id=book_id,
            page_number=page_number,
            images=[
                img if isinstance(img, NoteImage) else NoteImage(id=img, description=img)
                for img in images
            ],
            **kwargs,
        )
    return _make


@pytest.fixture
def legacy_db(db_path):
    """Create a store file with the first-release schema and return a row writer.

    The writer takes SQL and parameters and commits immediately.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        conn.executescript(LEGACY_SCHEMA)
        conn.commit()
    finally:
        conn.close()

    def _execute(sql, params=()):
        conn = sqlite3.connect(db_path)
        try:
            conn.execute(sql, params)
            conn.commit()
        finally:
            conn.close()

    return _execute


@pytest.fixture
def raw_query(db_path):
    """Run a read query against the store file outside SQLAlchemy."""
    def _query(sql, params=()):
        conn = sqlite3.connect(db_path)
        try:
            return conn.execute(sql, params).fetchall()
        finally:
            conn.close()
    return _query
