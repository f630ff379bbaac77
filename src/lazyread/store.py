"""Async facade over the store for UI callers.

Each call runs the blocking repository method on a worker thread. Reads
are forgiving: a storage failure is logged and the caller gets an empty
result, so a screen can still render. Writes always raise so the caller
can tell the user and retry. An ``InitializationError`` is never
swallowed, on any path.
"""
import functools
import logging
import sqlite3
from typing import Any, Callable, Iterable, List, Optional, TypeVar

from anyio import to_thread
from sqlalchemy.exc import SQLAlchemyError

from lazyread.exceptions import InitializationError, LazyReadError
from lazyread.models.schema import Book, Note, StoreStats
from lazyread.storage.book_repository import BookRepository
from lazyread.storage.database import Database, get_database
from lazyread.storage.migrations import SchemaReport
from lazyread.storage.note_repository import NoteRepository
from lazyread.storage.stats_repository import StatsRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LazyReadStore:
    """The operations the app may perform on its books, notes and entries."""

    def __init__(self, database: Optional[Database] = None):
        """Initialize the store facade.

        Args:
            database: Store handle. If None, uses the process-wide default.
        """
        self.database = database or get_database()
        self.books = BookRepository(self.database)
        self.notes = NoteRepository(self.database)
        self.stats = StatsRepository(self.database)

    async def __aenter__(self) -> "LazyReadStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await to_thread.run_sync(functools.partial(func, *args))

    async def _read(self, operation: str, default: Callable[[], T], func: Callable[..., T], *args: Any) -> T:
        try:
            return await self._run(func, *args)
        except InitializationError:
            raise
        except (LazyReadError, SQLAlchemyError, sqlite3.Error) as e:
            logger.error(f"Error in {operation}: {e}")
            return default()

    # ===== Lifecycle =====

    async def initialize(self) -> SchemaReport:
        """Open the store and migrate it. Safe to call repeatedly.

        Raises:
            InitializationError: If the store is unusable.
        """
        return await self._run(self.database.open)

    async def ensure_schema(self) -> SchemaReport:
        """Re-run the idempotent schema check."""
        return await self._run(self.database.ensure_schema)

    async def close(self) -> None:
        """Release the store. Safe to call when it was never opened."""
        await self._run(self.database.close)

    # ===== Books =====

    async def list_books(self) -> List[Book]:
        return await self._read("list_books", list, self.books.get_all)

    async def get_book(self, book_id: str) -> Optional[Book]:
        return await self._read("get_book", lambda: None, self.books.get, book_id)

    async def upsert_book(self, book: Book) -> Book:
        return await self._run(self.books.upsert, book)

    async def delete_book(self, book_id: str) -> None:
        await self._run(self.books.delete, book_id)

    # ===== Notes =====

    async def list_notes(self, book_id: Optional[str] = None) -> List[Note]:
        return await self._read("list_notes", list, self.notes.list_notes, book_id)

    async def get_note(self, note_id: str) -> Optional[Note]:
        return await self._read("get_note", lambda: None, self.notes.get, note_id)

    async def upsert_note(self, note: Note) -> Note:
        return await self._run(self.notes.upsert, note)

    async def delete_note(self, note_id: str) -> None:
        await self._run(self.notes.delete, note_id)

    async def reorder_notes(self, book_id: str, ordered_ids: Iterable[str]) -> None:
        await self._run(self.notes.reorder, book_id, list(ordered_ids))

    async def reorder_images(self, note_id: str, ordered_ids: Iterable[str]) -> None:
        await self._run(self.notes.reorder_images, note_id, list(ordered_ids))

    # ===== Utility =====

    async def get_stats(self) -> StoreStats:
        return await self._read("get_stats", StoreStats, self.stats.get_stats)

    async def clear_all_data(self) -> None:
        """Delete everything in the store, atomically."""
        await self._run(self.stats.clear_all_data)
