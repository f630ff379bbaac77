"""Storage layer for the Lazy Read store."""

from lazyread.storage.base import Repository
from lazyread.storage.book_repository import BookRepository
from lazyread.storage.database import Database, close_database, get_database
from lazyread.storage.migrations import SchemaManager, SchemaReport
from lazyread.storage.note_repository import NoteRepository
from lazyread.storage.stats_repository import StatsRepository
from lazyread.storage.transaction import TransactionCoordinator

__all__ = [
    "Repository",
    "BookRepository",
    "NoteRepository",
    "StatsRepository",
    "Database",
    "SchemaManager",
    "SchemaReport",
    "TransactionCoordinator",
    "get_database",
    "close_database",
]
