"""Read-only aggregate counts and bulk maintenance over the whole store."""
import logging

from sqlalchemy import delete, func, select

from lazyread.models.db_models import DBBook, DBNote, DBNoteImage
from lazyread.models.schema import StoreStats
from lazyread.observability import traced
from lazyread.storage.database import Database
from lazyread.storage.transaction import TransactionCoordinator

logger = logging.getLogger(__name__)


class StatsRepository:
    """Store-wide operations that are not tied to a single entity."""

    def __init__(self, database: Database):
        self.database = database

    @traced("get_stats")
    def get_stats(self) -> StoreStats:
        """Count books, notes and entries.

        The three counts are independent queries and are not guaranteed to
        describe the same instant.
        """
        with self.database.session_factory() as session:
            return StoreStats(
                books_count=self._count(session, DBBook.id),
                notes_count=self._count(session, DBNote.id),
                images_count=self._count(session, DBNoteImage.id),
            )

    @traced("clear_all_data")
    def clear_all_data(self) -> None:
        """Delete every entry, note and book in one transaction."""
        coordinator = TransactionCoordinator(self.database.session_factory)
        with coordinator.atomic("clear_all_data") as session:
            session.execute(delete(DBNoteImage))
            session.execute(delete(DBNote))
            session.execute(delete(DBBook))
        logger.warning("All data cleared from store")

    @staticmethod
    def _count(session, column) -> int:
        return session.execute(select(func.count(column))).scalar() or 0
